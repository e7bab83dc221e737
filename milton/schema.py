"""Records exchanged between the parser, fan-out, consensus and store layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

CERTAINTY_LEVELS = ("CRYSTAL_CLEAR", "PARTIALLY_OBSCURED", "VEILED_IN_MIST")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _strings(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    if isinstance(value, (list, tuple)):
        return tuple(_text(item) for item in value if item is not None)
    return (_text(value),)


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    if isinstance(value, (int, float)):
        return bool(value)
    return False


def _probability(value: Any) -> Any:
    # Kept as returned; validation decides whether it is usable.
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return None


@dataclass(frozen=True)
class QuestionClarity:
    question: str = ""
    timeframe: str = ""
    thresholds: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"question": self.question, "timeframe": self.timeframe, "thresholds": self.thresholds}


@dataclass(frozen=True)
class Analysis:
    market_conditions: str = ""
    metrics: Tuple[str, ...] = ()
    key_data_points: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marketConditions": self.market_conditions,
            "metrics": list(self.metrics),
            "keyDataPoints": list(self.key_data_points),
        }


@dataclass(frozen=True)
class ProbabilityAssessment:
    probability: Any = None
    supporting_factors: Tuple[str, ...] = ()
    critical_assumptions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probability": self.probability,
            "supportingFactors": list(self.supporting_factors),
            "criticalAssumptions": list(self.critical_assumptions),
        }


@dataclass(frozen=True)
class Reasoning:
    evidence: Tuple[str, ...] = ()
    logical_steps: Tuple[str, ...] = ()
    uncertainties: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evidence": list(self.evidence),
            "logicalSteps": list(self.logical_steps),
            "uncertainties": list(self.uncertainties),
        }


@dataclass(frozen=True)
class CertaintyLevel:
    level: str = ""
    explanation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "explanation": self.explanation}


@dataclass(frozen=True)
class Assessment:
    """One model's structured opinion about a question."""
    question_clarity: QuestionClarity = field(default_factory=QuestionClarity)
    analysis: Analysis = field(default_factory=Analysis)
    probability_assessment: ProbabilityAssessment = field(default_factory=ProbabilityAssessment)
    reasoning: Reasoning = field(default_factory=Reasoning)
    certainty_level: CertaintyLevel = field(default_factory=CertaintyLevel)
    final_verdict: str = ""
    error: bool = False

    @classmethod
    def empty(cls) -> "Assessment":
        """Placeholder used when a model produced nothing usable."""
        return cls(error=True)

    @property
    def probability(self) -> Any:
        return self.probability_assessment.probability

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Assessment":
        clarity = _section(data, "questionClarity")
        analysis = _section(data, "analysis")
        prob = _section(data, "probabilityAssessment")
        reasoning = _section(data, "reasoning")
        certainty = _section(data, "certaintyLevel")
        level = _text(certainty.get("level")).strip().upper()
        return cls(
            question_clarity=QuestionClarity(
                question=_text(clarity.get("question")),
                timeframe=_text(clarity.get("timeframe")),
                thresholds=_text(clarity.get("thresholds")),
            ),
            analysis=Analysis(
                market_conditions=_text(analysis.get("marketConditions")),
                metrics=_strings(analysis.get("metrics")),
                key_data_points=_strings(analysis.get("keyDataPoints")),
            ),
            probability_assessment=ProbabilityAssessment(
                probability=_probability(prob.get("probability")),
                supporting_factors=_strings(prob.get("supportingFactors")),
                critical_assumptions=_strings(prob.get("criticalAssumptions")),
            ),
            reasoning=Reasoning(
                evidence=_strings(reasoning.get("evidence")),
                logical_steps=_strings(reasoning.get("logicalSteps")),
                uncertainties=_strings(reasoning.get("uncertainties")),
            ),
            certainty_level=CertaintyLevel(
                level=level if level in CERTAINTY_LEVELS else "",
                explanation=_text(certainty.get("explanation")),
            ),
            final_verdict=_text(data.get("finalVerdict")),
            error=_flag(data.get("error")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionClarity": self.question_clarity.to_dict(),
            "analysis": self.analysis.to_dict(),
            "probabilityAssessment": self.probability_assessment.to_dict(),
            "reasoning": self.reasoning.to_dict(),
            "certaintyLevel": self.certainty_level.to_dict(),
            "finalVerdict": self.final_verdict,
            "error": self.error,
        }


@dataclass(frozen=True)
class ModelDescriptor:
    name: str
    model_id: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelDescriptor":
        model_id = _text(data.get("model_id") or data.get("id")).strip()
        name = _text(data.get("name")).strip() or model_id
        return cls(name=name, model_id=model_id)


@dataclass(frozen=True)
class ModelResult:
    """A model's assessment, or the empty placeholder plus a diagnostic."""
    model: str
    model_id: str
    assessment: Assessment
    api_error: Optional[str] = None
    raw_response: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.api_error is None

    @classmethod
    def success(cls, descriptor: ModelDescriptor, assessment: Assessment, duration_ms: float = 0.0) -> "ModelResult":
        return cls(
            model=descriptor.name,
            model_id=descriptor.model_id,
            assessment=assessment,
            duration_ms=duration_ms,
        )

    @classmethod
    def failure(
        cls,
        descriptor: ModelDescriptor,
        api_error: str,
        raw_response: Optional[str] = None,
        duration_ms: float = 0.0,
    ) -> "ModelResult":
        return cls(
            model=descriptor.name,
            model_id=descriptor.model_id,
            assessment=Assessment.empty(),
            api_error=api_error,
            raw_response=raw_response,
            duration_ms=duration_ms,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelResult":
        return cls(
            model=_text(data.get("model")),
            model_id=_text(data.get("modelId")),
            assessment=Assessment.from_dict(data),
            api_error=data.get("apiError"),
            raw_response=data.get("rawResponse"),
            duration_ms=float(data.get("durationMs") or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "modelId": self.model_id,
            **self.assessment.to_dict(),
            "durationMs": self.duration_ms,
        }
        if self.api_error is not None:
            payload["apiError"] = self.api_error
        if self.raw_response is not None:
            payload["rawResponse"] = self.raw_response
        return payload


@dataclass(frozen=True)
class AggregateReport:
    mean_probability: Optional[float]
    valid_models_count: int
    total_models_count: int
    model_names: Tuple[str, ...] = ()
    model_probabilities: Dict[str, float] = field(default_factory=dict)
    final_probability: Optional[float] = None

    @property
    def quorum_met(self) -> bool:
        return self.mean_probability is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregateReport":
        return cls(
            mean_probability=data.get("meanProbability"),
            valid_models_count=int(data.get("validModelsCount") or 0),
            total_models_count=int(data.get("totalModelsCount") or 0),
            model_names=tuple(data.get("modelNames") or ()),
            model_probabilities=dict(data.get("modelProbabilities") or {}),
            final_probability=data.get("finalProbability"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meanProbability": self.mean_probability,
            "validModelsCount": self.valid_models_count,
            "totalModelsCount": self.total_models_count,
            "modelNames": list(self.model_names),
            "modelProbabilities": dict(self.model_probabilities),
            "finalProbability": self.final_probability,
        }


@dataclass(frozen=True)
class PredictionIndexEntry:
    resolved: bool = False
    truth: Tuple[float, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PredictionIndexEntry":
        return cls(
            resolved=bool(data.get("resolved", False)),
            truth=tuple(float(v) for v in data.get("truth") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"resolved": self.resolved, "truth": list(self.truth)}


@dataclass(frozen=True)
class Resolution:
    """Persisted outcome for one question index."""
    index: str
    question: str
    context: Optional[str]
    results: Dict[str, ModelResult]
    aggregate: AggregateReport
    truth: Tuple[float, ...] = ()
    resolved: bool = False
    updated_at: str = ""

    @property
    def entry(self) -> PredictionIndexEntry:
        return PredictionIndexEntry(resolved=self.resolved, truth=self.truth)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resolution":
        results = data.get("results") or {}
        return cls(
            index=_text(data.get("index")),
            question=_text(data.get("question")),
            context=data.get("context"),
            results={name: ModelResult.from_dict(item) for name, item in results.items()},
            aggregate=AggregateReport.from_dict(data.get("aggregate") or {}),
            truth=tuple(float(v) for v in data.get("truth") or ()),
            resolved=bool(data.get("resolved", False)),
            updated_at=_text(data.get("updatedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "question": self.question,
            "context": self.context,
            "results": {name: result.to_dict() for name, result in self.results.items()},
            "aggregate": self.aggregate.to_dict(),
            "truth": list(self.truth),
            "resolved": self.resolved,
            "updatedAt": self.updated_at,
        }

