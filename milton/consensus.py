"""Quorum-gated consensus over per-model probabilities."""
from __future__ import annotations

from typing import Dict, Mapping, Optional, Tuple

from milton.schema import AggregateReport, ModelResult
from milton.validation import validate_probability

QUORUM_RATIO = 0.5


def quorum_met(valid_count: int, total_count: int, ratio: float = QUORUM_RATIO) -> bool:
    """Exactly half of the panel is enough."""
    if valid_count <= 0:
        return False
    return valid_count >= total_count * ratio


def aggregate(results: Mapping[str, ModelResult], total_model_count: int) -> AggregateReport:
    probabilities: Dict[str, float] = {}
    for name in sorted(results):
        probability = validate_probability(results[name].assessment)
        if probability is not None:
            probabilities[name] = probability

    valid_count = len(probabilities)
    mean: Optional[float] = None
    if quorum_met(valid_count, total_model_count):
        mean = sum(probabilities.values()) / valid_count

    return AggregateReport(
        mean_probability=mean,
        valid_models_count=valid_count,
        total_models_count=total_model_count,
        model_names=tuple(probabilities),
        model_probabilities=probabilities,
        final_probability=mean,
    )


def truth_vector(probability: float) -> Tuple[float, float]:
    """``[P(false), P(true)]`` for a probability expressed in percent."""
    p_true = probability / 100.0
    return (1.0 - p_true, p_true)

