"""Idempotent resolution of prediction questions.

Each question index moves from UNRESOLVED to RESOLVED at most once. Two
records back this:

* ``resolutions_<index>``: the full Resolution (per-model results, aggregate
  report, truth vector, resolved flag).
* ``predictions``: a shared map of index -> ``{resolved, truth}`` that lets a
  caller check resolution state without loading per-model payloads.

Once the compact entry says ``resolved``, every later call returns the stored
Resolution unchanged and performs no model calls. The resolved commit re-reads
the entry under the ``predictions`` lock and only writes when it is still
unresolved, so concurrent callers racing on the same index commit once.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from milton.audit import AuditLog
from milton.config import Config
from milton.consensus import aggregate, truth_vector
from milton.errors import MiltonError, ResolutionError, StoreError
from milton.fanout import ModelFanOut
from milton.models.openrouter import OpenRouterClient
from milton.prompts import USER_PROMPT_TEMPLATE, compose_prompt
from milton.schema import ModelDescriptor, PredictionIndexEntry, Resolution
from milton.store import KeyValueStore

logger = logging.getLogger(__name__)

PREDICTIONS_KEY = "predictions"
RESOLUTION_KEY_PREFIX = "resolutions_"


def resolution_key(index: Any) -> str:
    return f"{RESOLUTION_KEY_PREFIX}{index}"


def _entry_from(key: str, value: Any) -> PredictionIndexEntry:
    if value is None:
        return PredictionIndexEntry()
    if not isinstance(value, dict):
        raise StoreError(f"Corrupt prediction entry for index {key}")
    try:
        return PredictionIndexEntry.from_dict(value)
    except (TypeError, ValueError) as exc:
        raise StoreError(f"Corrupt prediction entry for index {key}: {exc}") from exc


class Resolver:
    def __init__(
        self,
        store: KeyValueStore,
        fanout: ModelFanOut,
        models: List[ModelDescriptor],
        prompt_template: str = USER_PROMPT_TEMPLATE,
        audit: Optional[AuditLog] = None,
    ) -> None:
        self.store = store
        self.fanout = fanout
        self.models = list(models)
        self.prompt_template = prompt_template
        self.audit = audit

    @classmethod
    def from_config(cls, config: Config, client: Any = None) -> "Resolver":
        audit = AuditLog(config.data_dir / "audit.jsonl")
        if client is None:
            client = OpenRouterClient(
                api_key=config.openrouter_api_key,
                base_url=str(config.openrouter.get("base_url") or "https://openrouter.ai/api/v1"),
                referer=config.openrouter.get("referer"),
                temperature=config.openrouter.get("temperature"),
            )
        fanout = ModelFanOut(
            client,
            system_prompt=config.system_prompt,
            timeout_seconds=config.model_timeout_seconds,
            max_workers=config.max_workers,
            audit=audit,
        )
        return cls(
            store=KeyValueStore(config.data_dir),
            fanout=fanout,
            models=config.model_descriptors,
            prompt_template=config.prompt_template,
            audit=audit,
        )

    def resolve(self, index: Any, question: str, context: Optional[str] = None) -> Resolution:
        """Return the Resolution for ``index``, computing it only if needed."""
        key = str(index)
        try:
            entry = self._load_entry(key)
            if entry.resolved:
                stored = self._load_resolution(key)
                if stored is None:
                    raise StoreError(f"Index {key} is marked resolved but has no stored resolution")
                logger.info(f"Index {key} already resolved, returning stored resolution")
                self._audit("resolution.short_circuit", {"index": key})
                return stored
            stored = self._load_resolution(key)
        except StoreError:
            logger.exception(f"Failed to load stored state for index {key}")
            raise
        if stored is not None and stored.resolved:
            # The resolution record landed but the compact entry did not.
            logger.warning(f"Index {key} has a resolved record without an index entry, repairing")
            return self._commit(stored)

        if not question or not question.strip():
            raise ResolutionError(f"No question supplied for index {key}")
        prompt = compose_prompt(question, context, self.prompt_template)
        try:
            results = self.fanout.query_all(prompt, question, self.models)
            report = aggregate(results, len(self.models))
        except MiltonError:
            logger.exception(f"Resolution pipeline failed for index {key}")
            raise
        except Exception as exc:
            logger.exception(f"Resolution pipeline failed for index {key}")
            raise ResolutionError(f"Resolution of index {key} failed: {exc}") from exc

        resolved = report.quorum_met
        truth = truth_vector(report.mean_probability) if resolved else ()
        candidate = Resolution(
            index=key,
            question=question,
            context=context,
            results=results,
            aggregate=report,
            truth=truth,
            resolved=resolved,
            updated_at=datetime.now().astimezone().isoformat(timespec="seconds"),
        )
        try:
            return self._commit(candidate)
        except StoreError:
            logger.exception(f"Failed to commit resolution for index {key}")
            raise

    def get(self, index: Any) -> Optional[Resolution]:
        return self._load_resolution(str(index))

    def predictions(self) -> Dict[str, PredictionIndexEntry]:
        return {key: _entry_from(key, value) for key, value in self._load_predictions().items()}

    def indexes(self) -> List[str]:
        return [key[len(RESOLUTION_KEY_PREFIX):] for key in self.store.keys(RESOLUTION_KEY_PREFIX)]

    def _commit(self, candidate: Resolution) -> Resolution:
        key = candidate.index
        with self.store.locked(PREDICTIONS_KEY):
            predictions = self._load_predictions()
            current = _entry_from(key, predictions.get(key))
            if current.resolved:
                winner = self._load_resolution(key)
                if winner is None:
                    raise StoreError(f"Index {key} is marked resolved but has no stored resolution")
                logger.info(f"Index {key} was resolved concurrently, discarding this round")
                self._audit("resolution.race_lost", {"index": key})
                return winner
            self.store.put_json(resolution_key(key), candidate.to_dict())
            if not candidate.resolved:
                logger.info(
                    f"Index {key} unresolved: {candidate.aggregate.valid_models_count}"
                    f"/{candidate.aggregate.total_models_count} models gave a valid probability"
                )
                self._audit("resolution.unresolved", {
                    "index": key,
                    "valid": candidate.aggregate.valid_models_count,
                    "total": candidate.aggregate.total_models_count,
                })
                return candidate
            predictions[key] = candidate.entry.to_dict()
            self.store.put_json(PREDICTIONS_KEY, predictions)
        logger.info(f"Index {key} resolved at {candidate.aggregate.mean_probability:.2f}%")
        self._audit("resolution.committed", {
            "index": key,
            "mean_probability": candidate.aggregate.mean_probability,
            "truth": list(candidate.truth),
            "models": list(candidate.aggregate.model_names),
        })
        return candidate

    def _load_predictions(self) -> Dict[str, Any]:
        data = self.store.get_json(PREDICTIONS_KEY)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise StoreError(f"Expected an object under {PREDICTIONS_KEY}, got {type(data).__name__}")
        return data

    def _load_entry(self, key: str) -> PredictionIndexEntry:
        return _entry_from(key, self._load_predictions().get(key))

    def _load_resolution(self, key: str) -> Optional[Resolution]:
        data = self.store.get_json(resolution_key(key))
        if data is None:
            return None
        if not isinstance(data, dict):
            raise StoreError(f"Corrupt resolution record for index {key}")
        try:
            return Resolution.from_dict(data)
        except (TypeError, ValueError, AttributeError) as exc:
            raise StoreError(f"Corrupt resolution record for index {key}: {exc}") from exc

    def _audit(self, event: str, payload: Dict[str, Any]) -> None:
        if self.audit:
            self.audit.log(event, payload)
