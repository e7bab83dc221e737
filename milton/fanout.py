"""Concurrent fan-out of one assessment request per configured model."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Dict, Iterable, List, Optional
import logging
import math

from milton.audit import AuditLog
from milton.parser import ParseError, parse_assessment
from milton.prompts import SYSTEM_PROMPT
from milton.schema import ModelDescriptor, ModelResult

logger = logging.getLogger(__name__)

# Extra time granted on top of the per-call timeout before a worker is abandoned.
JOIN_GRACE_SECONDS = 5.0


class ModelFanOut:
    """Queries every model on the panel at once and collects one result each.

    ``client`` is anything with ``generate(prompt, model, system, timeout)``
    returning an object with ``ok``, ``text``, ``error`` and ``duration_ms``.
    A failing model never fails the batch: it contributes an empty assessment
    with a diagnostic instead.
    """

    def __init__(
        self,
        client: Any,
        system_prompt: str = SYSTEM_PROMPT,
        timeout_seconds: float = 60.0,
        max_workers: int = 8,
        audit: Optional[AuditLog] = None,
    ) -> None:
        self.client = client
        self.system_prompt = system_prompt
        self.timeout_seconds = timeout_seconds
        self.max_workers = max_workers
        self.audit = audit

    def query_all(self, prompt: str, question: str, models: Iterable[ModelDescriptor]) -> Dict[str, ModelResult]:
        panel: List[ModelDescriptor] = list(models)
        if not panel:
            return {}
        workers = max(1, min(self.max_workers, len(panel)))
        logger.info(f"Querying {len(panel)} models for question: {question[:80]}")
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="milton-fanout")
        try:
            futures = [executor.submit(self._query_one, descriptor, prompt, question) for descriptor in panel]
            # Models beyond max_workers queue behind earlier ones, one call timeout per wave.
            waves = math.ceil(len(panel) / workers)
            wait(futures, timeout=self.timeout_seconds * waves + JOIN_GRACE_SECONDS)
            results: Dict[str, ModelResult] = {}
            for descriptor, future in zip(panel, futures):
                if not future.done():
                    future.cancel()
                    logger.warning(f"{descriptor.name} did not finish within {self.timeout_seconds}s")
                    results[descriptor.name] = ModelResult.failure(
                        descriptor,
                        f"timeout after {self.timeout_seconds}s",
                    )
                    continue
                try:
                    results[descriptor.name] = future.result()
                except Exception as exc:
                    logger.warning(f"{descriptor.name} query crashed: {exc}")
                    results[descriptor.name] = ModelResult.failure(descriptor, f"unexpected error: {exc}")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        ok_count = sum(1 for result in results.values() if result.ok)
        logger.info(f"Fan-out finished: {ok_count}/{len(panel)} models returned an assessment")
        return results

    def _query_one(self, descriptor: ModelDescriptor, prompt: str, question: str) -> ModelResult:
        result = self.client.generate(
            prompt=prompt,
            model=descriptor.model_id,
            system=self.system_prompt,
            timeout=self.timeout_seconds,
        )
        duration_ms = round(float(getattr(result, "duration_ms", 0.0) or 0.0), 2)
        payload = {
            "model": descriptor.name,
            "model_id": descriptor.model_id,
            "question": question,
            "ok": bool(result.ok),
            "duration_ms": duration_ms,
            "error": result.error,
        }
        if not result.ok:
            logger.warning(f"{descriptor.name} call failed: {result.error}")
            self._audit("model.call", payload)
            return ModelResult.failure(descriptor, result.error or "unknown error", duration_ms=duration_ms)

        parsed = parse_assessment(result.text)
        if isinstance(parsed, ParseError):
            logger.warning(f"{descriptor.name} reply could not be parsed: {parsed.message}")
            payload.update({"ok": False, "error": f"parse error: {parsed.message}"})
            self._audit("model.call", payload)
            return ModelResult.failure(
                descriptor,
                f"parse error: {parsed.message}",
                raw_response=parsed.raw_sample,
                duration_ms=duration_ms,
            )
        self._audit("model.call", payload)
        return ModelResult.success(descriptor, parsed, duration_ms=duration_ms)

    def _audit(self, event: str, payload: Dict[str, Any]) -> None:
        if self.audit:
            self.audit.log(event, payload)
