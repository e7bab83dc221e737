"""Probability validation for parsed assessments."""
from __future__ import annotations

from typing import Any, Mapping, Optional
import math

from milton.schema import Assessment

MIN_PROBABILITY = 0.0
MAX_PROBABILITY = 100.0


def coerce_probability(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
        if not value:
            return None
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (OverflowError, ValueError):
        # JSON integers are unbounded; anything past float range is unusable.
        return None
    if not math.isfinite(number):
        return None
    if number < MIN_PROBABILITY or number > MAX_PROBABILITY:
        return None
    return number


def validate_probability(assessment: Assessment | Mapping[str, Any] | None) -> Optional[float]:
    """Return the usable probability of an assessment, or None.

    None is the expected outcome for a large share of upstream replies and is
    not an error. Accepts either a parsed ``Assessment`` or the raw mapping a
    model returned.
    """
    if isinstance(assessment, Assessment):
        return coerce_probability(assessment.probability)
    if isinstance(assessment, Mapping):
        section = assessment.get("probabilityAssessment")
        if not isinstance(section, Mapping):
            return None
        return coerce_probability(section.get("probability"))
    return None
