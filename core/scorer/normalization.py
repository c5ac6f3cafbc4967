"""
Score normalization for AI responses.

Upstream models return scores on either a 0-100 or a 0-1 scale. The scale is
inferred per value: anything above 1 is treated as a percentage. This is
ambiguous for a percentage of exactly 1: "1" reads as 1.0, not 0.01.
"""
import math
from typing import Any


class MalformedScoreError(ValueError):
    """Raised when a score cannot be interpreted as a number in range."""


def normalize_score(raw: Any) -> float:
    """Normalize a raw score to [0, 1].

    Examples:
        85 -> 0.85
        0.85 -> 0.85
        "72.5" -> 0.725
        130 -> 1.0 (clamped)
    """
    if isinstance(raw, bool):
        raise MalformedScoreError(f"Boolean is not a score: {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise MalformedScoreError(f"Non-numeric score: {raw!r}") from e

    if math.isnan(value) or math.isinf(value) or value < 0:
        raise MalformedScoreError(f"Score out of range: {raw!r}")

    if value > 1:
        value = value / 100.0
    return min(1.0, value)
