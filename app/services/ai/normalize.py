"""Coercion helpers applied to raw model output before schema validation"""
import logging
import math
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


def to_number(value: Any, default: float = 0.0) -> float:
    """Best-effort numeric coercion: numbers, numeric strings, else ``default``."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return default
    else:
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def clamp_score(value: Any, lo: int = 0, hi: int = 100, field: Optional[str] = None) -> int:
    """Round ``value`` to an integer inside [lo, hi]."""
    number = to_number(value, default=float(lo))
    clamped = int(round(min(max(number, lo), hi)))
    if number < lo or number > hi:
        logger.warning("%s out of range: %s, normalized to %s", field or "score", value, clamped)
    return clamped


def string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return []


def as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}
