"""Speed limit attribute parsing and road class defaults."""

import re
from typing import Any, Optional

from .config import DEFAULT_LIMITS_KMH, FALLBACK_LIMIT_KMH

_LEADING_INT = re.compile(r"\d+")


def parse_maxspeed(raw: Any) -> Optional[int]:
    """
    Parse an OSM maxspeed value to km/h.

    Common forms are "50", "50 km/h", "signals" and "walk". Only a leading
    integer is read, so unit suffixes are ignored. Returns None when the
    value has no leading digits.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    match = _LEADING_INT.match(text)
    if not match:
        return None
    return int(match.group())


def default_limit_for(road_class: Optional[str]) -> int:
    """Conservative fallback limit (km/h) for a highway class label."""
    return DEFAULT_LIMITS_KMH.get(road_class, FALLBACK_LIMIT_KMH)
