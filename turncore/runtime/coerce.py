"""Defensive coercion helpers shared by the mediation pipeline."""

from __future__ import annotations

import math
import re
from typing import Any, Iterable, List, Mapping, Optional

_TOKEN_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,30}$")
_TRUTHY = {"1", "true", "yes", "y", "on"}


def safe_str(value: Any, max_len: int = 200) -> str:
    if value is None:
        return ""
    try:
        text = value if isinstance(value, str) else str(value)
    except Exception:
        return ""
    return text[:max_len] if len(text) > max_len else text


def clamp01(value: Any) -> float:
    try:
        x = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(x):
        return 0.0
    return min(1.0, max(0.0, x))


def clamp_int(value: Any, low: int, high: int, fallback: int) -> int:
    if isinstance(value, bool):
        return fallback
    try:
        x = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(x):
        return fallback
    return min(high, max(low, int(x)))


def non_negative_int(value: Any) -> int:
    return clamp_int(value, 0, 2**53, 0)


def truthy(value: Any) -> bool:
    if value is True:
        return True
    if value is False or value is None:
        return False
    return safe_str(value, 40).strip().lower() in _TRUTHY


def norm_year(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        x = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(x):
        return None
    year = int(x)
    if year < 1900 or year > 2100:
        return None
    return year


def lower_token(value: Any, max_len: int = 40) -> str:
    return safe_str(value, max_len).strip().lower()


def norm_token(value: Any) -> str:
    """Return ``value`` as a routing token, or ``""`` when it is not token-shaped."""

    text = lower_token(value, 40)
    return text if _TOKEN_RE.match(text) else ""


def uniq_bounded(items: Any, limit: int = 8, item_len: int = 80) -> List[str]:
    out: List[str] = []
    if not isinstance(items, (list, tuple)):
        return out
    seen = set()
    for item in items:
        text = safe_str(item, item_len)
        if not text or text in seen:
            continue
        seen.add(text)
        out.append(text)
        if len(out) >= limit:
            break
    return out


def pick(payload: Mapping[str, Any], *keys: str) -> Any:
    """First non-``None`` value among ``keys`` (camelCase and snake_case aliases)."""

    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def any_match(patterns: Iterable["re.Pattern[str]"], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


__all__ = [
    "safe_str",
    "clamp01",
    "clamp_int",
    "non_negative_int",
    "truthy",
    "norm_year",
    "lower_token",
    "norm_token",
    "uniq_bounded",
    "pick",
    "as_mapping",
    "any_match",
]
