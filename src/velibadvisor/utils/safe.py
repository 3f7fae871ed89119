from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence


_MISSING = object()


def safe_get(payload: Any, path: str | Sequence[Any], default: Any = None) -> Any:
    """
    Walk a nested provider response without raising on missing or partial data.

    `path` is either a dotted string (`"routes.0.summary.distance"`) or a sequence of keys.
    Integer-like segments index into lists/tuples. Any missing key, out-of-range index,
    `None` intermediate, or type mismatch returns `default`.
    """

    segments = path.split(".") if isinstance(path, str) else list(path)
    current = payload
    for segment in segments:
        if current is None:
            return default
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(segment)]
            except (ValueError, TypeError, IndexError):
                return default
        else:
            return default
        if current is _MISSING:
            return default
    return default if current is None else current


def safe_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def safe_int(value: Any, default: int = 0) -> int:
    number = safe_float(value)
    if number is None:
        return default
    return int(number)
