from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

_OFFSET_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)s?$")
_COMPONENT_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?$")


def normalize_time_offset(time_offset: Any) -> float:
    """Convert any upstream time representation to float seconds.

    Accepts None, numbers, strings like ``"12.5s"`` and ``{seconds, nanos}``
    pairs (mappings or objects). Unrecognized shapes resolve to 0.0.
    """

    if time_offset is None or isinstance(time_offset, bool):
        return 0.0

    if isinstance(time_offset, int | float):
        value = float(time_offset)
        return value if math.isfinite(value) else 0.0

    if isinstance(time_offset, str):
        match = _OFFSET_PATTERN.match(time_offset.strip())
        return float(match.group(1)) if match else 0.0

    if isinstance(time_offset, Mapping):
        if "seconds" not in time_offset and "nanos" not in time_offset:
            return 0.0
        seconds = time_offset.get("seconds")
        nanos = time_offset.get("nanos")
    elif hasattr(time_offset, "seconds") or hasattr(time_offset, "nanos"):
        seconds = getattr(time_offset, "seconds", None)
        nanos = getattr(time_offset, "nanos", None)
    else:
        return 0.0

    total = _component(seconds) + _component(nanos) / 1e9
    return total if math.isfinite(total) else 0.0


def _component(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        return float(value) if math.isfinite(float(value)) else 0.0
    if isinstance(value, str) and _COMPONENT_PATTERN.match(value.strip()):
        return float(value.strip())
    return 0.0
