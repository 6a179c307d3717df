"""Normalization helpers.

Centralizes defensive parsing of loosely-typed push and REST payloads.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def coerce_entity_id(value: Any) -> int | str | None:
    """Normalize an entity id so ``7`` and ``"7"`` address the same entity.

    Integral values (including numeric strings) become ``int``; any other
    non-empty string is kept verbatim. Returns ``None`` when no usable id
    is present.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = safe_str(value)
    if text is None:
        return None
    if text.lstrip("-").isdigit():
        return int(text)
    return text
