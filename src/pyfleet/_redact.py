"""Helpers for safe debug logging.

Channel frames and REST bodies can carry bearer tokens, refresh tokens
and driver contact details. This module redacts them before they reach
DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "accesstoken",
        "access_token",
        "refreshtoken",
        "refresh_token",
        "authorization",
        "cookie",
        "phone",
    }
)


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Redact authorization-like headers, keeping the scheme visible."""
    result: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() == "authorization":
            scheme, _, _ = value.partition(" ")
            result[key] = f"{scheme} <redacted>" if scheme else "<redacted>"
        else:
            result[key] = value
    return result
