"""Base model and timestamp parsing for pyfleet payloads.

Every boundary model inherits from :class:`FleetBaseModel` which
provides:

* frozen instances, so entity state can only change by replacing the
  whole object;
* tolerance for unknown keys (``extra="ignore"``);
* a ``model_validator(mode="before")`` that drops ``None`` and empty
  strings so field defaults are used instead.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator

from pyfleet.ingestion.normalize import coerce_entity_id, safe_float

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Convert an epoch (seconds or milliseconds) or ISO-8601 string to a UTC datetime.

    Returns ``None`` for missing or unparseable values instead of raising,
    so a bad timestamp never rejects the rest of a payload.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            numeric = safe_float(text)
            if numeric is None:
                return None
            return parse_timestamp(numeric)
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    numeric = safe_float(value)
    if numeric is None:
        return None
    if numeric >= _MS_THRESHOLD:
        numeric /= 1000.0
    try:
        return datetime.fromtimestamp(numeric, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def _require_entity_id(value: Any) -> int | str:
    entity_id = coerce_entity_id(value)
    if entity_id is None:
        raise ValueError("entity id must be a non-empty integer or string")
    return entity_id


FleetTimestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces epoch numbers and ISO strings to UTC datetimes."""

EntityId = Annotated[int | str, BeforeValidator(_require_entity_id)]
"""Entity identity; numeric strings are normalized to ``int``."""


class FleetBaseModel(BaseModel):
    """Base for pyfleet payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            cleaned[key] = value
        return cleaned
