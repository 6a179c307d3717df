"""Tracked entity model."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator

from pyfleet.ingestion.normalize import safe_float, safe_int, safe_str
from pyfleet.models._base import EntityId, FleetBaseModel, FleetTimestamp


class EntityStatus(StrEnum):
    """Live connectivity status of a tracked entity."""

    ONLINE = "online"
    IDLE = "idle"
    OFFLINE = "offline"

    @classmethod
    def _missing_(cls, value: object) -> EntityStatus | None:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    @classmethod
    def parse(cls, value: Any) -> EntityStatus | None:
        """Return the matching status, or ``None`` for missing/unknown values."""
        if isinstance(value, EntityStatus):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class EntityCategory(StrEnum):
    """Kind of tracked object; drives icon and trajectory styling."""

    VEHICLE = "vehicle"
    PEDESTRIAN = "pedestrian"
    BICYCLE = "bicycle"
    SCOOTER = "scooter"

    @classmethod
    def parse(cls, value: Any) -> EntityCategory:
        """Map API type labels to a category. Unknown labels are vehicles."""
        if isinstance(value, EntityCategory):
            return value
        text = safe_str(value)
        if text is None:
            return cls.VEHICLE
        return _CATEGORY_ALIASES.get(text.lower(), cls.VEHICLE)


_CATEGORY_ALIASES: dict[str, EntityCategory] = {
    "vehicle": EntityCategory.VEHICLE,
    "car": EntityCategory.VEHICLE,
    "truck": EntityCategory.VEHICLE,
    "bus": EntityCategory.VEHICLE,
    "van": EntityCategory.VEHICLE,
    "pedestrian": EntityCategory.PEDESTRIAN,
    "person": EntityCategory.PEDESTRIAN,
    "walker": EntityCategory.PEDESTRIAN,
    "bicycle": EntityCategory.BICYCLE,
    "bike": EntityCategory.BICYCLE,
    "scooter": EntityCategory.SCOOTER,
    "moto": EntityCategory.SCOOTER,
    "motorcycle": EntityCategory.SCOOTER,
}


class Position(FleetBaseModel):
    """Last known position of an entity.

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    speed : float
        Ground speed in km/h. Defaults to ``0`` when absent.
    heading : float or None
        Heading in degrees, when reported.
    """

    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lng", "lon"))
    speed: float = Field(default=0.0, validation_alias=AliasChoices("speed"))
    heading: float | None = Field(default=None, validation_alias=AliasChoices("heading", "direction"))

    @field_validator("latitude")
    @classmethod
    def _check_latitude(cls, value: float) -> float:
        if not -90.0 <= value <= 90.0:
            raise ValueError(f"latitude out of range: {value}")
        return value

    @field_validator("longitude")
    @classmethod
    def _check_longitude(cls, value: float) -> float:
        if not -180.0 <= value <= 180.0:
            raise ValueError(f"longitude out of range: {value}")
        return value

    @field_validator("speed", mode="before")
    @classmethod
    def _default_speed(cls, value: Any) -> float:
        parsed = safe_float(value)
        return parsed if parsed is not None else 0.0

    @field_validator("heading", mode="before")
    @classmethod
    def _coerce_heading(cls, value: Any) -> float | None:
        return safe_float(value)

    @property
    def point(self) -> tuple[float, float]:
        """``(latitude, longitude)`` pair."""
        return (self.latitude, self.longitude)


class Driver(FleetBaseModel):
    """Driver currently assigned to a vehicle."""

    name: str = ""
    phone: str = ""


class Entity(FleetBaseModel):
    """A tracked object.

    Descriptive attributes (name, plate, category, model, year, color)
    are fixed once loaded. Live attributes (status, position,
    last_update, battery) change only through the store's merge
    operations, which replace the whole instance.
    """

    id: EntityId
    name: str = ""
    plate: str = Field(default="", validation_alias=AliasChoices("plate", "plate_number", "plateNumber", "label"))
    category: EntityCategory = Field(
        default=EntityCategory.VEHICLE,
        validation_alias=AliasChoices("category", "type"),
    )
    model: str | None = None
    year: int | None = None
    color: str | None = None
    driver: Driver | None = None

    status: EntityStatus = EntityStatus.OFFLINE
    position: Position | None = Field(default=None, validation_alias=AliasChoices("position", "location"))
    last_update: FleetTimestamp = Field(
        default=None,
        validation_alias=AliasChoices("last_update", "lastUpdate", "updated_at", "updatedAt"),
    )
    battery: float | None = None

    source: Literal["live", "demo"] = "live"
    """Where this record came from; demo records are illustrative only."""

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> EntityCategory:
        return EntityCategory.parse(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> EntityStatus:
        return EntityStatus.parse(value) or EntityStatus.OFFLINE

    @field_validator("year", mode="before")
    @classmethod
    def _coerce_year(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("battery", mode="before")
    @classmethod
    def _coerce_battery(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("position", mode="before")
    @classmethod
    def _drop_incomplete_position(cls, value: Any) -> Any:
        # The API reports ``location: {}`` for vehicles that never sent a fix.
        if isinstance(value, dict) and not value:
            return None
        return value

    @property
    def is_demo(self) -> bool:
        return self.source == "demo"

    @property
    def last_seen(self) -> datetime | None:
        return self.last_update
