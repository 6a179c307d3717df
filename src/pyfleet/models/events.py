"""Typed push-channel events.

Every frame received on the push channel is converted into exactly one
of these variants by :mod:`pyfleet.ingestion.channel`. Handlers never
see the raw payload shape.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator

from pyfleet.ingestion.normalize import safe_float, safe_str
from pyfleet.models._base import EntityId, FleetBaseModel, FleetTimestamp
from pyfleet.models.alert import Alert
from pyfleet.models.entity import EntityStatus


class EventKind(StrEnum):
    """Wire names of the events the server pushes."""

    LOCATION_UPDATE = "location:update"
    VEHICLE_STATUS = "vehicle:status"
    ALERT_NEW = "alert:new"
    VEHICLE_NEW = "vehicle:new"
    TRIP_STARTED = "trip:started"
    TRIP_ENDED = "trip:ended"
    CONNECTION_SUCCESS = "connection:success"


class ChannelCommand(StrEnum):
    """Wire names of the commands the client sends."""

    SUBSCRIBE_ALL = "subscribe:all"
    SUBSCRIBE_VEHICLE = "subscribe:vehicle"
    UNSUBSCRIBE_VEHICLE = "unsubscribe:vehicle"


class LocationUpdate(FleetBaseModel):
    """``location:update``: a new position fix for one entity.

    ``latitude``/``longitude`` are optional so a malformed fix still
    carries its status and timestamp; the store keeps the prior value
    for any coordinate that is missing. ``speed`` defaults to ``0``.
    """

    kind: Literal[EventKind.LOCATION_UPDATE] = EventKind.LOCATION_UPDATE
    vehicle_id: EntityId = Field(validation_alias=AliasChoices("vehicle_id", "vehicleId", "id"))
    latitude: float | None = Field(default=None, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float | None = Field(default=None, validation_alias=AliasChoices("longitude", "lng", "lon"))
    speed: float = 0.0
    direction: float | None = Field(default=None, validation_alias=AliasChoices("direction", "heading"))
    status: EntityStatus | None = None
    recorded_at: FleetTimestamp = Field(
        default=None,
        validation_alias=AliasChoices("recorded_at", "recordedAt", "timestamp"),
    )

    @field_validator("latitude", mode="before")
    @classmethod
    def _coerce_latitude(cls, value: Any) -> float | None:
        parsed = safe_float(value)
        if parsed is None or not -90.0 <= parsed <= 90.0:
            return None
        return parsed

    @field_validator("longitude", mode="before")
    @classmethod
    def _coerce_longitude(cls, value: Any) -> float | None:
        parsed = safe_float(value)
        if parsed is None or not -180.0 <= parsed <= 180.0:
            return None
        return parsed

    @field_validator("speed", mode="before")
    @classmethod
    def _default_speed(cls, value: Any) -> float:
        parsed = safe_float(value)
        return parsed if parsed is not None else 0.0

    @field_validator("direction", mode="before")
    @classmethod
    def _coerce_direction(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> EntityStatus | None:
        return EntityStatus.parse(value)


class StatusUpdate(FleetBaseModel):
    """``vehicle:status``: status and/or battery change for one entity."""

    kind: Literal[EventKind.VEHICLE_STATUS] = EventKind.VEHICLE_STATUS
    vehicle_id: EntityId = Field(validation_alias=AliasChoices("vehicle_id", "vehicleId", "id"))
    status: EntityStatus | None = None
    battery: float | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> EntityStatus | None:
        return EntityStatus.parse(value)

    @field_validator("battery", mode="before")
    @classmethod
    def _coerce_battery(cls, value: Any) -> float | None:
        return safe_float(value)


class NewAlert(FleetBaseModel):
    """``alert:new``."""

    kind: Literal[EventKind.ALERT_NEW] = EventKind.ALERT_NEW
    alert: Alert


class NewEntity(FleetBaseModel):
    """``vehicle:new``: an entity was registered server-side.

    The payload is partial; only the id and display name are kept. The
    authoritative record comes from the next snapshot.
    """

    kind: Literal[EventKind.VEHICLE_NEW] = EventKind.VEHICLE_NEW
    vehicle_id: EntityId | None = Field(default=None, validation_alias=AliasChoices("vehicle_id", "vehicleId", "id"))
    name: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str | None:
        return safe_str(value)


class TripEvent(FleetBaseModel):
    """``trip:started`` / ``trip:ended``."""

    kind: Literal[EventKind.TRIP_STARTED, EventKind.TRIP_ENDED]
    trip_id: EntityId | None = Field(default=None, validation_alias=AliasChoices("trip_id", "tripId", "id"))
    vehicle_id: EntityId | None = Field(default=None, validation_alias=AliasChoices("vehicle_id", "vehicleId"))
    occurred_at: FleetTimestamp = Field(
        default=None,
        validation_alias=AliasChoices("occurred_at", "start_time", "startTime", "end_time", "endTime"),
    )


class ConnectionSuccess(FleetBaseModel):
    """``connection:success``: server greeting after the handshake."""

    kind: Literal[EventKind.CONNECTION_SUCCESS] = EventKind.CONNECTION_SUCCESS
    message: str | None = None
    user_id: EntityId | None = Field(default=None, validation_alias=AliasChoices("user_id", "userId"))


ChannelEvent = LocationUpdate | StatusUpdate | NewAlert | NewEntity | TripEvent | ConnectionSuccess
"""Union of every typed push-channel event."""
