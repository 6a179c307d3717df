"""Alert model."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from pyfleet.models._base import EntityId, FleetBaseModel, FleetTimestamp


class Alert(FleetBaseModel):
    """A server-raised alert about one entity (speeding, geofence exit, ...)."""

    id: EntityId | None = None
    type: str = ""
    message: str = ""
    severity: str = "info"
    entity_id: EntityId | None = Field(
        default=None,
        validation_alias=AliasChoices("entity_id", "vehicle_id", "vehicleId"),
    )
    timestamp: FleetTimestamp = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "created_at", "createdAt"),
    )
