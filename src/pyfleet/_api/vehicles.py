"""Vehicle endpoints: ``GET /vehicles`` and ``GET /vehicles/:id/location``."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pyfleet._redact import redact_for_log
from pyfleet._transport import Transport
from pyfleet.exceptions import FleetApiError
from pyfleet.models._base import EntityId
from pyfleet.models.entity import Entity, Position

_logger = logging.getLogger(__name__)


def parse_vehicle_list(payload: Any, *, endpoint: str = "/vehicles") -> list[Entity]:
    """Parse a ``{"vehicles": [...]}`` body.

    Items that fail validation are skipped and logged; one bad record
    does not discard the snapshot.
    """
    if isinstance(payload, dict):
        items = payload.get("vehicles")
    else:
        items = payload
    if items is None:
        items = []
    if not isinstance(items, list):
        raise FleetApiError(f"{endpoint} returned a non-list 'vehicles' field", endpoint=endpoint)

    entities: list[Entity] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            entities.append(Entity.model_validate(item))
        except ValidationError:
            _logger.debug("Skipping invalid vehicle record %s", redact_for_log(item), exc_info=True)
    return entities


async def fetch_vehicle_list(transport: Transport, *, token: str | None) -> list[Entity]:
    """Fetch every entity visible to the authenticated user."""
    payload = await transport.request_json("GET", "/vehicles", token=token)
    return parse_vehicle_list(payload)


async def fetch_vehicle_location(
    transport: Transport,
    vehicle_id: EntityId,
    *,
    token: str | None,
) -> Position | None:
    """Fetch the last known position of one entity, or ``None`` if it has no fix."""
    endpoint = f"/vehicles/{vehicle_id}/location"
    payload = await transport.request_json("GET", endpoint, token=token)
    if not isinstance(payload, dict):
        return None
    location = payload.get("location", payload)
    if not isinstance(location, dict) or not location:
        return None
    try:
        return Position.model_validate(location)
    except ValidationError as exc:
        raise FleetApiError(f"{endpoint} returned an invalid location", endpoint=endpoint) from exc
