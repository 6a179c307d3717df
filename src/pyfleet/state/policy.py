"""Deterministic merge policy for live entity attributes.

Pure functions: each takes the current entity and one typed update and
returns the replacement entity. Nothing here touches store state.
"""

from __future__ import annotations

from datetime import datetime

from pyfleet.models.entity import Entity, Position
from pyfleet.models.events import LocationUpdate, StatusUpdate


def merge_location(entity: Entity, update: LocationUpdate, *, now: datetime) -> Entity:
    """Apply a ``location:update`` to *entity*.

    Policy:
    - A missing coordinate or heading keeps the prior value.
    - ``speed`` is always taken from the update (the boundary defaults it to 0).
    - ``status`` overwrites only when the update carries one.
    - ``last_update`` is ``recorded_at`` when present, else *now*.
    """
    prior = entity.position
    latitude = update.latitude if update.latitude is not None else (prior.latitude if prior else None)
    longitude = update.longitude if update.longitude is not None else (prior.longitude if prior else None)
    heading = update.direction if update.direction is not None else (prior.heading if prior else None)

    position = prior
    if latitude is not None and longitude is not None:
        position = Position(latitude=latitude, longitude=longitude, speed=update.speed, heading=heading)

    return entity.model_copy(
        update={
            "position": position,
            "status": update.status if update.status is not None else entity.status,
            "last_update": update.recorded_at or now,
        }
    )


def merge_status(entity: Entity, update: StatusUpdate) -> Entity:
    """Apply a ``vehicle:status`` to *entity*; absent fields keep their value."""
    return entity.model_copy(
        update={
            "status": update.status if update.status is not None else entity.status,
            "battery": update.battery if update.battery is not None else entity.battery,
        }
    )
