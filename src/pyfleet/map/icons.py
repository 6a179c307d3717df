"""Marker icon derivation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from pyfleet.models.entity import Entity, EntityCategory, EntityStatus
from pyfleet.trajectory import STATUS_COLORS

SELECTED_SIZE = 40
DEFAULT_SIZE = 32

CATEGORY_SYMBOLS: dict[EntityCategory, str] = {
    EntityCategory.VEHICLE: "car",
    EntityCategory.PEDESTRIAN: "person",
    EntityCategory.BICYCLE: "bike",
    EntityCategory.SCOOTER: "scooter",
}


class MarkerIcon(BaseModel):
    """Everything a widget needs to draw one entity marker."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    color: str
    size: int
    glow: bool
    label: str
    heading: float | None = None


def marker_icon(entity: Entity, *, selected: bool) -> MarkerIcon:
    """Icon for *entity*: category picks the symbol, status the color, selection the size and glow."""
    return MarkerIcon(
        symbol=CATEGORY_SYMBOLS.get(entity.category, CATEGORY_SYMBOLS[EntityCategory.VEHICLE]),
        color=STATUS_COLORS.get(entity.status, STATUS_COLORS[EntityStatus.OFFLINE]),
        size=SELECTED_SIZE if selected else DEFAULT_SIZE,
        glow=selected,
        label=entity.plate or entity.name or str(entity.id),
        heading=entity.position.heading if entity.position is not None else None,
    )
