"""Illustrative fleet shown when no credential is available."""

from __future__ import annotations

from pyfleet.models.entity import Entity

_DEMO_FLEET: tuple[dict[str, object], ...] = (
    {
        "id": 1,
        "name": "Toyota Camry",
        "plate_number": "01A123BC",
        "type": "car",
        "status": "online",
        "battery": 87,
        "location": {"lat": 41.3111, "lng": 69.2797, "speed": 67},
    },
    {
        "id": 2,
        "name": "Chevrolet Lacetti",
        "plate_number": "01B456CD",
        "type": "car",
        "status": "idle",
        "battery": 95,
        "location": {"lat": 41.2856, "lng": 69.2035, "speed": 0},
    },
    {
        "id": 3,
        "name": "Isuzu NPR",
        "plate_number": "01C789EF",
        "type": "truck",
        "status": "online",
        "battery": 72,
        "location": {"lat": 41.3337, "lng": 69.2890, "speed": 45},
    },
)


def demo_entities() -> list[Entity]:
    """Fresh demo entities, every one flagged ``source="demo"``."""
    return [Entity.model_validate({**item, "source": "demo"}) for item in _DEMO_FLEET]
