from __future__ import annotations

import pytest

from pyfleet.models import Entity, EntityCategory, LocationUpdate
from pyfleet.state import VehicleStore
from pyfleet.trajectory import (
    SELECTED_Z_INDEX,
    UNSELECTED_Z_INDEX,
    TrackChange,
    TrajectoryAccumulator,
    max_points,
    trajectory_style,
)


def test_bounds_depend_on_category() -> None:
    assert max_points(EntityCategory.PEDESTRIAN) == 200
    assert max_points(EntityCategory.VEHICLE) == 150
    assert max_points(EntityCategory.BICYCLE) == 150


def test_pedestrian_trajectory_evicts_oldest_first() -> None:
    accumulator = TrajectoryAccumulator()

    for index in range(250):
        accumulator.on_location("walker", (float(index), 0.0), EntityCategory.PEDESTRIAN)

    points = accumulator.points("walker")
    assert len(points) == 200
    assert points[0] == (50.0, 0.0)
    assert points[-1] == (249.0, 0.0)


def test_vehicle_trajectory_is_bounded_at_150() -> None:
    accumulator = TrajectoryAccumulator()

    for index in range(151):
        length = accumulator.on_location(1, (0.0, float(index)), EntityCategory.VEHICLE)

    assert length == 150
    assert accumulator.points(1)[0] == (0.0, 1.0)


def test_repeated_points_are_kept() -> None:
    accumulator = TrajectoryAccumulator()

    accumulator.on_location(1, (1.0, 1.0), EntityCategory.VEHICLE)
    accumulator.on_location(1, (1.0, 1.0), EntityCategory.VEHICLE)

    assert accumulator.points(1) == ((1.0, 1.0), (1.0, 1.0))


def test_clear_notifies_listeners() -> None:
    accumulator = TrajectoryAccumulator()
    changes: list[TrackChange] = []
    accumulator.subscribe(changes.append)

    accumulator.on_location(1, (1.0, 1.0), EntityCategory.VEHICLE)
    assert accumulator.clear(1)
    assert accumulator.clear(1) is False

    assert changes == [TrackChange(entity_id=1), TrackChange(entity_id=1, cleared=True)]
    assert accumulator.points(1) == ()


@pytest.mark.asyncio
async def test_attached_accumulator_follows_store() -> None:
    snapshots = [
        [Entity.model_validate({"id": 1, "type": "person"}), Entity.model_validate({"id": 2})],
        [Entity.model_validate({"id": 2})],
    ]

    async def _fetch() -> list[Entity]:
        return snapshots.pop(0)

    store = VehicleStore(fetch_snapshot=_fetch)
    accumulator = TrajectoryAccumulator()
    accumulator.attach(store)
    await store.load_snapshot()

    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.0, longitude=69.0))
    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.1, longitude=69.1))
    store.merge_location(2, LocationUpdate(vehicle_id=2, latitude=41.2, longitude=69.2))
    store.merge_location(9, LocationUpdate(vehicle_id=9, latitude=41.2, longitude=69.2))

    assert accumulator.points(1) == ((41.0, 69.0), (41.1, 69.1))
    assert 9 not in accumulator

    await store.load_snapshot()

    assert 1 not in accumulator
    assert accumulator.entity_ids == (2,)

    accumulator.dispose()
    store.merge_location(2, LocationUpdate(vehicle_id=2, latitude=41.3, longitude=69.3))
    assert len(accumulator) == 0


def test_style_reflects_selection_status_and_category() -> None:
    entity = Entity.model_validate({"id": 1, "status": "online", "type": "person"})

    selected = trajectory_style(entity, selected=True)
    unselected = trajectory_style(entity, selected=False)

    assert selected.color == "#22c55e"
    assert selected.width == 2
    assert selected.opacity == 0.9
    assert selected.dash_array is None
    assert selected.z_index == SELECTED_Z_INDEX
    assert unselected.opacity == 0.4
    assert unselected.dash_array == "2, 8"
    assert unselected.z_index == UNSELECTED_Z_INDEX


def test_style_color_follows_status() -> None:
    idle = Entity.model_validate({"id": 1, "status": "idle"})
    offline = Entity.model_validate({"id": 2})

    assert trajectory_style(idle, selected=False).color == "#eab308"
    assert trajectory_style(offline, selected=False).color == "#ef4444"
    assert trajectory_style(offline, selected=False).width == 4
