from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from pyfleet.exceptions import FleetConfigError, FleetTransportError
from pyfleet.models import Alert, Entity, EntityStatus, LocationUpdate, NewEntity, StatusUpdate
from pyfleet.state import ChangeKind, StoreChange, VehicleStore
from pyfleet.trajectory import TrajectoryAccumulator


def _now() -> datetime:
    return datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def _entity(entity_id: int, lat: float = 41.3, lng: float = 69.2, **extra: object) -> Entity:
    return Entity.model_validate(
        {"id": entity_id, "name": f"Vehicle {entity_id}", "location": {"lat": lat, "lng": lng}, **extra}
    )


async def _store_with(*entities: Entity) -> VehicleStore:
    async def _fetch() -> list[Entity]:
        return list(entities)

    store = VehicleStore(fetch_snapshot=_fetch, clock=_now)
    assert await store.load_snapshot() is True
    return store


@pytest.mark.asyncio
async def test_snapshot_replaces_collection_and_flags_live() -> None:
    store = await _store_with(_entity(1), _entity(2))

    assert len(store) == 2
    assert store.source == "live"
    assert not store.is_demo
    assert store.loading is False
    assert store.error is None


@pytest.mark.asyncio
async def test_merge_location_for_unknown_entity_is_a_noop() -> None:
    store = await _store_with(_entity(1))
    changes: list[StoreChange] = []
    store.subscribe(changes.append)

    result = store.merge_location(99, LocationUpdate(vehicle_id=99, latitude=1.0, longitude=2.0))

    assert result is None
    assert 99 not in store
    assert changes == []


@pytest.mark.asyncio
async def test_merge_location_keeps_missing_fields_and_defaults_speed() -> None:
    store = await _store_with(_entity(1, lat=41.0, lng=69.0, status="online"))
    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.5, longitude=69.5, speed=40, direction=90))

    merged = store.merge_location(1, LocationUpdate.model_validate({"vehicleId": 1, "lat": 41.6}))

    assert merged is not None
    assert merged.position is not None
    assert merged.position.latitude == 41.6
    assert merged.position.longitude == 69.5
    assert merged.position.heading == 90
    assert merged.position.speed == 0.0
    assert merged.status is EntityStatus.ONLINE
    assert merged.last_update == _now()


@pytest.mark.asyncio
async def test_merge_location_uses_recorded_timestamp_and_status() -> None:
    store = await _store_with(_entity(1))
    update = LocationUpdate.model_validate(
        {"vehicleId": "1", "lat": 41.0, "lng": 69.0, "status": "idle", "recordedAt": "2026-01-01T10:00:00Z"}
    )

    merged = store.merge_location(1, update)

    assert merged is not None
    assert merged.status is EntityStatus.IDLE
    assert merged.last_update == datetime(2026, 1, 1, 10, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_merge_replaces_entity_wholesale() -> None:
    store = await _store_with(_entity(1))
    before = store.get(1)

    store.merge_status(1, StatusUpdate(vehicle_id=1, status="offline", battery=12))
    after = store.get(1)

    assert before is not after
    assert after is not None
    assert after.status is EntityStatus.OFFLINE
    assert after.battery == 12
    assert before is not None and before.battery is None


@pytest.mark.asyncio
async def test_merge_status_keeps_absent_fields() -> None:
    store = await _store_with(_entity(1, status="online", battery=80))

    merged = store.merge_status(1, StatusUpdate(vehicle_id=1))

    assert merged is not None
    assert merged.status is EntityStatus.ONLINE
    assert merged.battery == 80


@pytest.mark.asyncio
async def test_selection_is_exclusive_and_ignores_unknown_ids() -> None:
    store = await _store_with(_entity(1), _entity(2))
    changes: list[StoreChange] = []
    store.subscribe(changes.append)

    assert store.select(1)
    assert store.select(2)
    assert store.selected_id == 2
    assert store.select(99) is False
    assert store.selected_id == 2
    assert store.select(2) is True
    assert store.select(None)
    assert store.selected is None

    assert [c.entity_id for c in changes if c.kind is ChangeKind.SELECTION] == [1, 2, None]


@pytest.mark.asyncio
async def test_alerts_are_capped_most_recent_first() -> None:
    store = VehicleStore(alert_limit=50)

    for index in range(60):
        store.append_alert(Alert(id=index, type="speeding", message=f"alert {index}"))

    assert len(store.alerts) == 50
    assert store.alerts[0].id == 59
    assert store.alerts[-1].id == 10


@pytest.mark.asyncio
async def test_snapshot_failure_keeps_previous_entities() -> None:
    calls = 0

    async def _fetch() -> list[Entity]:
        nonlocal calls
        calls += 1
        if calls > 1:
            raise FleetTransportError("boom", endpoint="/vehicles")
        return [_entity(1)]

    store = VehicleStore(fetch_snapshot=_fetch, clock=_now)
    await store.load_snapshot()
    changes: list[StoreChange] = []
    store.subscribe(changes.append)

    assert await store.load_snapshot() is False

    assert 1 in store
    assert store.error == "boom"
    assert store.loading is False
    assert [c.kind for c in changes] == [ChangeKind.LOADING, ChangeKind.LOADING, ChangeKind.ERROR]
    assert changes[-1].message == "boom"


@pytest.mark.asyncio
async def test_snapshot_timeout_is_reported_as_error() -> None:
    async def _fetch() -> list[Entity]:
        await asyncio.sleep(10)
        return []

    store = VehicleStore(fetch_snapshot=_fetch, snapshot_timeout=0.01)

    assert await store.load_snapshot() is False
    assert store.error is not None
    assert store.loading is False


@pytest.mark.asyncio
async def test_load_snapshot_without_fetcher_raises() -> None:
    with pytest.raises(FleetConfigError):
        await VehicleStore().load_snapshot()


@pytest.mark.asyncio
async def test_merges_during_fetch_are_replayed_onto_snapshot() -> None:
    release = asyncio.Event()

    async def _fetch() -> list[Entity]:
        await release.wait()
        return [_entity(1, lat=10.0, lng=10.0)]

    store = VehicleStore(fetch_snapshot=_fetch, clock=_now)
    task = asyncio.create_task(store.load_snapshot())
    await asyncio.sleep(0)
    assert store.loading is True

    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=50.0, longitude=20.0))
    release.set()
    assert await task is True

    entity = store.get(1)
    assert entity is not None and entity.position is not None
    assert entity.position.point == (50.0, 20.0)


@pytest.mark.asyncio
async def test_superseded_snapshot_does_not_commit() -> None:
    first_release = asyncio.Event()
    second_release = asyncio.Event()
    pending = [(first_release, [_entity(1)]), (second_release, [_entity(2)])]

    async def _fetch() -> list[Entity]:
        release, entities = pending.pop(0)
        await release.wait()
        return entities

    store = VehicleStore(fetch_snapshot=_fetch)
    first = asyncio.create_task(store.load_snapshot())
    await asyncio.sleep(0)
    second = asyncio.create_task(store.load_snapshot())
    await asyncio.sleep(0)

    second_release.set()
    assert await second is True
    first_release.set()
    assert await first is False

    assert [e.id for e in store.entities] == [2]


@pytest.mark.asyncio
async def test_snapshot_reload_reports_removed_and_clears_selection() -> None:
    snapshots = [[_entity(1), _entity(2)], [_entity(2)]]

    async def _fetch() -> list[Entity]:
        return snapshots.pop(0)

    store = VehicleStore(fetch_snapshot=_fetch)
    await store.load_snapshot()
    store.select(1)
    changes: list[StoreChange] = []
    store.subscribe(changes.append)

    await store.load_snapshot()

    snapshot = [c for c in changes if c.kind is ChangeKind.SNAPSHOT]
    assert snapshot[0].removed == (1,)
    assert store.selected_id is None


def test_demo_fleet_is_flagged() -> None:
    store = VehicleStore()

    store.load_demo()

    assert store.is_demo
    assert len(store) == 3
    assert all(entity.source == "demo" for entity in store.entities)
    assert all(entity.position is not None for entity in store.entities)


@pytest.mark.asyncio
async def test_new_entity_for_known_id_does_not_reload() -> None:
    calls = 0

    async def _fetch() -> list[Entity]:
        nonlocal calls
        calls += 1
        return [_entity(1), _entity(calls + 1)]

    store = VehicleStore(fetch_snapshot=_fetch)
    await store.load_snapshot()

    assert await store.upsert_new_entity(NewEntity(vehicle_id=1)) is False
    assert calls == 1
    assert await store.upsert_new_entity(NewEntity(vehicle_id=7, name="Bus")) is True
    assert calls == 2


@pytest.mark.asyncio
async def test_reentrant_changes_are_delivered_in_order() -> None:
    store = await _store_with(_entity(1))
    seen: list[ChangeKind] = []

    def _select_on_location(change: StoreChange) -> None:
        if change.kind is ChangeKind.LOCATION:
            store.select(change.entity_id)

    store.subscribe(_select_on_location)
    store.subscribe(lambda change: seen.append(change.kind))

    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=1.0, longitude=1.0))

    assert seen == [ChangeKind.LOCATION, ChangeKind.SELECTION]
    assert store.selected_id == 1


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others() -> None:
    store = await _store_with(_entity(1))
    seen: list[ChangeKind] = []

    def _broken(change: StoreChange) -> None:
        raise RuntimeError("listener bug")

    store.subscribe(_broken)
    unsubscribe = store.subscribe(lambda change: seen.append(change.kind))

    store.select(1)
    unsubscribe()
    store.select(None)

    assert seen == [ChangeKind.SELECTION]


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.mark.asyncio
async def test_replayed_merges_keep_receipt_time_and_reach_trajectories() -> None:
    received_at = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    clock = _Clock(received_at)
    release = asyncio.Event()

    async def _fetch() -> list[Entity]:
        await release.wait()
        return [_entity(1, lat=10.0, lng=10.0)]

    store = VehicleStore(fetch_snapshot=_fetch, clock=clock)
    accumulator = TrajectoryAccumulator()
    accumulator.attach(store)
    changes: list[StoreChange] = []
    store.subscribe(changes.append)

    task = asyncio.create_task(store.load_snapshot())
    await asyncio.sleep(0)
    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=50.0, longitude=20.0))
    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=50.1, longitude=20.1))
    clock.now = datetime(2026, 1, 1, 12, 5, tzinfo=UTC)
    release.set()
    await task

    entity = store.get(1)
    assert entity is not None
    assert entity.last_update == received_at
    assert accumulator.points(1) == ((50.0, 20.0), (50.1, 20.1))
    assert [c.kind for c in changes][-3:] == [ChangeKind.SNAPSHOT, ChangeKind.LOCATION, ChangeKind.LOCATION]


@pytest.mark.asyncio
async def test_merges_announced_during_fetch_are_not_repeated() -> None:
    release = asyncio.Event()
    snapshots = [[_entity(1)], [_entity(1)]]

    async def _fetch() -> list[Entity]:
        if len(snapshots) == 1:
            await release.wait()
        return snapshots.pop(0)

    store = VehicleStore(fetch_snapshot=_fetch, clock=_now)
    accumulator = TrajectoryAccumulator()
    accumulator.attach(store)
    await store.load_snapshot()

    task = asyncio.create_task(store.load_snapshot())
    await asyncio.sleep(0)
    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=50.0, longitude=20.0))
    release.set()
    await task

    entity = store.get(1)
    assert entity is not None and entity.position is not None
    assert entity.position.point == (50.0, 20.0)
    assert accumulator.points(1) == ((50.0, 20.0),)
