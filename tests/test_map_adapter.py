from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import pytest

from pyfleet.config import MapSettings
from pyfleet.exceptions import FleetMapError
from pyfleet.map import AdapterState, Bounds, LatLng, MapAdapter, MapTheme, MarkerIcon
from pyfleet.models import Entity, LocationUpdate
from pyfleet.state import VehicleStore
from pyfleet.trajectory import TrajectoryAccumulator, TrajectoryStyle


class _RecordingWidget:
    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.markers: dict[int, tuple[LatLng, MarkerIcon, Callable[[], Any]]] = {}
        self.polylines: dict[int, tuple[list[LatLng], TrajectoryStyle]] = {}
        self.fail_create = False
        self.fail_camera = False
        self._next = 0

    def _handle(self) -> int:
        self._next += 1
        return self._next

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def create(self, container: str, *, center: LatLng, zoom: int) -> None:
        self.calls.append(("create", (container, center, zoom)))
        if self.fail_create:
            raise RuntimeError("container missing")

    def set_base_layer(self, url: str, *, theme: MapTheme) -> None:
        self.calls.append(("set_base_layer", (url, theme)))

    def add_marker(self, position: LatLng, icon: MarkerIcon, *, on_click: Callable[[], Any]) -> int:
        handle = self._handle()
        self.calls.append(("add_marker", handle))
        self.markers[handle] = (position, icon, on_click)
        return handle

    def remove_marker(self, handle: int) -> None:
        self.calls.append(("remove_marker", handle))
        del self.markers[handle]

    def add_polyline(self, points: Sequence[LatLng], style: TrajectoryStyle) -> int:
        handle = self._handle()
        self.calls.append(("add_polyline", handle))
        self.polylines[handle] = (list(points), style)
        return handle

    def remove_polyline(self, handle: int) -> None:
        self.calls.append(("remove_polyline", handle))
        del self.polylines[handle]

    def fly_to(self, center: LatLng, zoom: int, *, duration: float) -> None:
        self.calls.append(("fly_to", (center, zoom, duration)))
        if self.fail_camera:
            raise RuntimeError("camera busy")

    def fit_bounds(self, bounds: Bounds, *, padding: int) -> None:
        self.calls.append(("fit_bounds", (bounds, padding)))
        if self.fail_camera:
            raise RuntimeError("camera busy")

    def dispose(self) -> None:
        self.calls.append(("dispose", None))


class _UpdatingWidget(_RecordingWidget):
    def update_marker(self, handle: int, position: LatLng, icon: MarkerIcon) -> None:
        self.calls.append(("update_marker", handle))
        _, _, on_click = self.markers[handle]
        self.markers[handle] = (position, icon, on_click)

    def update_polyline(self, handle: int, points: Sequence[LatLng], style: TrajectoryStyle) -> None:
        self.calls.append(("update_polyline", handle))
        self.polylines[handle] = (list(points), style)


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _setup(
    widget: _RecordingWidget | None = None,
    *,
    fetch_snapshot: Callable[[], Awaitable[list[Entity]]] | None = None,
) -> tuple[_RecordingWidget, VehicleStore, TrajectoryAccumulator, MapAdapter, _Clock]:
    widget = widget or _RecordingWidget()
    store = VehicleStore(fetch_snapshot=fetch_snapshot)
    store.load_demo()
    accumulator = TrajectoryAccumulator()
    accumulator.attach(store)
    clock = _Clock()
    adapter = MapAdapter(widget, store, accumulator, settings=MapSettings(), clock=clock)
    return widget, store, accumulator, adapter, clock


def test_initialize_is_idempotent() -> None:
    widget, _, _, adapter, _ = _setup()

    assert adapter.initialize("map") is True
    assert adapter.initialize("map") is False

    assert widget.count("create") == 1
    assert adapter.state is AdapterState.READY
    assert len(widget.markers) == 3


def test_initialize_failure_allows_retry() -> None:
    widget, _, _, adapter, _ = _setup()
    widget.fail_create = True

    with pytest.raises(FleetMapError):
        adapter.initialize("map")
    assert adapter.state is AdapterState.UNINITIALIZED

    widget.fail_create = False
    assert adapter.initialize("map") is True


def test_operations_before_initialize_are_noops() -> None:
    widget, _, _, adapter, _ = _setup()

    assert adapter.focus_all() is False
    assert adapter.focus_on(1) is False
    adapter.sync_markers()

    assert widget.calls == []


def test_focus_all_fits_bounds_once() -> None:
    widget, _, _, adapter, _ = _setup()
    adapter.initialize("map")

    assert adapter.focus_all() is True

    assert widget.count("fit_bounds") == 1
    assert widget.count("fly_to") == 0
    bounds, padding = next(args for call, args in widget.calls if call == "fit_bounds")
    assert padding == 50
    assert bounds == Bounds(south=41.2856, west=69.2035, north=41.3337, east=69.2890)


def test_focus_on_is_guarded_while_camera_moves() -> None:
    widget, _, _, adapter, clock = _setup()
    adapter.initialize("map")

    assert adapter.focus_on(1) is True
    assert adapter.focus_on(2) is False
    clock.now += 1.6
    assert adapter.focus_on(2) is True

    assert widget.count("fly_to") == 2
    center, zoom, duration = next(args for call, args in widget.calls if call == "fly_to")
    assert center == LatLng(41.3111, 69.2797)
    assert zoom == 16
    assert duration == 1.0


def test_camera_errors_degrade_to_noop() -> None:
    widget, _, _, adapter, _ = _setup()
    adapter.initialize("map")
    widget.fail_camera = True

    assert adapter.focus_on(1) is False
    assert adapter.focus_all() is False

    widget.fail_camera = False
    assert adapter.focus_on(1) is True


def test_marker_click_selects_and_focuses() -> None:
    widget, store, _, adapter, _ = _setup()
    adapter.initialize("map")
    click = next(on_click for _, icon, on_click in widget.markers.values() if icon.label == "01B456CD")

    click()

    assert store.selected_id == 2
    assert widget.count("fly_to") == 1
    selected = [icon for _, icon, _ in widget.markers.values() if icon.glow]
    assert len(selected) == 1
    assert selected[0].size == 40
    assert selected[0].label == "01B456CD"


def test_markers_update_in_place_when_supported() -> None:
    widget, store, _, adapter, _ = _setup(_UpdatingWidget())
    adapter.initialize("map")

    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.4, longitude=69.3))

    assert widget.count("add_marker") == 3
    assert widget.count("remove_marker") == 0
    positions = {icon.label: position for position, icon, _ in widget.markers.values()}
    assert positions["01A123BC"] == LatLng(41.4, 69.3)


def test_trajectory_polyline_lifecycle() -> None:
    widget, store, _, adapter, _ = _setup(_UpdatingWidget())
    adapter.initialize("map")

    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.40, longitude=69.30))
    assert widget.polylines == {}

    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.41, longitude=69.31))
    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.42, longitude=69.32))

    assert widget.count("add_polyline") == 1
    (points, style), = widget.polylines.values()
    assert len(points) == 3
    assert style.dash_array == "2, 8"

    store.select(1)
    (points, style), = widget.polylines.values()
    assert style.dash_array is None
    assert style.z_index == 1000
    assert adapter.polyline_ids == (1,)


@pytest.mark.asyncio
async def test_removed_entities_lose_markers_and_polylines() -> None:
    async def _fetch() -> list[Entity]:
        return [Entity.model_validate({"id": 2, "location": {"lat": 41.0, "lng": 69.0}})]

    widget, store, accumulator, adapter, _ = _setup(fetch_snapshot=_fetch)
    adapter.initialize("map")
    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.40, longitude=69.30))
    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.41, longitude=69.31))
    assert adapter.polyline_ids == (1,)

    await store.load_snapshot()

    assert adapter.marker_ids == (2,)
    assert adapter.polyline_ids == ()
    assert widget.polylines == {}
    assert len(widget.markers) == 1
    assert 1 not in accumulator


def test_dispose_runs_once_and_stops_rendering() -> None:
    widget, store, _, adapter, _ = _setup()
    adapter.initialize("map")

    adapter.dispose()
    adapter.dispose()
    store.merge_location(1, LocationUpdate(vehicle_id=1, latitude=41.4, longitude=69.3))

    assert widget.count("dispose") == 1
    assert widget.markers == {}
    assert adapter.state is AdapterState.DISPOSED
    assert adapter.initialize("map") is False
    assert adapter.focus_all() is False


def test_theme_toggle_swaps_base_layer_only() -> None:
    widget, _, _, adapter, _ = _setup()
    settings = MapSettings()
    adapter.initialize("map")

    assert adapter.toggle_theme() is MapTheme.DARK
    assert adapter.toggle_theme() is MapTheme.LIGHT

    layers = [args for call, args in widget.calls if call == "set_base_layer"]
    assert layers == [
        (settings.light_tiles, MapTheme.LIGHT),
        (settings.dark_tiles, MapTheme.DARK),
        (settings.light_tiles, MapTheme.LIGHT),
    ]
    assert widget.count("create") == 1
    assert widget.count("dispose") == 0
