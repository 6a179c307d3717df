"""Bridge between store/trajectory state and a concrete map widget.

The adapter is an explicit state machine::

    UNINITIALIZED -> INITIALIZING -> READY -> DISPOSED

Rendering and camera operations are no-ops outside ``READY``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pyfleet.config import MapSettings
from pyfleet.exceptions import FleetMapError
from pyfleet.map.icons import marker_icon
from pyfleet.map.widget import Bounds, LatLng, MapTheme, MapWidget
from pyfleet.models._base import EntityId
from pyfleet.models.entity import Entity
from pyfleet.state.events import ChangeKind, StoreChange
from pyfleet.state.store import VehicleStore
from pyfleet.trajectory import TrackChange, TrajectoryAccumulator, trajectory_style

_logger = logging.getLogger(__name__)

_MARKER_CHANGES = frozenset({ChangeKind.SNAPSHOT, ChangeKind.LOCATION, ChangeKind.STATUS, ChangeKind.SELECTION})
_RESTYLE_CHANGES = frozenset({ChangeKind.SNAPSHOT, ChangeKind.STATUS, ChangeKind.SELECTION})


class AdapterState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DISPOSED = "disposed"


class MapAdapter:
    """Renders entities as markers and trajectories as polylines.

    Owns every marker and polyline handle it creates. User interaction
    (marker clicks, focus requests) is turned back into store mutations
    and camera moves.
    """

    def __init__(
        self,
        widget: MapWidget,
        store: VehicleStore,
        accumulator: TrajectoryAccumulator,
        *,
        settings: MapSettings | None = None,
        theme: MapTheme = MapTheme.LIGHT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._widget = widget
        self._store = store
        self._accumulator = accumulator
        self._settings = settings or MapSettings()
        self._theme = theme
        self._clock = clock

        self._state = AdapterState.UNINITIALIZED
        self._markers: dict[EntityId, Any] = {}
        self._polylines: dict[EntityId, Any] = {}
        self._unsubscribers: list[Callable[[], None]] = []
        self._focus_until = 0.0

    @property
    def state(self) -> AdapterState:
        return self._state

    @property
    def theme(self) -> MapTheme:
        """Base-layer theme; independent of any application-wide theme."""
        return self._theme

    @property
    def marker_ids(self) -> tuple[EntityId, ...]:
        return tuple(self._markers)

    @property
    def polyline_ids(self) -> tuple[EntityId, ...]:
        return tuple(self._polylines)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, container: str) -> bool:
        """Create the map once. Repeated calls are ignored and return ``False``.

        Raises
        ------
        FleetMapError
            The widget failed to create the map; the adapter returns to
            ``UNINITIALIZED`` so a later call may retry.
        """
        if self._state is not AdapterState.UNINITIALIZED:
            _logger.debug("Map initialize ignored in state %s", self._state.value)
            return False

        self._state = AdapterState.INITIALIZING
        try:
            self._widget.create(
                container,
                center=LatLng(*self._settings.center),
                zoom=self._settings.zoom,
            )
            self._widget.set_base_layer(self._tiles_for(self._theme), theme=self._theme)
        except Exception as exc:
            self._state = AdapterState.UNINITIALIZED
            raise FleetMapError(f"Map creation failed: {exc}") from exc

        self._state = AdapterState.READY
        self._unsubscribers.append(self._store.subscribe(self._on_store_change))
        self._unsubscribers.append(self._accumulator.subscribe(self._on_track_change))
        self.sync_markers()
        self.sync_tracks()
        return True

    def dispose(self) -> None:
        """Remove every primitive and observer, then dispose the map exactly once."""
        if self._state is AdapterState.DISPOSED:
            return
        was_ready = self._state is AdapterState.READY
        self._state = AdapterState.DISPOSED

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        for entity_id in list(self._markers):
            self._remove_marker(entity_id)
        for entity_id in list(self._polylines):
            self._remove_polyline(entity_id)

        if was_ready:
            try:
                self._widget.dispose()
            except Exception:
                _logger.warning("Map dispose failed", exc_info=True)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _on_store_change(self, change: StoreChange) -> None:
        if change.kind in _MARKER_CHANGES:
            self.sync_markers()
        if change.kind in _RESTYLE_CHANGES:
            self.sync_tracks()

    def _on_track_change(self, change: TrackChange) -> None:
        if self._state is not AdapterState.READY:
            return
        if change.cleared:
            self._remove_polyline(change.entity_id)
        else:
            self._draw_track(change.entity_id)

    def sync_markers(self) -> None:
        """Full reconciliation of markers against the current store state."""
        if self._state is not AdapterState.READY:
            return

        selected_id = self._store.selected_id
        for entity_id in list(self._markers):
            entity = self._store.get(entity_id)
            if entity is None or entity.position is None:
                self._remove_marker(entity_id)

        for entity in self._store.entities:
            if entity.position is None:
                continue
            self._draw_marker(entity, selected=entity.id == selected_id)

    def _draw_marker(self, entity: Entity, *, selected: bool) -> None:
        assert entity.position is not None  # noqa: S101
        position = LatLng(entity.position.latitude, entity.position.longitude)
        icon = marker_icon(entity, selected=selected)
        handle = self._markers.get(entity.id)
        update = getattr(self._widget, "update_marker", None)

        try:
            if handle is not None and callable(update):
                update(handle, position, icon)
                return
            if handle is not None:
                self._remove_marker(entity.id)
            entity_id = entity.id
            self._markers[entity_id] = self._widget.add_marker(
                position,
                icon,
                on_click=lambda: self.handle_marker_click(entity_id),
            )
        except Exception:
            _logger.warning("Drawing marker for %s failed", entity.id, exc_info=True)

    def _remove_marker(self, entity_id: EntityId) -> None:
        handle = self._markers.pop(entity_id, None)
        if handle is None:
            return
        try:
            self._widget.remove_marker(handle)
        except Exception:
            _logger.debug("Removing marker for %s failed", entity_id, exc_info=True)

    def sync_tracks(self) -> None:
        """Redraw every trajectory with styles derived from current state."""
        if self._state is not AdapterState.READY:
            return
        for entity_id in list(self._polylines):
            if entity_id not in self._accumulator:
                self._remove_polyline(entity_id)
        for entity_id in self._accumulator.entity_ids:
            self._draw_track(entity_id)

    def _draw_track(self, entity_id: EntityId) -> None:
        entity = self._store.get(entity_id)
        points = [LatLng(lat, lng) for lat, lng in self._accumulator.points(entity_id)]
        if entity is None or len(points) < 2:
            self._remove_polyline(entity_id)
            return

        style = trajectory_style(entity, selected=entity_id == self._store.selected_id)
        handle = self._polylines.get(entity_id)
        update = getattr(self._widget, "update_polyline", None)
        try:
            if handle is not None and callable(update):
                update(handle, points, style)
                return
            if handle is not None:
                self._remove_polyline(entity_id)
            self._polylines[entity_id] = self._widget.add_polyline(points, style)
        except Exception:
            _logger.warning("Drawing trajectory for %s failed", entity_id, exc_info=True)

    def _remove_polyline(self, entity_id: EntityId) -> None:
        handle = self._polylines.pop(entity_id, None)
        if handle is None:
            return
        try:
            self._widget.remove_polyline(handle)
        except Exception:
            _logger.debug("Removing trajectory for %s failed", entity_id, exc_info=True)

    # ------------------------------------------------------------------
    # Interaction and camera
    # ------------------------------------------------------------------

    def handle_marker_click(self, entity_id: EntityId) -> bool:
        """Select the clicked entity and focus the camera on it."""
        if not self._store.select(entity_id):
            return False
        self.focus_on(entity_id)
        return True

    def _camera_busy(self) -> bool:
        return self._clock() < self._focus_until

    def _start_cooldown(self) -> None:
        self._focus_until = self._clock() + self._settings.focus_duration + self._settings.focus_settle

    def focus_on(self, entity_id: EntityId) -> bool:
        """Animate the camera to *entity_id* at the focus zoom.

        Ignored while a previous camera move is still settling. Widget
        errors are logged and the request becomes a no-op.
        """
        if self._state is not AdapterState.READY:
            return False
        entity = self._store.get(entity_id)
        if entity is None or entity.position is None:
            return False
        return self._fly_to(LatLng(entity.position.latitude, entity.position.longitude))

    def _fly_to(self, center: LatLng) -> bool:
        if self._camera_busy():
            _logger.debug("Focus request suppressed; camera still moving")
            return False
        try:
            self._widget.fly_to(center, self._settings.focus_zoom, duration=self._settings.focus_duration)
        except Exception:
            _logger.warning("Camera focus failed", exc_info=True)
            return False
        self._start_cooldown()
        return True

    def focus_all(self) -> bool:
        """Fit the camera to every positioned entity with a single camera call."""
        if self._state is not AdapterState.READY:
            return False
        positioned = [entity for entity in self._store.entities if entity.position is not None]
        if not positioned:
            return False
        if len(positioned) == 1:
            return self.focus_on(positioned[0].id)

        bounds = Bounds.from_points(entity.position.point for entity in positioned if entity.position is not None)
        if bounds.is_point:
            return self._fly_to(bounds.center)
        if self._camera_busy():
            _logger.debug("Focus-all suppressed; camera still moving")
            return False
        try:
            self._widget.fit_bounds(bounds, padding=self._settings.fit_padding)
        except Exception:
            _logger.warning("Camera fit failed", exc_info=True)
            return False
        self._start_cooldown()
        return True

    # ------------------------------------------------------------------
    # Theme
    # ------------------------------------------------------------------

    def _tiles_for(self, theme: MapTheme) -> str:
        return self._settings.dark_tiles if theme is MapTheme.DARK else self._settings.light_tiles

    def set_theme(self, theme: MapTheme) -> bool:
        """Swap the base layer without recreating the map."""
        if theme is self._theme:
            return True
        if self._state is AdapterState.DISPOSED:
            return False
        if self._state is AdapterState.READY:
            try:
                self._widget.set_base_layer(self._tiles_for(theme), theme=theme)
            except Exception:
                _logger.warning("Base layer swap failed", exc_info=True)
                return False
        self._theme = theme
        return True

    def toggle_theme(self) -> MapTheme:
        self.set_theme(MapTheme.LIGHT if self._theme is MapTheme.DARK else MapTheme.DARK)
        return self._theme
