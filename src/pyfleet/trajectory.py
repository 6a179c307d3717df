"""Per-entity trajectory accumulation and styling.

Trajectories are built only from location merges observed in this
session: append-only, in arrival order, with FIFO eviction once a
category-dependent bound is reached. Repeated identical points are kept;
point count reflects sampling density, not distance travelled.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from pyfleet.models._base import EntityId
from pyfleet.models.entity import Entity, EntityCategory, EntityStatus
from pyfleet.state.events import ChangeKind, StoreChange
from pyfleet.state.store import VehicleStore

_logger = logging.getLogger(__name__)

TrackPoint = tuple[float, float]
"""``(latitude, longitude)``."""

DEFAULT_MAX_POINTS = 150
MAX_POINTS: dict[EntityCategory, int] = {
    EntityCategory.PEDESTRIAN: 200,
}

STATUS_COLORS: dict[EntityStatus, str] = {
    EntityStatus.ONLINE: "#22c55e",
    EntityStatus.IDLE: "#eab308",
    EntityStatus.OFFLINE: "#ef4444",
}

CATEGORY_WIDTHS: dict[EntityCategory, int] = {
    EntityCategory.VEHICLE: 4,
    EntityCategory.PEDESTRIAN: 2,
    EntityCategory.BICYCLE: 3,
    EntityCategory.SCOOTER: 3,
}

SELECTED_Z_INDEX = 1000
UNSELECTED_Z_INDEX = 100


def max_points(category: EntityCategory) -> int:
    """Retention bound for one trajectory of *category*."""
    return MAX_POINTS.get(category, DEFAULT_MAX_POINTS)


class TrajectoryStyle(BaseModel):
    """Render hints for one trajectory polyline."""

    model_config = ConfigDict(frozen=True)

    color: str
    opacity: float
    width: int
    dash_array: str | None
    """``None`` draws a solid line."""
    z_index: int


def trajectory_style(entity: Entity, *, selected: bool) -> TrajectoryStyle:
    """Derive the polyline style from current state. Never stored."""
    return TrajectoryStyle(
        color=STATUS_COLORS.get(entity.status, STATUS_COLORS[EntityStatus.OFFLINE]),
        opacity=0.9 if selected else 0.4,
        width=CATEGORY_WIDTHS.get(entity.category, CATEGORY_WIDTHS[EntityCategory.VEHICLE]),
        dash_array=None if selected else "2, 8",
        z_index=SELECTED_Z_INDEX if selected else UNSELECTED_Z_INDEX,
    )


class TrackChange(BaseModel):
    """Emitted after a trajectory grows or is cleared."""

    model_config = ConfigDict(frozen=True)

    entity_id: EntityId
    cleared: bool = False


TrackListener = Callable[[TrackChange], None]


class TrajectoryAccumulator:
    """Owns every per-entity trajectory for the session."""

    def __init__(self) -> None:
        self._tracks: dict[EntityId, deque[TrackPoint]] = {}
        self._listeners: list[TrackListener] = []
        self._detach: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------

    def on_location(self, entity_id: EntityId, point: TrackPoint, category: EntityCategory) -> int:
        """Append *point* to the trajectory of *entity_id*; returns the new length."""
        bound = max_points(category)
        track = self._tracks.get(entity_id)
        if track is None:
            track = deque(maxlen=bound)
            self._tracks[entity_id] = track
        elif track.maxlen != bound:
            # Keeps the newest points when the bound shrinks.
            track = deque(track, maxlen=bound)
            self._tracks[entity_id] = track
        track.append(point)
        self._notify(TrackChange(entity_id=entity_id))
        return len(track)

    def points(self, entity_id: EntityId) -> tuple[TrackPoint, ...]:
        """Trajectory of *entity_id*, oldest first; empty if none."""
        track = self._tracks.get(entity_id)
        return tuple(track) if track is not None else ()

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._tracks

    def __len__(self) -> int:
        return len(self._tracks)

    @property
    def entity_ids(self) -> tuple[EntityId, ...]:
        return tuple(self._tracks)

    def clear(self, entity_id: EntityId) -> bool:
        """Drop one trajectory. Listeners remove any drawn polyline."""
        if self._tracks.pop(entity_id, None) is None:
            return False
        self._notify(TrackChange(entity_id=entity_id, cleared=True))
        return True

    def clear_all(self) -> None:
        for entity_id in list(self._tracks):
            self.clear(entity_id)

    # ------------------------------------------------------------------
    # Store wiring
    # ------------------------------------------------------------------

    def attach(self, store: VehicleStore) -> None:
        """Follow *store*: append on location merges, prune on snapshot removal."""
        self.detach()

        def _on_change(change: StoreChange) -> None:
            if change.kind is ChangeKind.LOCATION:
                entity = change.entity
                if entity is not None and entity.position is not None:
                    self.on_location(entity.id, entity.position.point, entity.category)
            elif change.kind is ChangeKind.SNAPSHOT:
                for entity_id in list(self._tracks):
                    if entity_id not in store:
                        self.clear(entity_id)

        self._detach = store.subscribe(_on_change)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def dispose(self) -> None:
        """Stop following the store and drop every trajectory."""
        self.detach()
        self.clear_all()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, listener: TrackListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self, change: TrackChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                _logger.exception("Trajectory listener failed for %s", change.entity_id)
