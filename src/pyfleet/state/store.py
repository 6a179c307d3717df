"""Vehicle store: the single mutable source of truth.

Entity, selection and alert state change only through the mutation
methods of :class:`VehicleStore`. Channel handlers and user interaction
both funnel through them; entity objects are frozen and replaced
wholesale on every merge.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime
from typing import Literal

from pyfleet.exceptions import FleetConfigError, FleetError
from pyfleet.models._base import EntityId
from pyfleet.models.alert import Alert
from pyfleet.models.entity import Entity
from pyfleet.models.events import LocationUpdate, NewEntity, StatusUpdate
from pyfleet.state.demo import demo_entities
from pyfleet.state.events import ChangeKind, StoreChange
from pyfleet.state.policy import merge_location, merge_status

_logger = logging.getLogger(__name__)

SnapshotFetcher = Callable[[], Awaitable[list[Entity]]]
StoreListener = Callable[[StoreChange], None]

_JournalEntry = tuple[EntityId, LocationUpdate | StatusUpdate, datetime, bool]
"""``(entity id, update, received at, announced at receipt)``."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class VehicleStore:
    """In-memory store for tracked entities, selection and alerts.

    Mutations are applied synchronously in call order. Listeners are
    notified after each mutation; a mutation triggered from inside a
    listener is applied immediately but its notification is queued
    behind the one being delivered, so every listener sees changes in
    application order.
    """

    def __init__(
        self,
        *,
        fetch_snapshot: SnapshotFetcher | None = None,
        alert_limit: int = 50,
        snapshot_timeout: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._fetch_snapshot = fetch_snapshot
        self._snapshot_timeout = snapshot_timeout
        self._clock = clock

        self._entities: dict[EntityId, Entity] = {}
        self._selected_id: EntityId | None = None
        self._alerts: deque[Alert] = deque(maxlen=alert_limit)
        self._source: Literal["live", "demo"] | None = None
        self._loading = False
        self._error: str | None = None

        self._listeners: list[StoreListener] = []
        self._pending: deque[StoreChange] = deque()
        self._notifying = False

        # Merges received while a snapshot fetch is in flight, replayed on
        # top of the fetched snapshot in arrival order with their receipt
        # time. Location merges for entities unknown at receipt are
        # announced after the snapshot so trajectories see them.
        self._load_generation = 0
        self._journal: list[_JournalEntry] | None = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def entities(self) -> tuple[Entity, ...]:
        return tuple(self._entities.values())

    def get(self, entity_id: EntityId) -> Entity | None:
        return self._entities.get(entity_id)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    @property
    def selected_id(self) -> EntityId | None:
        return self._selected_id

    @property
    def selected(self) -> Entity | None:
        if self._selected_id is None:
            return None
        return self._entities.get(self._selected_id)

    @property
    def alerts(self) -> tuple[Alert, ...]:
        """Alerts, most recent first."""
        return tuple(self._alerts)

    @property
    def source(self) -> Literal["live", "demo"] | None:
        """Origin of the current entity collection; ``None`` before the first load."""
        return self._source

    @property
    def is_demo(self) -> bool:
        return self._source == "demo"

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        """Message of the last failed snapshot fetch; cleared by the next success."""
        return self._error

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self, change: StoreChange) -> None:
        self._pending.append(change)
        if self._notifying:
            return
        self._notifying = True
        try:
            while self._pending:
                current = self._pending.popleft()
                for listener in list(self._listeners):
                    try:
                        listener(current)
                    except Exception:
                        _logger.exception("Store listener failed on %s", current.kind.value)
        finally:
            self._notifying = False

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    async def load_snapshot(self) -> bool:
        """Fetch the full entity list and replace the collection wholesale.

        On failure the previous entities are kept, :attr:`error` is set
        and an ``ERROR`` change is emitted. When fetches overlap only the
        most recently started one may commit.

        Returns ``True`` when the fetched snapshot was committed.
        """
        if self._fetch_snapshot is None:
            raise FleetConfigError("VehicleStore has no snapshot fetcher")

        self._load_generation += 1
        generation = self._load_generation
        if self._journal is None:
            self._journal = []
        self._set_loading(True)

        try:
            if self._snapshot_timeout is not None:
                entities = await asyncio.wait_for(self._fetch_snapshot(), self._snapshot_timeout)
            else:
                entities = await self._fetch_snapshot()
        except (FleetError, TimeoutError) as exc:
            if generation != self._load_generation:
                return False
            message = str(exc) or "Failed to load vehicles"
            _logger.warning("Snapshot fetch failed: %s", message)
            self._journal = None
            self._error = message
            self._set_loading(False)
            self._notify(StoreChange(kind=ChangeKind.ERROR, message=message))
            return False
        except BaseException:
            if generation == self._load_generation:
                self._journal = None
                self._set_loading(False)
            raise

        if generation != self._load_generation:
            _logger.debug("Discarding superseded snapshot (generation %d)", generation)
            return False

        journal = self._journal or []
        self._journal = None
        self._error = None
        removed = self._replace(entities, source="live")
        replayed: list[StoreChange] = []
        for entity_id, update, received_at, announced in journal:
            merged = self._apply_silently(entity_id, update, received_at)
            if merged is not None and not announced and isinstance(update, LocationUpdate):
                replayed.append(StoreChange(kind=ChangeKind.LOCATION, entity_id=entity_id, entity=merged))
        if journal:
            _logger.debug("Replayed %d in-flight merges onto snapshot", len(journal))
        _logger.info("Snapshot loaded: %d entities", len(self._entities))

        self._set_loading(False)
        self._notify(StoreChange(kind=ChangeKind.SNAPSHOT, removed=removed))
        for change in replayed:
            self._notify(change)
        return True

    def load_demo(self) -> None:
        """Replace the collection with the illustrative demo fleet."""
        _logger.info("No credential available; showing demo fleet")
        removed = self._replace(demo_entities(), source="demo")
        self._notify(StoreChange(kind=ChangeKind.SNAPSHOT, removed=removed))

    def _replace(self, entities: Iterable[Entity], *, source: Literal["live", "demo"]) -> tuple[EntityId, ...]:
        fresh: dict[EntityId, Entity] = {}
        for entity in entities:
            fresh[entity.id] = entity
        removed = tuple(entity_id for entity_id in self._entities if entity_id not in fresh)
        self._entities = fresh
        self._source = source
        if self._selected_id is not None and self._selected_id not in fresh:
            _logger.debug("Selected entity %s vanished from snapshot; clearing selection", self._selected_id)
            self._selected_id = None
        return removed

    def _set_loading(self, loading: bool) -> None:
        if loading == self._loading:
            return
        self._loading = loading
        self._notify(StoreChange(kind=ChangeKind.LOADING))

    # ------------------------------------------------------------------
    # Live merges
    # ------------------------------------------------------------------

    def merge_location(self, entity_id: EntityId, update: LocationUpdate) -> Entity | None:
        """Merge a position fix. Unknown ids are dropped (logged at DEBUG)."""
        now = self._clock()
        entity = self._entities.get(entity_id)
        if self._journal is not None:
            self._journal.append((entity_id, update, now, entity is not None))
        if entity is None:
            _logger.debug("Location update for unknown entity %s dropped", entity_id)
            return None
        merged = merge_location(entity, update, now=now)
        self._entities[entity_id] = merged
        self._notify(StoreChange(kind=ChangeKind.LOCATION, entity_id=entity_id, entity=merged))
        return merged

    def merge_status(self, entity_id: EntityId, update: StatusUpdate) -> Entity | None:
        """Merge a status/battery change. Unknown ids are dropped (logged at DEBUG)."""
        entity = self._entities.get(entity_id)
        if self._journal is not None:
            self._journal.append((entity_id, update, self._clock(), entity is not None))
        if entity is None:
            _logger.debug("Status update for unknown entity %s dropped", entity_id)
            return None
        merged = merge_status(entity, update)
        self._entities[entity_id] = merged
        self._notify(StoreChange(kind=ChangeKind.STATUS, entity_id=entity_id, entity=merged))
        return merged

    def _apply_silently(
        self,
        entity_id: EntityId,
        update: LocationUpdate | StatusUpdate,
        received_at: datetime,
    ) -> Entity | None:
        entity = self._entities.get(entity_id)
        if entity is None:
            return None
        if isinstance(update, LocationUpdate):
            merged = merge_location(entity, update, now=received_at)
        else:
            merged = merge_status(entity, update)
        self._entities[entity_id] = merged
        return merged

    async def upsert_new_entity(self, event: NewEntity) -> bool:
        """React to a ``vehicle:new`` push.

        The push payload is partial, so a genuinely new entity triggers a
        full snapshot reload instead of being inserted. Returns ``True``
        when a reload was committed.
        """
        if event.vehicle_id is not None and event.vehicle_id in self._entities:
            _logger.debug("vehicle:new for known entity %s ignored", event.vehicle_id)
            return False
        if self._fetch_snapshot is None:
            _logger.debug("vehicle:new ignored; store has no snapshot fetcher")
            return False
        return await self.load_snapshot()

    # ------------------------------------------------------------------
    # Selection and alerts
    # ------------------------------------------------------------------

    def select(self, entity_id: EntityId | None) -> bool:
        """Select one entity, or clear the selection with ``None``.

        Selecting an id that is not in the store leaves the selection
        unchanged and returns ``False``.
        """
        if entity_id is not None and entity_id not in self._entities:
            _logger.debug("Ignoring selection of unknown entity %s", entity_id)
            return False
        if entity_id == self._selected_id:
            return True
        self._selected_id = entity_id
        self._notify(StoreChange(kind=ChangeKind.SELECTION, entity_id=entity_id))
        return True

    def append_alert(self, alert: Alert) -> None:
        """Prepend *alert*; the oldest alerts beyond the limit are dropped."""
        self._alerts.appendleft(alert)
        self._notify(StoreChange(kind=ChangeKind.ALERT, entity_id=alert.entity_id, alert=alert))
