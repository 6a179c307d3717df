"""Composition root wiring REST client, push channel, store, trajectories and map."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pyfleet.channel import ChannelState, PushChannel
from pyfleet.client import FleetClient
from pyfleet.config import FleetConfig
from pyfleet.credentials import CredentialStore
from pyfleet.map.adapter import MapAdapter
from pyfleet.map.widget import MapWidget
from pyfleet.models.events import EventKind, LocationUpdate, NewAlert, NewEntity, StatusUpdate
from pyfleet.models.notice import Notice, NoticeLevel
from pyfleet.state.events import ChangeKind, StoreChange
from pyfleet.state.store import VehicleStore
from pyfleet.trajectory import TrajectoryAccumulator

_logger = logging.getLogger(__name__)

NoticeCallback = Callable[[Notice], None]

_OFFLINE_STATES = frozenset({ChannelState.IDLE, ChannelState.EXHAUSTED, ChannelState.CLOSED})


class LiveFleet:
    """One live tracking session.

    Usage::

        fleet = LiveFleet(config, credentials, widget=my_widget, on_notice=print)
        await fleet.start(container="map")
        ...
        await fleet.close()

    Without a stored credential the session shows the demo fleet (when
    ``config.demo_fallback`` is set) and never touches the network.
    """

    def __init__(
        self,
        config: FleetConfig | None = None,
        credentials: CredentialStore | None = None,
        *,
        client: FleetClient | None = None,
        channel: PushChannel | None = None,
        widget: MapWidget | None = None,
        on_notice: NoticeCallback | None = None,
    ) -> None:
        self._config = config or FleetConfig()
        self._credentials = credentials or CredentialStore()
        self._owns_client = client is None
        self._client = client or FleetClient(self._config, self._credentials)
        self._channel = channel or PushChannel(self._config)
        self._on_notice = on_notice

        self._store = VehicleStore(
            fetch_snapshot=self._client.get_vehicles,
            alert_limit=self._config.alert_limit,
        )
        self._accumulator = TrajectoryAccumulator()
        # The accumulator must see each change before the adapter redraws.
        self._accumulator.attach(self._store)
        self._adapter = (
            MapAdapter(widget, self._store, self._accumulator, settings=self._config.map) if widget is not None else None
        )

        self._unsubscribers: list[Callable[[], None]] = [
            self._store.subscribe(self._on_store_change),
            self._channel.on_state(self._on_channel_state),
        ]
        self._channel_handlers: list[tuple[EventKind, Callable[[Any], Any]]] = [
            (EventKind.LOCATION_UPDATE, self._on_location),
            (EventKind.VEHICLE_STATUS, self._on_status),
            (EventKind.ALERT_NEW, self._on_alert),
            (EventKind.VEHICLE_NEW, self._on_new_entity),
        ]
        for kind, handler in self._channel_handlers:
            self._channel.on(kind, handler)

        self._client_entered = False
        self._closed = False

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def store(self) -> VehicleStore:
        return self._store

    @property
    def trajectories(self) -> TrajectoryAccumulator:
        return self._accumulator

    @property
    def channel(self) -> PushChannel:
        return self._channel

    @property
    def client(self) -> FleetClient:
        return self._client

    @property
    def map(self) -> MapAdapter | None:
        return self._adapter

    @property
    def is_offline(self) -> bool:
        """``True`` while no live push connection is running or being attempted."""
        return self._channel.state in _OFFLINE_STATES

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, container: str | None = None) -> bool:
        """Load entities and open the push channel.

        Returns ``True`` when a live session was started, ``False`` when
        running without a credential.
        """
        if self._adapter is not None and container is not None:
            self._adapter.initialize(container)

        credential = self._credentials.credential
        if credential is None:
            if self._config.demo_fallback:
                self._store.load_demo()
            else:
                _logger.info("No credential available; live session not started")
            return False

        if self._owns_client and not self._client_entered:
            await self._client.__aenter__()
            self._client_entered = True

        await self._store.load_snapshot()
        if not await self._channel.connect(self._credentials.credential):
            return False
        await self._channel.subscribe_all()
        return True

    async def refresh(self) -> bool:
        """Reload the entity snapshot."""
        return await self._store.load_snapshot()

    async def close(self) -> None:
        """Tear the session down. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        if self._adapter is not None:
            self._adapter.dispose()
        for kind, handler in self._channel_handlers:
            self._channel.off(kind, handler)
        await self._channel.disconnect()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._accumulator.dispose()

        if self._client_entered:
            await self._client.__aexit__(None, None, None)
            self._client_entered = False

    async def __aenter__(self) -> LiveFleet:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Channel handlers
    # ------------------------------------------------------------------

    def _on_location(self, event: LocationUpdate) -> None:
        self._store.merge_location(event.vehicle_id, event)

    def _on_status(self, event: StatusUpdate) -> None:
        self._store.merge_status(event.vehicle_id, event)

    def _on_alert(self, event: NewAlert) -> None:
        alert = event.alert
        self._store.append_alert(alert)
        description = alert.timestamp.isoformat() if alert.timestamp is not None else None
        self._emit(Notice(level=NoticeLevel.ERROR, message=alert.message or "New alert", description=description))

    async def _on_new_entity(self, event: NewEntity) -> None:
        label = event.name or (str(event.vehicle_id) if event.vehicle_id is not None else "vehicle")
        self._emit(Notice(level=NoticeLevel.SUCCESS, message=f"New vehicle registered: {label}"))
        await self._store.upsert_new_entity(event)

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    def _on_store_change(self, change: StoreChange) -> None:
        if change.kind is ChangeKind.ERROR:
            self._emit(
                Notice(level=NoticeLevel.ERROR, message="Failed to load vehicles", description=change.message)
            )

    def _on_channel_state(self, state: ChannelState) -> None:
        if state is ChannelState.EXHAUSTED:
            self._emit(
                Notice(
                    level=NoticeLevel.WARNING,
                    message="Live updates unavailable",
                    description="Could not reach the push channel; showing last known data.",
                )
            )

    def _emit(self, notice: Notice) -> None:
        _logger.debug("Notice (%s): %s", notice.level.value, notice.message)
        if self._on_notice is None:
            return
        try:
            self._on_notice(notice)
        except Exception:
            _logger.exception("Notice callback failed")
