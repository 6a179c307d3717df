"""High-level async client for the fleet REST API."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiohttp

from pyfleet._api import auth as _auth_api
from pyfleet._api import vehicles as _vehicles_api
from pyfleet._transport import HttpTransport, Transport
from pyfleet.config import FleetConfig
from pyfleet.credentials import Credential, CredentialStore
from pyfleet.exceptions import FleetAuthenticationError, FleetError, FleetSessionExpiredError
from pyfleet.models._base import EntityId
from pyfleet.models.entity import Entity, Position

_logger = logging.getLogger(__name__)

T = TypeVar("T")

TokenRefresher = Callable[[Credential], Awaitable[Credential]]


class FleetClient:
    """Async client for the fleet REST API.

    Usage::

        async with FleetClient(config, credentials) as client:
            vehicles = await client.get_vehicles()

    Every call carries the current bearer token. A 401 triggers exactly
    one token refresh followed by one retry; a second 401 propagates.
    """

    def __init__(
        self,
        config: FleetConfig,
        credentials: CredentialStore,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        refresher: TokenRefresher | None = None,
    ) -> None:
        self._config = config
        self._credentials = credentials
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._external_transport = transport is not None
        self._refresher = refresher

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise FleetError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        return self._transport

    def _require_token(self) -> str:
        token = self._credentials.access_token
        if token is None:
            raise FleetAuthenticationError("No access token available")
        return token

    async def refresh_credential(self) -> Credential:
        """Refresh the access token; clears the stored credential on failure."""
        credential = self._credentials.credential
        if credential is None:
            raise FleetAuthenticationError("No credential to refresh")
        try:
            if self._refresher is not None:
                refreshed = await self._refresher(credential)
            else:
                refreshed = await _auth_api.refresh_credential(self._require_transport(), credential)
        except FleetError as exc:
            _logger.warning("Token refresh failed: %s", exc)
            self._credentials.clear()
            if isinstance(exc, FleetAuthenticationError):
                raise
            raise FleetAuthenticationError(f"Token refresh failed: {exc}") from exc
        self._credentials.set(refreshed)
        _logger.debug("Access token refreshed")
        return refreshed

    async def _call_with_reauth(self, fn: Callable[[str], Awaitable[T]]) -> T:
        """Run an API call, refreshing the token and retrying once on 401."""
        try:
            return await fn(self._require_token())
        except FleetSessionExpiredError:
            _logger.debug("Access token rejected; refreshing once")
            refreshed = await self.refresh_credential()
            return await fn(refreshed.access_token)

    # ------------------------------------------------------------------
    # Read endpoints
    # ------------------------------------------------------------------

    async def get_vehicles(self) -> list[Entity]:
        """Fetch all entities visible to the authenticated user."""
        transport = self._require_transport()

        async def _call(token: str) -> list[Entity]:
            return await _vehicles_api.fetch_vehicle_list(transport, token=token)

        return await self._call_with_reauth(_call)

    async def get_vehicle_location(self, vehicle_id: EntityId) -> Position | None:
        """Fetch the last known position of one entity."""
        transport = self._require_transport()

        async def _call(token: str) -> Position | None:
            return await _vehicles_api.fetch_vehicle_location(transport, vehicle_id, token=token)

        return await self._call_with_reauth(_call)
