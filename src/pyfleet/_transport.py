"""HTTP transport for the fleet REST API."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pyfleet._redact import redact_for_log, redact_headers
from pyfleet.config import FleetConfig
from pyfleet.exceptions import FleetApiError, FleetSessionExpiredError, FleetTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Endpoint helpers only depend on this protocol, so tests can pass a
    fake backend while production uses :class:`HttpTransport`.
    """

    async def request_json(
        self,
        method: str,
        endpoint: str,
        *,
        token: str | None = None,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any: ...


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


class HttpTransport:
    """JSON-over-HTTP transport with bearer auth and a per-call timeout."""

    def __init__(self, config: FleetConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def request_json(
        self,
        method: str,
        endpoint: str,
        *,
        token: str | None = None,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises
        ------
        FleetSessionExpiredError
            The server answered 401.
        FleetApiError
            Any other non-2xx answer.
        FleetTransportError
            Network failure, timeout, or a body that is not JSON.
        """
        headers: dict[str, str] = {"accept": "application/json"}
        if token:
            headers["authorization"] = f"Bearer {token}"

        url = f"{self._config.api_base_url}{endpoint}"
        _logger.debug(
            "%s %s headers=%s body=%s",
            method,
            url,
            redact_headers(headers),
            redact_for_log(dict(body)) if body is not None else None,
        )

        try:
            async with self._http.request(
                method,
                url,
                json=dict(body) if body is not None else None,
                params=dict(params) if params is not None else None,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                text = await resp.text()
        except (asyncio.TimeoutError, TimeoutError) as exc:
            raise FleetTransportError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise FleetTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        payload: Any = None
        if text:
            try:
                payload = json.loads(text)
            except json.JSONDecodeError as exc:
                if 200 <= status < 300:
                    raise FleetTransportError(
                        f"Invalid JSON from {endpoint}: {text[:200]}",
                        status_code=status,
                        endpoint=endpoint,
                    ) from exc

        if status == 401:
            raise FleetSessionExpiredError(
                _error_message(payload, f"{endpoint} rejected the bearer token"),
                status_code=status,
                endpoint=endpoint,
            )
        if not 200 <= status < 300:
            raise FleetApiError(
                _error_message(payload, f"HTTP {status} from {endpoint}: {text[:200]}"),
                status_code=status,
                endpoint=endpoint,
            )
        return payload
