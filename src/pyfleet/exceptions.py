"""Custom exception hierarchy for pyfleet."""

from __future__ import annotations


class FleetError(Exception):
    """Base exception for all pyfleet errors."""


class FleetConfigError(FleetError):
    """Invalid or missing configuration."""


class FleetTransportError(FleetError):
    """HTTP-level failure (network, non-2xx, invalid JSON, timeout)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class FleetApiError(FleetError):
    """API answered with a well-formed error body."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class FleetAuthenticationError(FleetApiError):
    """No usable credential, or the token refresh failed."""


class FleetSessionExpiredError(FleetAuthenticationError):
    """Bearer token rejected by the server (HTTP 401).

    The client catches this internally to refresh the token and retry
    the request once.
    """


class FleetMapError(FleetError):
    """The map widget could not be created."""
