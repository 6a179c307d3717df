"""Client configuration for pyfleet."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyfleet.exceptions import FleetConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class MapSettings:
    """Camera and base-layer settings for the map adapter.

    Parameters
    ----------
    center : tuple[float, float]
        Initial ``(latitude, longitude)`` of the camera.
    zoom : int
        Initial zoom level.
    focus_zoom : int
        Zoom level used when focusing a single entity.
    focus_duration : float
        Length of the animated camera transition in seconds.
    focus_settle : float
        Extra cooldown after a transition during which new focus
        requests are ignored.
    fit_padding : int
        Padding in pixels used when fitting the camera to all entities.
    light_tiles : str
        Tile URL template for the light base layer.
    dark_tiles : str
        Tile URL template for the dark base layer.
    """

    center: tuple[float, float] = (41.2995, 69.2401)
    zoom: int = 12
    focus_zoom: int = 16
    focus_duration: float = 1.0
    focus_settle: float = 0.5
    fit_padding: int = 50
    light_tiles: str = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
    dark_tiles: str = "https://{s}.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}{r}.png"

    def __post_init__(self) -> None:
        if self.focus_duration < 0 or self.focus_settle < 0:
            raise FleetConfigError("focus_duration and focus_settle must be >= 0")


@dataclasses.dataclass(frozen=True)
class FleetConfig:
    """Client configuration.

    Parameters
    ----------
    api_base_url : str
        Base URL of the REST API (no trailing slash).
    socket_url : str
        Socket.IO server URL of the push channel.
    request_timeout : float
        Total timeout in seconds for every REST call, snapshot fetches
        included.
    reconnection_attempts : int
        Connection attempts the push channel makes before giving up.
        Exhaustion leaves the channel disconnected until ``connect()``
        is called again.
    reconnection_delay : float
        Delay in seconds before the second attempt; doubles on every
        further attempt.
    reconnection_delay_max : float
        Upper bound for the reconnection delay.
    connect_timeout : float
        Seconds to wait for the Socket.IO handshake on each connection
        attempt.
    alert_limit : int
        Number of alerts the store retains (most recent first).
    demo_fallback : bool
        Show the illustrative demo fleet when no credential is stored.
    map : MapSettings
        Map adapter settings.
    """

    api_base_url: str = "http://localhost:3000/api"
    socket_url: str = "http://localhost:3000"
    request_timeout: float = 15.0
    reconnection_attempts: int = 5
    reconnection_delay: float = 1.0
    reconnection_delay_max: float = 5.0
    connect_timeout: float = 10.0
    alert_limit: int = 50
    demo_fallback: bool = True
    map: MapSettings = dataclasses.field(default_factory=MapSettings)

    def __post_init__(self) -> None:
        if self.reconnection_attempts < 1:
            raise FleetConfigError("reconnection_attempts must be >= 1")
        if self.reconnection_delay < 0 or self.reconnection_delay_max < 0:
            raise FleetConfigError("reconnection delays must be >= 0")
        if self.request_timeout <= 0 or self.connect_timeout <= 0:
            raise FleetConfigError("request_timeout and connect_timeout must be > 0")
        if self.alert_limit < 1:
            raise FleetConfigError("alert_limit must be >= 1")

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetConfig:
        """Create configuration from environment variables.

        Reads optional ``FLEET_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FleetConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "FLEET_API_BASE_URL": "api_base_url",
            "FLEET_SOCKET_URL": "socket_url",
        }
        _ENV_FLOAT_MAP = {
            "FLEET_REQUEST_TIMEOUT": "request_timeout",
            "FLEET_RECONNECTION_DELAY": "reconnection_delay",
            "FLEET_RECONNECTION_DELAY_MAX": "reconnection_delay_max",
            "FLEET_CONNECT_TIMEOUT": "connect_timeout",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val.rstrip("/")

        try:
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = float(val)

            attempts_env = env.get("FLEET_RECONNECTION_ATTEMPTS")
            if attempts_env is not None and "reconnection_attempts" not in overrides:
                config_kwargs["reconnection_attempts"] = int(attempts_env)
        except ValueError as exc:
            raise FleetConfigError(f"Invalid numeric FLEET_* variable: {exc}") from exc

        if "demo_fallback" not in overrides:
            config_kwargs["demo_fallback"] = _env_bool(env.get("FLEET_DEMO_FALLBACK"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
