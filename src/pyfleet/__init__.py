"""pyfleet - Async real-time fleet tracking state layer."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyfleet")
except PackageNotFoundError:
    __version__ = "0+local"
from pyfleet.channel import ChannelState, PushChannel
from pyfleet.client import FleetClient
from pyfleet.config import FleetConfig, MapSettings
from pyfleet.credentials import Credential, CredentialStore
from pyfleet.exceptions import (
    FleetApiError,
    FleetAuthenticationError,
    FleetConfigError,
    FleetError,
    FleetMapError,
    FleetSessionExpiredError,
    FleetTransportError,
)
from pyfleet.live import LiveFleet
from pyfleet.map import AdapterState, MapAdapter, MapTheme, MapWidget
from pyfleet.models import (
    Alert,
    Entity,
    EntityCategory,
    EntityStatus,
    EventKind,
    LocationUpdate,
    NewAlert,
    NewEntity,
    Notice,
    NoticeLevel,
    Position,
    StatusUpdate,
)
from pyfleet.state import ChangeKind, StoreChange, VehicleStore
from pyfleet.trajectory import TrajectoryAccumulator, TrajectoryStyle, trajectory_style

__all__ = [
    "AdapterState",
    "Alert",
    "ChangeKind",
    "ChannelState",
    "Credential",
    "CredentialStore",
    "Entity",
    "EntityCategory",
    "EntityStatus",
    "EventKind",
    "FleetApiError",
    "FleetAuthenticationError",
    "FleetClient",
    "FleetConfig",
    "FleetConfigError",
    "FleetError",
    "FleetMapError",
    "FleetSessionExpiredError",
    "FleetTransportError",
    "LiveFleet",
    "LocationUpdate",
    "MapAdapter",
    "MapSettings",
    "MapTheme",
    "MapWidget",
    "NewAlert",
    "NewEntity",
    "Notice",
    "NoticeLevel",
    "Position",
    "PushChannel",
    "StatusUpdate",
    "StoreChange",
    "TrajectoryAccumulator",
    "TrajectoryStyle",
    "VehicleStore",
    "__version__",
    "trajectory_style",
]
