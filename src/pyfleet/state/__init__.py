"""State/store layer.

This package is the single source of truth for tracked entities, the
current selection and the alert feed. REST snapshots and push-channel
events are merged here and nowhere else.
"""

from pyfleet.state.events import ChangeKind, StoreChange
from pyfleet.state.store import VehicleStore

__all__ = ["ChangeKind", "StoreChange", "VehicleStore"]
