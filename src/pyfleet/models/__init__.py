"""Data models for pyfleet."""

from pyfleet.models._base import EntityId, FleetBaseModel, FleetTimestamp, parse_timestamp
from pyfleet.models.alert import Alert
from pyfleet.models.entity import Driver, Entity, EntityCategory, EntityStatus, Position
from pyfleet.models.events import (
    ChannelCommand,
    ChannelEvent,
    ConnectionSuccess,
    EventKind,
    LocationUpdate,
    NewAlert,
    NewEntity,
    StatusUpdate,
    TripEvent,
)
from pyfleet.models.notice import Notice, NoticeLevel

__all__ = [
    "Alert",
    "ChannelCommand",
    "ChannelEvent",
    "ConnectionSuccess",
    "Driver",
    "Entity",
    "EntityCategory",
    "EntityId",
    "EntityStatus",
    "EventKind",
    "FleetBaseModel",
    "FleetTimestamp",
    "LocationUpdate",
    "NewAlert",
    "NewEntity",
    "Notice",
    "NoticeLevel",
    "Position",
    "StatusUpdate",
    "TripEvent",
    "parse_timestamp",
]
