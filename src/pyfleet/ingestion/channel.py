"""Push-channel ingestion.

Translates named Socket.IO events ``(event name, payload)`` into typed
:data:`~pyfleet.models.events.ChannelEvent` variants. This is the only
place where the loose wire shape is inspected.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pyfleet._redact import redact_for_log
from pyfleet.models.alert import Alert
from pyfleet.models.events import (
    ChannelEvent,
    ConnectionSuccess,
    EventKind,
    LocationUpdate,
    NewAlert,
    NewEntity,
    StatusUpdate,
    TripEvent,
)

_logger = logging.getLogger(__name__)


def parse_channel_event(name: str, payload: Any) -> ChannelEvent | None:
    """Build a typed event from a named Socket.IO event.

    Returns ``None`` for unknown event names and for payloads that cannot
    be routed (no entity id where one is required). Missing optional
    fields are defaulted by the models.
    """
    try:
        kind = EventKind(name)
    except ValueError:
        _logger.debug("Ignoring unknown channel event %s", name)
        return None

    data: dict[str, Any] = payload if isinstance(payload, dict) else {}

    try:
        if kind is EventKind.LOCATION_UPDATE:
            return LocationUpdate.model_validate(data)
        if kind is EventKind.VEHICLE_STATUS:
            return StatusUpdate.model_validate(data)
        if kind is EventKind.ALERT_NEW:
            return NewAlert(alert=Alert.model_validate(data))
        if kind is EventKind.VEHICLE_NEW:
            return NewEntity.model_validate(data)
        if kind in (EventKind.TRIP_STARTED, EventKind.TRIP_ENDED):
            return TripEvent.model_validate({**data, "kind": kind})
        if isinstance(payload, str):
            return ConnectionSuccess(message=payload)
        return ConnectionSuccess.model_validate(data)
    except ValidationError:
        _logger.debug("Malformed %s payload dropped: %s", name, redact_for_log(payload), exc_info=True)
        return None
