"""Change notifications emitted by the vehicle store."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from pyfleet.models._base import EntityId
from pyfleet.models.alert import Alert
from pyfleet.models.entity import Entity


class ChangeKind(StrEnum):
    SNAPSHOT = "snapshot"
    LOCATION = "location"
    STATUS = "status"
    SELECTION = "selection"
    ALERT = "alert"
    LOADING = "loading"
    ERROR = "error"


class StoreChange(BaseModel):
    """One applied store mutation.

    Listeners receive these in the order the mutations were applied.
    They describe what changed; the current state is always read back
    from the store itself.
    """

    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    entity_id: EntityId | None = None
    entity: Entity | None = None
    alert: Alert | None = None
    removed: tuple[EntityId, ...] = ()
    message: str | None = None
