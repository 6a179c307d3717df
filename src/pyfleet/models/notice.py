"""User-facing transient notifications."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class NoticeLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notice(BaseModel):
    """A transient, non-blocking notification (a toast, in a UI)."""

    model_config = ConfigDict(frozen=True)

    level: NoticeLevel
    message: str
    description: str | None = None
