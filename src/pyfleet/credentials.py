"""Bearer credential state.

Replaces browser token storage with an explicit object that is
constructed once and injected wherever a token is needed.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field


class Credential(BaseModel):
    """Bearer credential pair.

    Parameters
    ----------
    access_token : str
        Token sent as ``Authorization: Bearer <token>`` on every call
        and in the push-channel handshake.
    refresh_token : str or None
        Token exchanged for a new access token after a 401.
    issued_at : float
        Monotonic timestamp (``time.monotonic()``) when the credential
        was obtained.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    issued_at: float = Field(default_factory=time.monotonic)

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"

    @property
    def age(self) -> float:
        """Seconds since the credential was obtained."""
        return time.monotonic() - self.issued_at

    def __repr__(self) -> str:
        return f"Credential(access_token=<redacted>, refresh={'yes' if self.refresh_token else 'no'})"


class CredentialStore:
    """Holds the current credential and notifies listeners on change."""

    def __init__(self, credential: Credential | None = None) -> None:
        self._credential = credential
        self._listeners: list[Callable[[Credential | None], None]] = []

    @property
    def credential(self) -> Credential | None:
        return self._credential

    @property
    def access_token(self) -> str | None:
        return self._credential.access_token if self._credential is not None else None

    def set(self, credential: Credential) -> None:
        self._credential = credential
        self._notify()

    def clear(self) -> None:
        if self._credential is None:
            return
        self._credential = None
        self._notify()

    def on_change(self, listener: Callable[[Credential | None], None]) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._credential)
