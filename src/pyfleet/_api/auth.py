"""Token refresh endpoint: ``POST /auth/refresh-token``."""

from __future__ import annotations

from pyfleet._transport import Transport
from pyfleet.credentials import Credential
from pyfleet.exceptions import FleetAuthenticationError


async def refresh_credential(transport: Transport, credential: Credential) -> Credential:
    """Exchange the refresh token for a new access token.

    The refresh token itself is kept unless the server rotates it.
    """
    endpoint = "/auth/refresh-token"
    if not credential.refresh_token:
        raise FleetAuthenticationError("No refresh token available", endpoint=endpoint)

    payload = await transport.request_json(
        "POST",
        endpoint,
        body={"refreshToken": credential.refresh_token},
    )
    access_token = payload.get("accessToken") if isinstance(payload, dict) else None
    if not isinstance(access_token, str) or not access_token.strip():
        raise FleetAuthenticationError("Token refresh response missing accessToken", endpoint=endpoint)

    rotated = payload.get("refreshToken")
    refresh_token = rotated if isinstance(rotated, str) and rotated else credential.refresh_token
    return Credential(access_token=access_token, refresh_token=refresh_token)
