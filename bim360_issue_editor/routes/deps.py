"""
Request dependencies shared by the API routers.

The user-context token is whatever the browse UI obtained through the
three-legged login and arrives as a bearer ``Authorization`` header.
App-context tokens are minted here from the configured client credentials.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..config import Settings, get_settings
from ..integrations import BIM360Client, ForgeAuthClient

APP_SCOPES = ["account:read", "data:read"]

_auth_client: Optional[ForgeAuthClient] = None


def _client(token: str, settings: Settings) -> BIM360Client:
    return BIM360Client(
        token,
        region=settings.forge_region,
        base_url=settings.forge_base_url,
        timeout=settings.request_timeout_seconds,
    )


def get_auth_client(settings: Settings = Depends(get_settings)) -> Optional[ForgeAuthClient]:
    """App-context authenticator, or None when no client credentials are set."""
    global _auth_client
    if not settings.forge_client_id or not settings.forge_client_secret:
        return None
    if _auth_client is None:
        _auth_client = ForgeAuthClient(
            settings.forge_client_id,
            settings.forge_client_secret,
            base_url=settings.forge_base_url,
        )
    return _auth_client


async def get_user_client(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[BIM360Client, None]:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Missing bearer token")
    client = _client(token.strip(), settings)
    try:
        yield client
    finally:
        await client.close()


async def get_optional_app_client(
    auth_client: Optional[ForgeAuthClient] = Depends(get_auth_client),
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[Optional[BIM360Client], None]:
    if auth_client is None:
        yield None
        return
    token = await auth_client.authenticate(APP_SCOPES)
    client = _client(token, settings)
    try:
        yield client
    finally:
        await client.close()


async def get_app_client(
    client: Optional[BIM360Client] = Depends(get_optional_app_client),
) -> BIM360Client:
    if client is None:
        raise HTTPException(status_code=503, detail="App credentials not configured")
    return client
