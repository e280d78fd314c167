"""
App-context (two-legged) authentication against Forge.

Only the client-credentials grant lives here; the interactive three-legged
login is handled outside this package and hands us a ready access token.
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

import httpx

from .bim360 import DEFAULT_BASE_URL
from .errors import BIM360APIError

logger = logging.getLogger(__name__)


class ForgeAuthClient:
    """Obtains and caches app-context access tokens."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self._cache: Dict[Tuple[str, ...], Tuple[str, float]] = {}

    async def authenticate(self, scopes: List[str]) -> str:
        """Return an access token for the given scopes, reusing a live one."""
        key = tuple(sorted(scopes))
        cached = self._cache.get(key)
        if cached and cached[1] > time.time():
            return cached[0]

        async with httpx.AsyncClient(base_url=self.base_url, transport=self.transport) as client:
            try:
                response = await client.post(
                    "/authentication/v2/token",
                    data={"grant_type": "client_credentials", "scope": " ".join(scopes)},
                    auth=(self.client_id, self.client_secret),
                )
            except httpx.RequestError as e:
                logger.error(f"Failed to obtain app-context token: {e}")
                raise

        if response.is_error:
            raise BIM360APIError(
                status_code=response.status_code,
                message="Could not obtain app-context token",
                response=response.text or None,
            )
        payload = response.json()
        token = payload["access_token"]
        # Refresh a minute early
        expires_at = time.time() + float(payload.get("expires_in", 3600)) - 60
        self._cache[key] = (token, expires_at)
        return token
