"""Bearer token providers for the deployment API."""

from typing import Protocol

import httpx

from ..logging_config import get_logger

logger = get_logger(__name__)


class ITokenProvider(Protocol):
    """Source of bearer tokens for authenticated backend calls."""

    async def get_token(self) -> str | None:
        """Return a session token, or None when unauthenticated."""
        ...


class StaticTokenProvider:
    """Fixed token, typically from SYNC_DEVICE_TOKEN."""

    def __init__(self, token: str | None):
        self._token = token

    async def get_token(self) -> str | None:
        return self._token


class DeviceTokenProvider:
    """Obtains and caches a device session token from the backend.

    A cached token is revalidated before reuse; an invalid one is dropped
    and a fresh one requested from the public device endpoint.
    """

    def __init__(self, client: httpx.AsyncClient, api_url: str):
        self._client = client
        self._api_url = api_url.rstrip("/")
        self._token: str | None = None

    async def get_token(self) -> str | None:
        """Return a valid session token, fetching one if needed."""
        if self._token and await self._validate(self._token):
            return self._token
        self._token = None

        try:
            response = await self._client.post(
                f"{self._api_url}/device/public-info", timeout=10.0
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to obtain device session token: %s", e)
            return None

        if not isinstance(data, dict):
            logger.error("Unexpected device token response: %r", data)
            return None

        if data.get("success") and data.get("sessionToken"):
            self._token = data["sessionToken"]
            logger.info("Device session token acquired")
        elif data.get("needsOnboarding"):
            logger.warning("Device requires onboarding before it can authenticate")
        else:
            logger.warning("Device token request refused: %s", data.get("message"))
        return self._token

    async def _validate(self, token: str) -> bool:
        try:
            response = await self._client.post(
                f"{self._api_url}/device/validate-session",
                headers={"Authorization": f"Bearer {token}"},
                timeout=10.0,
            )
        except httpx.HTTPError as e:
            logger.warning("Session validation failed: %s", e)
            return False
        return response.status_code == 200
