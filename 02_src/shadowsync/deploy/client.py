"""HTTP client for the deployment and tag-stream endpoints."""

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from ..errors import RemoteFailure
from ..logging_config import get_logger
from .auth import ITokenProvider

logger = get_logger(__name__)


@dataclass
class DeployResult:
    """Outcome reported by the deployment endpoint."""

    success: bool
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


class IDeploymentClient(Protocol):
    """Backend calls used by the push orchestrator and tag poller."""

    async def push(self, logic_id: str, target: str) -> DeployResult:
        """Push logic to the shadow or live runtime."""
        ...

    async def sync_tags(self) -> int:
        """Ask the backend to resynchronise tags; returns the synced count."""
        ...

    async def fetch_status(self) -> dict:
        """Current sync status, including the deployed logic."""
        ...

    async def fetch_logic(self, logic_id: str) -> str:
        """Source content of a logic file."""
        ...

    async def start_streaming(self) -> None:
        """Start the backend tag stream."""
        ...

    async def stream_tags(self) -> dict:
        """Snapshot of current streamed tag values."""
        ...


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("error", "detail", "message"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {response.status_code}"


class DeploymentClient:
    """httpx-based client for the backend sync API."""

    def __init__(
        self,
        api_url: str,
        token_provider: ITokenProvider | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._api_url = api_url.rstrip("/")
        self._token_provider = token_provider
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if we created it."""
        if self._owns_client:
            await self._client.aclose()

    async def push(self, logic_id: str, target: str) -> DeployResult:
        """Push logic to the shadow or live runtime."""
        data = await self._request(
            "POST", "/sync/push", json={"logicId": logic_id, "target": target}
        )
        warnings = data.get("warnings") or []
        if not isinstance(warnings, list):
            warnings = [warnings]
        return DeployResult(
            success=bool(data.get("success")),
            message=str(data.get("message", "")),
            warnings=[str(w) for w in warnings],
            error=data.get("error"),
        )

    async def sync_tags(self) -> int:
        """Ask the backend to resynchronise tags; returns the synced count."""
        data = await self._request("POST", "/sync/tags")
        if not data.get("success", True):
            raise RemoteFailure(str(data.get("error") or "Tag sync rejected"))
        return int(data.get("synced", 0))

    async def fetch_status(self) -> dict:
        """Current sync status, including the deployed logic."""
        return await self._request("GET", "/sync/status")

    async def fetch_logic(self, logic_id: str) -> str:
        """Source content of a logic file."""
        data = await self._request("GET", f"/logic/{logic_id}")
        return str(data.get("content", ""))

    async def start_streaming(self) -> None:
        """Start the backend tag stream."""
        await self._request("POST", "/sync/start-streaming")

    async def stream_tags(self) -> dict:
        """Snapshot of current streamed tag values."""
        return await self._request("GET", "/sync/stream-tags")

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._token_provider is not None:
            token = await self._token_provider.get_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        url = f"{self._api_url}{path}"
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteFailure(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.error("%s %s returned %s: %s", method, path, response.status_code, detail)
            raise RemoteFailure(detail, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteFailure(f"{method} {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise RemoteFailure(f"{method} {path} returned unexpected payload")
        return data
