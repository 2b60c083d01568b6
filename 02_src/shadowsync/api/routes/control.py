"""Control API routes."""

from fastapi import APIRouter
from pydantic import BaseModel

from ...app import SyncClient


class StatusResponse(BaseModel):
    """Response model for control actions."""

    status: str
    connected: bool


def create_control_router(client: SyncClient) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/reconnect", response_model=StatusResponse)
    async def reconnect() -> dict:
        """Drop and re-open the broker session."""
        await client.transport.reconnect()
        return {"status": "ok", "connected": client.transport.connected}

    @router.post("/disconnect", response_model=StatusResponse)
    async def disconnect() -> dict:
        """Close the broker session without reconnecting."""
        await client.transport.close()
        return {"status": "ok", "connected": client.transport.connected}

    return router
