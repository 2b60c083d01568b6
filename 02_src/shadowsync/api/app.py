"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import SyncClient
from .routes import create_control_router, create_sync_router


# Global sync client instance
_client: SyncClient | None = None


def get_client() -> SyncClient:
    """Get the global sync client instance."""
    global _client
    if not _client:
        _client = SyncClient()
    return _client


def create_fastapi_app(client: SyncClient | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    sync_client = client or get_client()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage sync client lifespan."""
        await sync_client.start()
        yield
        await sync_client.stop()

    fastapi_app = FastAPI(
        title="Shadow Sync API",
        description="Local control API for shadow/live reconciliation",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:5174"],  # Vite default
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    fastapi_app.include_router(create_sync_router(sync_client))
    fastapi_app.include_router(create_control_router(sync_client))

    return fastapi_app
