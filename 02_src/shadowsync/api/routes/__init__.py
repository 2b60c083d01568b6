"""API routes."""

from .control import create_control_router
from .sync import create_sync_router, raise_http_error

__all__ = ["create_control_router", "create_sync_router", "raise_http_error"]
