"""API module."""

from .app import create_fastapi_app, get_client

__all__ = ["create_fastapi_app", "get_client"]
