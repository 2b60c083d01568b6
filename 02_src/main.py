"""Main entry point for the Shadow Sync client."""

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from shadowsync.api import create_fastapi_app
from shadowsync.app import SyncClient
from shadowsync.config import load_settings
from shadowsync.logging_config import setup_logging


def main():
    """Run the sync client with its local control API."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    settings = load_settings()
    app = create_fastapi_app(SyncClient(settings))

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
