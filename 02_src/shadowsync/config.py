"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

LOGS_DIR.mkdir(parents=True, exist_ok=True)

EVENT_LOG_MIN = 20
EVENT_LOG_MAX = 200


@dataclass
class SyncSettings:
    """Runtime settings for the sync client."""

    broker_url: str = "ws://localhost:8000/ws/sync"
    api_url: str = "http://localhost:8000/api"
    project_id: str = "default-project"
    client_type: str = "shadow-sync-client"
    reconnect_delay: float = 5.0
    heartbeat_interval: float = 5.0
    event_log_size: int = 100
    tag_buffer_size: int = 20
    poll_interval: float = 1.0
    polling_enabled: bool = False
    device_token: str | None = None
    api_host: str = "localhost"
    api_port: int = 8001


def clamp_event_log_size(size: int) -> int:
    """Keep the event log retention window within supported bounds."""
    return max(EVENT_LOG_MIN, min(EVENT_LOG_MAX, size))


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(env: dict[str, str] | None = None) -> SyncSettings:
    """Build SyncSettings from environment variables."""
    source = os.environ if env is None else env
    defaults = SyncSettings()

    return SyncSettings(
        broker_url=source.get("SYNC_BROKER_URL", defaults.broker_url),
        api_url=source.get("SYNC_API_URL", defaults.api_url).rstrip("/"),
        project_id=source.get("SYNC_PROJECT_ID", defaults.project_id),
        client_type=source.get("SYNC_CLIENT_TYPE", defaults.client_type),
        reconnect_delay=float(
            source.get("SYNC_RECONNECT_DELAY", defaults.reconnect_delay)
        ),
        heartbeat_interval=float(
            source.get("SYNC_HEARTBEAT_INTERVAL", defaults.heartbeat_interval)
        ),
        event_log_size=clamp_event_log_size(
            int(source.get("SYNC_EVENT_LOG_SIZE", defaults.event_log_size))
        ),
        tag_buffer_size=int(
            source.get("SYNC_TAG_BUFFER_SIZE", defaults.tag_buffer_size)
        ),
        poll_interval=float(source.get("SYNC_POLL_INTERVAL", defaults.poll_interval)),
        polling_enabled=_env_bool(
            source.get("SYNC_POLLING_ENABLED"), defaults.polling_enabled
        ),
        device_token=source.get("SYNC_DEVICE_TOKEN") or None,
        api_host=source.get("API_HOST", defaults.api_host),
        api_port=int(source.get("API_PORT", defaults.api_port)),
    )
