"""JSON-friendly views of the sync models."""

from datetime import datetime

from .events import SyncEvent, TagSample
from .status import Conflict, ConnectionStatus


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def conflict_to_dict(conflict: Conflict) -> dict:
    """Serialize a Conflict with raw (full precision) values."""
    return {
        "id": conflict.id,
        "tag_name": conflict.tag_name,
        "shadow_value": conflict.shadow_value.to_json(),
        "live_value": conflict.live_value.to_json(),
        "timestamp": _iso(conflict.timestamp),
        "type": conflict.type,
        "description": conflict.description,
        "resolved": conflict.resolved,
        "resolution": conflict.resolution.value if conflict.resolution else None,
        "simulated": conflict.simulated,
    }


def status_to_dict(status: ConnectionStatus) -> dict:
    """Serialize a ConnectionStatus snapshot."""
    return {
        "connected": status.connected,
        "shadow_ok": status.shadow_ok,
        "live_ok": status.live_ok,
        "execution_mode": status.execution_mode.value,
        "latency_ms": status.latency_ms,
        "last_sync_at": _iso(status.last_sync_at),
        "conflicts": [conflict_to_dict(c) for c in status.conflicts],
    }


def event_to_dict(event: SyncEvent) -> dict:
    """Serialize a SyncEvent."""
    return {
        "id": event.id,
        "type": event.type.value,
        "timestamp": _iso(event.timestamp),
        "payload": event.payload,
    }


def sample_to_dict(sample: TagSample) -> dict:
    """Serialize a TagSample."""
    return {
        "name": sample.name,
        "value": sample.value.to_json(),
        "display": sample.value.display(),
        "timestamp": _iso(sample.timestamp),
        "source": sample.source,
    }
