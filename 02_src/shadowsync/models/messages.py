"""Inbound broker message models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MessageKind(str, Enum):
    """Classified inbound broker message kinds."""

    CONNECT = "connect"
    HEARTBEAT = "heartbeat"
    TAG_UPDATE = "tag_update"
    LOGIC_PUSH_REQUEST = "logic_push_request"
    LOGIC_PUSH_RESPONSE = "logic_push_response"
    CONFLICT = "conflict"
    SYNC_STATUS = "sync_status"


@dataclass
class BrokerMessage:
    """A classified frame, ready for dispatch to subscribers."""

    kind: MessageKind
    payload: dict
    received_at: datetime


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 wire timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
