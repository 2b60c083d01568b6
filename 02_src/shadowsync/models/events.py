"""Sync event log and tag stream models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .values import TagValue


class SyncEventType(str, Enum):
    """Kinds of entries in the sync event log."""

    CONNECT = "CONNECT"
    HEARTBEAT = "HEARTBEAT"
    TAG_UPDATE = "TAG_UPDATE"
    CONFLICT = "CONFLICT"
    SYNC_STATUS = "SYNC_STATUS"
    LOGIC_PUSH_REQUEST = "LOGIC_PUSH_REQUEST"
    LOGIC_PUSH_RESPONSE = "LOGIC_PUSH_RESPONSE"


@dataclass
class SyncEvent:
    """A single observability entry. Never read by protocol logic."""

    id: str
    type: SyncEventType
    timestamp: datetime
    payload: dict  # varies by type


@dataclass
class TagSample:
    """One observed tag value for live displays."""

    name: str
    value: TagValue
    timestamp: datetime
    source: str  # "shadow" or "live"
