"""Core data models for Shadow Sync."""

from .values import TagValue, ValueKind
from .status import (
    DEFAULT_CONFLICT_TYPE,
    Conflict,
    ConnectionStatus,
    ExecutionMode,
    Resolution,
)
from .events import SyncEvent, SyncEventType, TagSample
from .messages import BrokerMessage, MessageKind, parse_timestamp
from .serialize import conflict_to_dict, event_to_dict, sample_to_dict, status_to_dict

__all__ = [
    # Values
    "TagValue",
    "ValueKind",
    # Status
    "Conflict",
    "ConnectionStatus",
    "DEFAULT_CONFLICT_TYPE",
    "ExecutionMode",
    "Resolution",
    # Events
    "SyncEvent",
    "SyncEventType",
    "TagSample",
    # Broker
    "BrokerMessage",
    "MessageKind",
    "parse_timestamp",
    # Serialization
    "conflict_to_dict",
    "event_to_dict",
    "sample_to_dict",
    "status_to_dict",
]
