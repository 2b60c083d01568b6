"""Shadow Sync: shadow/live reconciliation client."""

from .app import ISyncClient, SyncClient
from .config import SyncSettings, load_settings
from .deploy import DeploymentClient, DeployResult, IDeploymentClient
from .errors import (
    ProtocolViolation,
    RemoteFailure,
    SyncError,
    TransportError,
    UnknownConflict,
)
from .event_bus import EventDispatcher, IEventDispatcher, classify_frame
from .models import (
    BrokerMessage,
    Conflict,
    ConnectionStatus,
    ExecutionMode,
    MessageKind,
    Resolution,
    SyncEvent,
    SyncEventType,
    TagSample,
    TagValue,
)
from .polling import TagPoller
from .push import PushOrchestrator, PushPreview, PushResult, PushStage
from .store import SyncStateStore
from .transport import TransportSession

__all__ = [
    # Client
    "ISyncClient",
    "SyncClient",
    "SyncSettings",
    "load_settings",
    # Errors
    "SyncError",
    "TransportError",
    "ProtocolViolation",
    "UnknownConflict",
    "RemoteFailure",
    # Models
    "BrokerMessage",
    "Conflict",
    "ConnectionStatus",
    "ExecutionMode",
    "MessageKind",
    "Resolution",
    "SyncEvent",
    "SyncEventType",
    "TagSample",
    "TagValue",
    # Components
    "TransportSession",
    "IEventDispatcher",
    "EventDispatcher",
    "classify_frame",
    "SyncStateStore",
    "PushOrchestrator",
    "PushPreview",
    "PushResult",
    "PushStage",
    "IDeploymentClient",
    "DeploymentClient",
    "DeployResult",
    "TagPoller",
]
