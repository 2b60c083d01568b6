"""Connection status and conflict models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .values import TagValue


class ExecutionMode(str, Enum):
    """How the shadow runtime is currently executing logic."""

    SIMULATION = "simulation"
    EXTERNAL_RUNTIME = "external-runtime"
    FAILED = "failed"
    UNSET = "unset"


class Resolution(str, Enum):
    """Which side wins when a conflict is resolved."""

    SHADOW = "shadow"
    LIVE = "live"


DEFAULT_CONFLICT_TYPE = "VALUE_CONFLICT"


@dataclass
class Conflict:
    """Divergence between shadow and live values for one tag."""

    id: str
    tag_name: str
    shadow_value: TagValue
    live_value: TagValue
    timestamp: datetime
    type: str = DEFAULT_CONFLICT_TYPE  # VALUE_CONFLICT, TYPE_CONFLICT, ACCESS_CONFLICT
    description: str | None = None
    resolved: bool = False
    resolution: Resolution | None = None
    simulated: bool = False  # injected by simulate_conflicts()


@dataclass
class ConnectionStatus:
    """Broker connection and runtime health as seen by this client."""

    connected: bool = False
    shadow_ok: bool = False
    live_ok: bool = False
    execution_mode: ExecutionMode = ExecutionMode.UNSET
    latency_ms: float = 0.0
    last_sync_at: datetime | None = None
    conflicts: list[Conflict] = field(default_factory=list)
