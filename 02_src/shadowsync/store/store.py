"""SyncStateStore: connection status, conflict set and event log."""

import copy
import uuid
from collections import Counter, deque
from datetime import datetime, timezone
from typing import Any, Protocol

from ..config import clamp_event_log_size
from ..errors import ProtocolViolation, UnknownConflict
from ..logging_config import get_logger
from ..models import (
    DEFAULT_CONFLICT_TYPE,
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
    conflict_to_dict,
    parse_timestamp,
)
from .tag_buffer import TagStreamBuffer

logger = get_logger(__name__)


# Older backends report the interpreter state instead of an execution mode
EXECUTION_MODE_ALIASES = {
    "interpreter": ExecutionMode.SIMULATION,
    "stopped": ExecutionMode.UNSET,
}

# Synthetic conflicts for exercising resolution without a live divergence
SIMULATED_CONFLICTS = [
    {
        "tag_name": "Temperature_SP",
        "shadow_value": 75.0,
        "live_value": 72.5,
        "description": "Setpoint value differs between shadow and live runtime",
    },
    {
        "tag_name": "Pump_Run",
        "shadow_value": True,
        "live_value": False,
        "description": "Pump control state mismatch detected",
    },
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_resolution(resolution: Resolution | str) -> Resolution:
    try:
        return Resolution(resolution)
    except ValueError:
        raise ProtocolViolation(f"Invalid resolution: {resolution!r}") from None


class ISyncStore(Protocol):
    """Domain state owned by the sync client."""

    def handle_message(self, message: BrokerMessage) -> None:
        """Apply a dispatched broker message."""
        ...

    def resolve_conflict(self, conflict_id: str, resolution: Resolution | str) -> Conflict:
        """Resolve one open conflict."""
        ...

    def resolve_all_conflicts(self, resolution: Resolution | str) -> list[Conflict]:
        """Resolve every open conflict."""
        ...

    def push_blockers(self) -> list[str]:
        """Reasons a live push is currently not permitted."""
        ...


class SyncStateStore:
    """Single owner of ConnectionStatus, the conflict set and the event log.

    All mutation happens synchronously inside the named operations below, so
    an event is always applied completely before the next one is processed.
    Readers get deep copies and cannot mutate state behind the store's back.
    """

    def __init__(self, event_log_size: int = 100, tag_buffer_size: int = 20):
        self._status = ConnectionStatus()
        self._events: deque[SyncEvent] = deque(
            maxlen=clamp_event_log_size(event_log_size)
        )
        self._tags = TagStreamBuffer(tag_buffer_size)
        self._shadow_values: dict[str, TagValue] = {}
        self._live_values: dict[str, TagValue] = {}
        self._is_pushing = False
        self._deployed_logic: dict | None = None

        self._handlers = {
            MessageKind.CONNECT: self._apply_connect,
            MessageKind.HEARTBEAT: self._apply_heartbeat,
            MessageKind.TAG_UPDATE: self._apply_tag_update,
            MessageKind.CONFLICT: self._apply_conflict,
            MessageKind.SYNC_STATUS: self._apply_sync_status,
            MessageKind.LOGIC_PUSH_REQUEST: self._apply_push_request,
            MessageKind.LOGIC_PUSH_RESPONSE: self._apply_push_response,
        }

    # Read side

    @property
    def status(self) -> ConnectionStatus:
        """Snapshot of the current connection status."""
        return copy.deepcopy(self._status)

    @property
    def conflicts(self) -> list[Conflict]:
        """Snapshot of all conflicts, resolved ones included."""
        return copy.deepcopy(self._status.conflicts)

    @property
    def unresolved_conflicts(self) -> list[Conflict]:
        """Snapshot of conflicts still awaiting resolution."""
        return [copy.deepcopy(c) for c in self._status.conflicts if not c.resolved]

    @property
    def events(self) -> list[SyncEvent]:
        """Event log, newest first."""
        return list(self._events)

    @property
    def is_pushing(self) -> bool:
        """Whether a push is in flight."""
        return self._is_pushing

    @property
    def deployed_logic(self) -> dict | None:
        """Logic currently deployed to live, as last reported by the backend."""
        return copy.deepcopy(self._deployed_logic)

    def tag_samples(self, source: str | None = None) -> list[TagSample]:
        """Recent tag samples for one stream, or all streams."""
        return self._tags.get(source)

    def tag_values(self, tag_name: str) -> tuple[TagValue | None, TagValue | None]:
        """Last known (shadow, live) values for a tag."""
        return self._shadow_values.get(tag_name), self._live_values.get(tag_name)

    # Dispatch entry point

    def handle_message(self, message: BrokerMessage) -> None:
        """Apply a dispatched broker message."""
        self._handlers[message.kind](message)

    # Connection transitions

    def _apply_connect(self, message: BrokerMessage) -> None:
        self._status.connected = True
        self._status.latency_ms = 0.0
        logger.info("Broker session established")
        self._log(SyncEventType.CONNECT, message.payload)

    def mark_disconnected(self, reason: str = "") -> None:
        """Transport closed or failed: runtime health becomes unknown.

        Conflicts, last sync time and tag history are data, not connectivity,
        and survive the disconnect.
        """
        was_connected = self._status.connected
        self._status.connected = False
        self._status.shadow_ok = False
        self._status.live_ok = False
        self._status.execution_mode = ExecutionMode.UNSET
        self._status.latency_ms = 0.0

        if was_connected:
            logger.info("Broker session lost: %s", reason or "unknown reason")
        self._log(SyncEventType.SYNC_STATUS, {"action": "disconnected", "reason": reason})

    def _apply_heartbeat(self, message: BrokerMessage) -> None:
        payload = message.payload
        latency = payload.get("latencyMs", payload.get("latency", 0.0))
        if isinstance(latency, bool) or not isinstance(latency, (int, float)):
            latency = 0.0
        self._status.latency_ms = max(0.0, float(latency))
        self._log(SyncEventType.HEARTBEAT, {"latencyMs": self._status.latency_ms})

    def _apply_sync_status(self, message: BrokerMessage) -> None:
        self.apply_remote_status(message.payload)

    def apply_remote_status(self, data: dict[str, Any]) -> None:
        """Merge a status report from the broker or the status endpoint.

        ``connected`` is owned by the transport and is ignored here.
        """
        if isinstance(data.get("shadowOk"), bool):
            self._status.shadow_ok = data["shadowOk"]
        if isinstance(data.get("liveOk"), bool):
            self._status.live_ok = data["liveOk"]

        mode = data.get("executionMode")
        if isinstance(mode, str):
            if mode in EXECUTION_MODE_ALIASES:
                self._status.execution_mode = EXECUTION_MODE_ALIASES[mode]
            else:
                try:
                    self._status.execution_mode = ExecutionMode(mode)
                except ValueError:
                    logger.warning("Ignoring unknown execution mode: %s", mode)

        latency = data.get("latency")
        if isinstance(latency, (int, float)) and not isinstance(latency, bool):
            self._status.latency_ms = max(0.0, float(latency))

        last_sync = parse_timestamp(data.get("lastSync"))
        if last_sync is not None:
            self._status.last_sync_at = last_sync

        if "deployedLogic" in data:
            self._deployed_logic = data["deployedLogic"]

        for entry in data.get("conflicts") or []:
            if isinstance(entry, dict):
                self._apply_declared_conflict(entry, _now())

        self._log(
            SyncEventType.SYNC_STATUS,
            {k: v for k, v in data.items() if k not in ("conflicts", "deployedLogic")},
        )

    # Tag values and conflict detection

    def _apply_tag_update(self, message: BrokerMessage) -> None:
        payload = message.payload
        name = payload.get("name") or payload.get("tagName")
        if not isinstance(name, str) or not name:
            logger.warning("Ignoring tag update without a name: %s", payload)
            return

        timestamp = parse_timestamp(payload.get("timestamp")) or message.received_at

        if "shadowValue" in payload or "liveValue" in payload:
            observed = [("shadow", payload.get("shadowValue")), ("live", payload.get("liveValue"))]
        else:
            observed = [(payload.get("source", "live"), payload.get("value"))]

        for source, raw in observed:
            value = TagValue.maybe(raw)
            if value is None:
                continue
            if source == "shadow":
                self._shadow_values[name] = value
            elif source == "live":
                self._live_values[name] = value
            else:
                logger.warning("Ignoring tag update for %s from unknown source %r", name, source)
                continue
            self._tags.add(TagSample(name=name, value=value, timestamp=timestamp, source=source))

        self._log(SyncEventType.TAG_UPDATE, payload)
        self._reconcile(name, timestamp)

    def _reconcile(self, tag_name: str, timestamp: datetime) -> None:
        shadow, live = self.tag_values(tag_name)
        if shadow is None or live is None:
            return

        if shadow != live:
            self._open_or_refresh(tag_name, shadow, live, timestamp)
            return

        # Converged values do not close a conflict; only an operator does
        open_conflict = self._open_conflict_for(tag_name)
        if open_conflict is not None:
            logger.info(
                "Tag %s converged; conflict %s stays open until resolved",
                tag_name,
                open_conflict.id,
            )

    def _apply_conflict(self, message: BrokerMessage) -> None:
        self._apply_declared_conflict(message.payload, message.received_at)

    def _apply_declared_conflict(self, payload: dict, received_at: datetime) -> None:
        tag_name = payload.get("tagName") or payload.get("tag_name")
        shadow = TagValue.maybe(payload.get("shadowValue"))
        live = TagValue.maybe(payload.get("liveValue"))
        if not isinstance(tag_name, str) or shadow is None or live is None:
            logger.warning("Ignoring malformed conflict: %s", payload)
            return
        if payload.get("resolved") is True:
            logger.debug("Ignoring already-resolved conflict for %s", tag_name)
            return
        if shadow == live:
            logger.warning("Ignoring conflict for %s with matching values", tag_name)
            return

        self._shadow_values[tag_name] = shadow
        self._live_values[tag_name] = live
        self._open_or_refresh(
            tag_name,
            shadow,
            live,
            parse_timestamp(payload.get("timestamp")) or received_at,
            conflict_id=payload.get("id"),
            conflict_type=payload.get("type") or DEFAULT_CONFLICT_TYPE,
            description=payload.get("description"),
        )

    def _open_conflict_for(self, tag_name: str) -> Conflict | None:
        for conflict in self._status.conflicts:
            if conflict.tag_name == tag_name and not conflict.resolved:
                return conflict
        return None

    def _find_conflict(self, conflict_id: str) -> Conflict | None:
        for conflict in self._status.conflicts:
            if conflict.id == conflict_id:
                return conflict
        return None

    def _open_or_refresh(
        self,
        tag_name: str,
        shadow: TagValue,
        live: TagValue,
        timestamp: datetime,
        *,
        conflict_id: str | None = None,
        conflict_type: str = DEFAULT_CONFLICT_TYPE,
        description: str | None = None,
        simulated: bool = False,
    ) -> Conflict:
        existing = self._open_conflict_for(tag_name)
        if existing is not None:
            existing.shadow_value = shadow
            existing.live_value = live
            existing.timestamp = timestamp
            # Real readings replace synthetic ones
            existing.simulated = existing.simulated and simulated
            if description:
                existing.description = description
            self._log(
                SyncEventType.CONFLICT,
                {"action": "refreshed", **conflict_to_dict(existing)},
            )
            return existing

        if not conflict_id or self._find_conflict(conflict_id) is not None:
            conflict_id = f"conflict-{uuid.uuid4().hex[:12]}"

        conflict = Conflict(
            id=conflict_id,
            tag_name=tag_name,
            shadow_value=shadow,
            live_value=live,
            timestamp=timestamp,
            type=conflict_type,
            description=description,
            simulated=simulated,
        )
        self._status.conflicts.append(conflict)
        logger.info(
            "Conflict detected on %s: shadow=%r live=%r",
            tag_name,
            shadow.raw,
            live.raw,
            extra={"context": {"conflict_id": conflict.id, "tag_name": tag_name}},
        )
        self._log(SyncEventType.CONFLICT, {"action": "opened", **conflict_to_dict(conflict)})
        return conflict

    # Resolution protocol

    def resolve_conflict(self, conflict_id: str, resolution: Resolution | str) -> Conflict:
        """Resolve one open conflict in place.

        Raises:
            UnknownConflict: no conflict has this id.
            ProtocolViolation: the conflict is already resolved, or the
                resolution is not one of shadow/live.
        """
        chosen = _parse_resolution(resolution)
        conflict = self._find_conflict(conflict_id)
        if conflict is None:
            raise UnknownConflict(conflict_id)
        if conflict.resolved:
            raise ProtocolViolation(f"Conflict already resolved: {conflict_id}")

        self._mark_resolved(conflict, chosen)
        return copy.deepcopy(conflict)

    def resolve_all_conflicts(self, resolution: Resolution | str) -> list[Conflict]:
        """Resolve every open conflict with the same resolution."""
        chosen = _parse_resolution(resolution)
        pending = [c for c in self._status.conflicts if not c.resolved]
        for conflict in pending:
            self._mark_resolved(conflict, chosen)
        return copy.deepcopy(pending)

    def _mark_resolved(self, conflict: Conflict, resolution: Resolution) -> None:
        conflict.resolved = True
        conflict.resolution = resolution
        logger.info(
            "Resolved conflict %s on %s with %s",
            conflict.id,
            conflict.tag_name,
            resolution.value,
            extra={"context": {"conflict_id": conflict.id, "tag_name": conflict.tag_name}},
        )
        self._log(
            SyncEventType.SYNC_STATUS,
            {
                "action": "conflict_resolved",
                "conflictId": conflict.id,
                "tagName": conflict.tag_name,
                "resolution": resolution.value,
            },
        )

    def simulate_conflicts(self) -> list[Conflict]:
        """Inject synthetic conflicts for demos and UI testing.

        Bypasses the tag value tables so detection state is untouched, and
        flags the entries so integrity checks can skip them. Tags with a
        genuine open conflict are skipped.
        """
        injected = []
        for template in SIMULATED_CONFLICTS:
            existing = self._open_conflict_for(template["tag_name"])
            if existing is not None and not existing.simulated:
                logger.info(
                    "Skipping simulated conflict for %s: conflict %s is open",
                    template["tag_name"],
                    existing.id,
                )
                continue
            conflict = self._open_or_refresh(
                template["tag_name"],
                TagValue.of(template["shadow_value"]),
                TagValue.of(template["live_value"]),
                _now(),
                description=template["description"],
                simulated=True,
            )
            injected.append(copy.deepcopy(conflict))
        logger.info("Injected %d simulated conflicts", len(injected))
        return injected

    def integrity_violations(self) -> list[str]:
        """Problems with the conflict set; empty when healthy."""
        violations = []
        open_per_tag = Counter(c.tag_name for c in self._status.conflicts if not c.resolved)
        for tag_name, count in open_per_tag.items():
            if count > 1:
                violations.append(f"{count} open conflicts for tag {tag_name}")

        for conflict in self._status.conflicts:
            if conflict.simulated:
                continue
            if conflict.shadow_value == conflict.live_value:
                violations.append(
                    f"Conflict {conflict.id} on {conflict.tag_name} records no divergence"
                )
        return violations

    # Push gate and bookkeeping

    def push_blockers(self) -> list[str]:
        """Reasons a live push is currently not permitted."""
        reasons = []
        if not self._status.shadow_ok:
            reasons.append("Shadow runtime is not ready")
        pending = [c.tag_name for c in self._status.conflicts if not c.resolved]
        if pending:
            reasons.append(
                f"{len(pending)} unresolved conflict(s): {', '.join(pending)}"
            )
        return reasons

    def begin_push(self) -> None:
        """Mark a push as in flight."""
        self._is_pushing = True

    def end_push(self) -> None:
        """Clear the in-flight push flag."""
        self._is_pushing = False

    def record_push_request(self, logic_id: str, target: str) -> None:
        """Log an outgoing push request."""
        self._log(SyncEventType.LOGIC_PUSH_REQUEST, {"logicId": logic_id, "target": target})

    def record_push_failure(self, logic_id: str, target: str, error: str) -> None:
        """Log a failed push. State is left as it was so the push can be retried."""
        self._log(
            SyncEventType.LOGIC_PUSH_RESPONSE,
            {"logicId": logic_id, "target": target, "success": False, "error": error},
        )

    def commit_push(
        self,
        logic_id: str,
        warnings: list[str] | None = None,
        message: str | None = None,
    ) -> datetime:
        """Apply a successful live push: clear resolved conflicts, stamp sync time.

        A conflict that opened while the push was in flight is not part of
        what was reviewed and stays in the set.
        """
        committed_at = _now()
        late = [c for c in self._status.conflicts if not c.resolved]
        if late:
            logger.warning(
                "%d conflict(s) opened during push of %s remain open",
                len(late),
                logic_id,
            )
        self._status.conflicts = late
        self._status.last_sync_at = committed_at
        self._status.live_ok = True

        self._log(
            SyncEventType.LOGIC_PUSH_RESPONSE,
            {
                "logicId": logic_id,
                "target": "live",
                "success": True,
                "message": message,
                "warnings": warnings or [],
            },
        )
        return committed_at

    def mark_shadow_pushed(self, logic_id: str, message: str | None = None) -> None:
        """Apply a successful shadow push."""
        self._status.shadow_ok = True
        self._status.last_sync_at = _now()
        self._log(
            SyncEventType.LOGIC_PUSH_RESPONSE,
            {"logicId": logic_id, "target": "shadow", "success": True, "message": message},
        )

    def mark_synced(self, synced: int | None = None) -> None:
        """Record a completed tag resynchronisation."""
        self._status.last_sync_at = _now()
        self._log(SyncEventType.SYNC_STATUS, {"action": "tags_synced", "synced": synced})

    def _apply_push_request(self, message: BrokerMessage) -> None:
        self._log(SyncEventType.LOGIC_PUSH_REQUEST, message.payload)

    def _apply_push_response(self, message: BrokerMessage) -> None:
        payload = message.payload
        if payload.get("success") is True:
            self._status.last_sync_at = _now()
            target = payload.get("target")
            if target == "shadow":
                self._status.shadow_ok = True
            elif target == "live":
                self._status.live_ok = True
        else:
            logger.warning("Broker reported failed push: %s", payload.get("errors"))
        self._log(SyncEventType.LOGIC_PUSH_RESPONSE, payload)

    # Event log

    def _log(self, event_type: SyncEventType, payload: dict) -> None:
        self._events.appendleft(
            SyncEvent(
                id=str(uuid.uuid4()),
                type=event_type,
                timestamp=_now(),
                payload=dict(payload),
            )
        )
