"""EventDispatcher implementation for broker message fan-out."""

from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from ..logging_config import get_logger
from ..models import BrokerMessage, MessageKind

logger = get_logger(__name__)


MessageHandler = Callable[[BrokerMessage], None]
Unsubscribe = Callable[[], None]

# Wire type name -> classified kind
FRAME_KINDS: dict[str, MessageKind] = {
    "connect": MessageKind.CONNECT,
    "heartbeat": MessageKind.HEARTBEAT,
    "heartbeat_ack": MessageKind.HEARTBEAT,
    "heartbeat-ack": MessageKind.HEARTBEAT,
    "tag_update": MessageKind.TAG_UPDATE,
    "logic_push_request": MessageKind.LOGIC_PUSH_REQUEST,
    "logic_push_response": MessageKind.LOGIC_PUSH_RESPONSE,
    "conflict": MessageKind.CONFLICT,
    "sync_status": MessageKind.SYNC_STATUS,
    "sync_status_update": MessageKind.SYNC_STATUS,
}


def classify_frame(frame: dict[str, Any]) -> BrokerMessage | None:
    """Turn a decoded broker frame into a BrokerMessage, or None if unknown."""
    frame_type = frame.get("type")
    kind = FRAME_KINDS.get(frame_type) if isinstance(frame_type, str) else None
    if kind is None:
        logger.warning("Dropping frame of unknown type: %r", frame_type)
        return None

    payload = frame.get("payload")
    if not isinstance(payload, dict):
        payload = {}

    return BrokerMessage(
        kind=kind,
        payload=payload,
        received_at=datetime.now(timezone.utc),
    )


class IEventDispatcher(Protocol):
    """Synchronous fan-out of BrokerMessages to subscribers."""

    def subscribe(self, handler: MessageHandler) -> Unsubscribe:
        """Register a handler; returns a callable that removes it."""
        ...

    def publish(self, message: BrokerMessage) -> None:
        """Deliver message to every current subscriber, in registration order."""
        ...


class EventDispatcher:
    """In-memory, synchronous, fault-isolating dispatcher."""

    def __init__(self) -> None:
        self._subscribers: list[MessageHandler] = []

    def subscribe(self, handler: MessageHandler) -> Unsubscribe:
        """Register a handler; returns a callable that removes it."""
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    def publish(self, message: BrokerMessage) -> None:
        """Deliver message to every current subscriber, in registration order."""
        if not self._subscribers:
            logger.debug("No subscribers, dropping %s message", message.kind.value)
            return

        # Snapshot so handlers may unsubscribe while we iterate
        for handler in list(self._subscribers):
            try:
                handler(message)
            except Exception:
                logger.error(
                    "Error in handler %s for %s message",
                    getattr(handler, "__qualname__", repr(handler)),
                    message.kind.value,
                    exc_info=True,
                )

    def publish_frame(self, frame: dict[str, Any]) -> None:
        """Classify a raw frame and publish it if it is a known kind."""
        message = classify_frame(frame)
        if message is not None:
            self.publish(message)

    @property
    def subscriber_count(self) -> int:
        """Number of currently registered handlers."""
        return len(self._subscribers)
