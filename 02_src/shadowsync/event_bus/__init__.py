"""EventDispatcher module."""

from .dispatcher import (
    EventDispatcher,
    IEventDispatcher,
    MessageHandler,
    Unsubscribe,
    classify_frame,
)

__all__ = [
    "EventDispatcher",
    "IEventDispatcher",
    "MessageHandler",
    "Unsubscribe",
    "classify_frame",
]
