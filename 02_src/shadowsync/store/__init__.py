"""SyncStateStore module."""

from .store import ISyncStore, SyncStateStore
from .tag_buffer import TagStreamBuffer

__all__ = ["ISyncStore", "SyncStateStore", "TagStreamBuffer"]
