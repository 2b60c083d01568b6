"""Tag polling module."""

from .poller import TagPoller, snapshot_to_messages

__all__ = ["TagPoller", "snapshot_to_messages"]
