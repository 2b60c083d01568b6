"""TagPoller: polling fallback for the tag push stream."""

import asyncio
from datetime import datetime, timezone

from ..deploy import IDeploymentClient
from ..errors import RemoteFailure
from ..event_bus import IEventDispatcher
from ..logging_config import get_logger
from ..models import BrokerMessage, MessageKind

logger = get_logger(__name__)


def snapshot_to_messages(snapshot: dict, source: str = "shadow") -> list[BrokerMessage]:
    """Convert a stream-tags snapshot into TAG_UPDATE messages.

    Tag entries are either a bare value (attributed to ``source``) or an
    object carrying ``shadow`` and/or ``live`` values.
    """
    if not snapshot.get("streaming", True):
        return []
    tags = snapshot.get("tags")
    if not isinstance(tags, dict):
        return []

    received_at = datetime.now(timezone.utc)
    timestamp = snapshot.get("timestamp") or received_at.isoformat()

    messages = []
    for name, entry in tags.items():
        if isinstance(entry, dict):
            payload = {"name": name, "timestamp": timestamp}
            if "shadow" in entry:
                payload["shadowValue"] = entry["shadow"]
            if "live" in entry:
                payload["liveValue"] = entry["live"]
        else:
            payload = {"name": name, "value": entry, "source": source, "timestamp": timestamp}
        messages.append(
            BrokerMessage(kind=MessageKind.TAG_UPDATE, payload=payload, received_at=received_at)
        )
    return messages


class TagPoller:
    """Periodically pulls the tag stream snapshot into the TAG_UPDATE path."""

    def __init__(
        self,
        deployment: IDeploymentClient,
        dispatcher: IEventDispatcher,
        interval: float = 1.0,
        source: str = "shadow",
    ):
        self._deployment = deployment
        self._dispatcher = dispatcher
        self._interval = interval
        self._source = source
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        """Whether the poll loop is active."""
        return self._running

    async def start(self) -> None:
        """Kick off backend streaming and start polling."""
        if self._running:
            return
        self._running = True
        try:
            await self._deployment.start_streaming()
        except RemoteFailure as e:
            logger.error("Failed to start tag streaming: %s", e)
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Stop polling."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def poll_once(self) -> int:
        """Fetch one snapshot and dispatch its tag updates."""
        snapshot = await self._deployment.stream_tags()
        messages = snapshot_to_messages(snapshot, self._source)
        for message in messages:
            self._dispatcher.publish(message)
        return len(messages)

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except RemoteFailure as e:
                logger.warning("Tag stream poll failed: %s", e)
            await asyncio.sleep(self._interval)
