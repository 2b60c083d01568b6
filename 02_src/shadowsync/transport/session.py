"""Websocket transport session to the sync broker."""

import asyncio
import contextlib
import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from websockets.asyncio.client import connect

from ..errors import TransportError
from ..logging_config import get_logger
from ..models import parse_timestamp

logger = get_logger(__name__)


Frame = dict[str, Any]
Connector = Callable[[str], Awaitable[Any]]

HEARTBEAT_ACK_TYPES = {"heartbeat", "heartbeat_ack", "heartbeat-ack"}


def compute_latency_ms(
    payload: dict,
    now: datetime,
    heartbeat_sent_at: datetime | None = None,
) -> float:
    """Round-trip latency for a heartbeat acknowledgment, never negative.

    A broker-reported ``latency`` figure wins; otherwise the echoed
    ``timestamp`` (or the last heartbeat send time) is subtracted from ``now``.
    """
    reported = payload.get("latency")
    if isinstance(reported, (int, float)) and not isinstance(reported, bool):
        return max(0.0, float(reported))

    sent_at = parse_timestamp(payload.get("timestamp")) or heartbeat_sent_at
    if sent_at is None:
        return 0.0
    return max(0.0, (now - sent_at).total_seconds() * 1000.0)


class ITransportSession(Protocol):
    """One logical connection to the broker across physical reconnects."""

    async def open(self) -> None:
        """Establish the channel. No-op if connecting or connected."""
        ...

    async def close(self) -> None:
        """Tear down the channel and cancel all timers."""
        ...

    async def send(self, frame: Frame) -> bool:
        """Send a frame; returns False (and logs) when not connected."""
        ...


class TransportSession:
    """Websocket session with fixed-delay reconnect and heartbeats."""

    def __init__(
        self,
        url: str,
        project_id: str,
        client_type: str = "shadow-sync-client",
        reconnect_delay: float = 5.0,
        heartbeat_interval: float = 5.0,
        connector: Connector | None = None,
    ):
        self._url = url
        self._project_id = project_id
        self._client_type = client_type
        self._reconnect_delay = reconnect_delay
        self._heartbeat_interval = heartbeat_interval
        self._connector = connector or connect

        # Lifecycle callbacks, wired by the owning client
        self.on_open: Callable[[], None] | None = None
        self.on_close: Callable[[str], None] | None = None
        self.on_error: Callable[[Exception], None] | None = None
        self.on_frame: Callable[[Frame], None] | None = None

        self._conn: Any = None
        self._connecting = False
        self._alive = False
        self._reader_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._last_heartbeat_at: datetime | None = None
        self.latency_ms = 0.0

    @property
    def connected(self) -> bool:
        """Whether a physical connection is currently up."""
        return self._conn is not None

    @property
    def reconnect_pending(self) -> bool:
        """Whether a reconnect attempt is scheduled."""
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def open(self) -> None:
        """Establish the channel. No-op if connecting or connected."""
        if self._connecting or self._conn is not None:
            return

        self._alive = True
        self._connecting = True
        logger.info("Connecting to broker %s (project %s)", self._url, self._project_id)

        try:
            conn = await self._connector(self._url)
        except Exception as e:
            self._connecting = False
            logger.warning("Broker connection failed: %s", e)
            self._notify_error(TransportError(f"connect failed: {e}"))
            self.schedule_reconnect()
            return

        self._connecting = False
        if not self._alive:
            # close() ran while the connect was in flight
            with contextlib.suppress(Exception):
                await conn.close()
            return

        self._conn = conn
        self._reader_task = asyncio.create_task(self._read_loop(conn))
        logger.info("Connected to broker %s", self._url)

        await self.send(
            {
                "type": "connect_client",
                "payload": {
                    "clientType": self._client_type,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            }
        )
        await self.send(
            {"type": "project_connect", "payload": {"projectId": self._project_id}}
        )
        self._start_heartbeat()
        self._notify(self.on_open)

    async def close(self) -> None:
        """Tear down the channel and cancel all timers. Safe to repeat."""
        self._alive = False
        self._connecting = False

        conn = self._conn
        self._conn = None

        await self._cancel_task(self._reconnect_task)
        self._reconnect_task = None
        await self._cancel_task(self._heartbeat_task)
        self._heartbeat_task = None
        await self._cancel_task(self._reader_task)
        self._reader_task = None

        self._last_heartbeat_at = None
        self.latency_ms = 0.0

        if conn is not None:
            try:
                await conn.close()
            except Exception as e:
                logger.debug("Error closing broker connection: %s", e)
            logger.info("Disconnected from broker")
            self._notify(self.on_close, "closed by client")

    async def reconnect(self) -> None:
        """Drop the current channel (if any) and open a fresh one."""
        await self.close()
        await self.open()

    async def send(self, frame: Frame) -> bool:
        """Send a frame; returns False (and logs) when not connected."""
        conn = self._conn
        if conn is None:
            logger.warning("Not connected, frame not sent: %s", frame.get("type"))
            return False

        try:
            await conn.send(json.dumps(frame, default=str))
        except Exception as e:
            logger.warning("Failed to send %s frame: %s", frame.get("type"), e)
            return False
        return True

    def schedule_reconnect(self) -> bool:
        """Schedule one reconnect attempt. Returns False if one is already pending."""
        if not self._alive:
            return False
        if self.reconnect_pending:
            logger.debug("Reconnect already scheduled")
            return False

        logger.info("Reconnecting in %.1fs", self._reconnect_delay)
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay())
        return True

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self._reconnect_delay)
        # Cleared first so a failed attempt can schedule the next one
        self._reconnect_task = None
        await self.open()

    async def _read_loop(self, conn: Any) -> None:
        """Read frames until the connection ends."""
        reason = "connection closed by broker"
        try:
            async for raw in conn:
                self._handle_raw(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            logger.warning("Broker connection lost: %s", reason)
            self._notify_error(TransportError(reason))

        self._handle_disconnect(conn, reason)

    def _handle_disconnect(self, conn: Any, reason: str) -> None:
        if self._conn is not conn:
            return

        self._conn = None
        self._reader_task = None
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

        logger.info("Broker session closed: %s", reason)
        self._notify(self.on_close, reason)
        self.schedule_reconnect()

    def _handle_raw(self, raw: str | bytes) -> None:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Dropping undecodable frame: %s", raw[:100])
            return
        if not isinstance(frame, dict):
            logger.warning("Dropping non-object frame: %s", raw[:100])
            return

        if frame.get("type") in HEARTBEAT_ACK_TYPES:
            payload = frame.get("payload") if isinstance(frame.get("payload"), dict) else {}
            self.latency_ms = compute_latency_ms(
                payload, datetime.now(timezone.utc), self._last_heartbeat_at
            )
            frame = {**frame, "payload": {**payload, "latencyMs": self.latency_ms}}

        self._notify(self.on_frame, frame)

    def _start_heartbeat(self) -> None:
        if self._heartbeat_task is not None and not self._heartbeat_task.done():
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def _heartbeat_loop(self) -> None:
        while self._conn is not None:
            await asyncio.sleep(self._heartbeat_interval)
            if self._conn is None:
                break
            self._last_heartbeat_at = datetime.now(timezone.utc)
            await self.send(
                {
                    "type": "heartbeat",
                    "payload": {"timestamp": self._last_heartbeat_at.isoformat()},
                }
            )

    async def _cancel_task(self, task: asyncio.Task | None) -> None:
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def _notify(self, callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.error("Transport callback %s failed", callback, exc_info=True)

    def _notify_error(self, error: Exception) -> None:
        self._notify(self.on_error, error)
