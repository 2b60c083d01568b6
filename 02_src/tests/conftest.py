"""Pytest configuration and fixtures."""

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeConnection:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self):
        self.sent: list[dict] = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionError("connection closed")
        self.sent.append(json.loads(data))

    def feed(self, frame: dict) -> None:
        """Queue a frame as if the broker had sent it."""
        self._incoming.put_nowait(json.dumps(frame))

    def feed_raw(self, raw: str) -> None:
        """Queue raw text as if the broker had sent it."""
        self._incoming.put_nowait(raw)

    def drop(self) -> None:
        """Simulate the broker closing the connection."""
        self._incoming.put_nowait(None)

    def sent_types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        return item

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(None)


async def drain(cycles: int = 10) -> None:
    """Let pending tasks run."""
    for _ in range(cycles):
        await asyncio.sleep(0)


@pytest.fixture
def fake_conn():
    """Create a fake broker connection."""
    return FakeConnection()


@pytest.fixture
def connector(fake_conn):
    """Connector returning the fake connection; records attempted URLs."""
    calls = []

    async def _connect(url: str):
        calls.append(url)
        return fake_conn

    _connect.calls = calls
    return _connect


@pytest_asyncio.fixture
async def transport(connector):
    """Create a TransportSession on the fake connection with slow timers."""
    from shadowsync.transport import TransportSession

    session = TransportSession(
        url="ws://broker.test/ws/sync",
        project_id="test-project",
        reconnect_delay=60.0,
        heartbeat_interval=60.0,
        connector=connector,
    )
    yield session
    await session.close()


@pytest.fixture
def dispatcher():
    """Create an EventDispatcher."""
    from shadowsync.event_bus import EventDispatcher

    return EventDispatcher()


@pytest.fixture
def store():
    """Create a SyncStateStore."""
    from shadowsync.store import SyncStateStore

    return SyncStateStore(event_log_size=100, tag_buffer_size=20)


@pytest.fixture
def mock_deployment():
    """Create mock deployment client."""
    from shadowsync.deploy import DeployResult

    deployment = Mock()
    deployment.push = AsyncMock(
        return_value=DeployResult(success=True, message="Deployed", warnings=[])
    )
    deployment.sync_tags = AsyncMock(return_value=10)
    deployment.fetch_status = AsyncMock(return_value={})
    deployment.fetch_logic = AsyncMock(return_value="")
    deployment.start_streaming = AsyncMock(return_value=None)
    deployment.stream_tags = AsyncMock(return_value={"streaming": True, "tags": {}})
    return deployment


@pytest.fixture
def mock_transport():
    """Create mock transport that accepts every send."""
    transport = Mock()
    transport.send = AsyncMock(return_value=True)
    return transport


@pytest.fixture
def orchestrator(store, mock_deployment, mock_transport):
    """Create PushOrchestrator over the store and mocks."""
    from shadowsync.push import PushOrchestrator

    return PushOrchestrator(
        store=store,
        deployment=mock_deployment,
        transport=mock_transport,
    )


@pytest.fixture
def make_message():
    """Factory for BrokerMessages."""
    from datetime import datetime, timezone

    from shadowsync.models import BrokerMessage

    def _make(kind, **payload):
        return BrokerMessage(
            kind=kind,
            payload=payload,
            received_at=datetime.now(timezone.utc),
        )

    return _make
