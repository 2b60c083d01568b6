"""Tests for TransportSession."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeConnection, drain
from shadowsync.errors import TransportError
from shadowsync.transport import TransportSession, compute_latency_ms


def make_session(connector, reconnect_delay=60.0, heartbeat_interval=60.0):
    return TransportSession(
        url="ws://broker.test/ws/sync",
        project_id="test-project",
        reconnect_delay=reconnect_delay,
        heartbeat_interval=heartbeat_interval,
        connector=connector,
    )


def connection_factory():
    """Connector handing out a fresh FakeConnection per attempt."""
    connections = []

    async def _connect(url):
        conn = FakeConnection()
        connections.append(conn)
        return conn

    return _connect, connections


class TestTransportOpen:
    """Tests for opening the session."""

    @pytest.mark.asyncio
    async def test_open_sends_registration(self, transport, fake_conn):
        """Test that registration frames are sent on connect."""
        opened = []
        transport.on_open = lambda: opened.append(True)

        await transport.open()

        assert transport.connected is True
        assert fake_conn.sent_types() == ["connect_client", "project_connect"]
        assert fake_conn.sent[0]["payload"]["clientType"] == "shadow-sync-client"
        assert fake_conn.sent[1]["payload"] == {"projectId": "test-project"}
        assert opened == [True]

    @pytest.mark.asyncio
    async def test_open_is_idempotent(self, transport, connector):
        """Test that opening twice connects once."""
        await transport.open()
        await transport.open()
        assert len(connector.calls) == 1

    @pytest.mark.asyncio
    async def test_connect_failure_schedules_reconnect(self):
        """Test that a refused connection reports and reschedules."""
        errors = []

        async def refuse(url):
            raise OSError("connection refused")

        session = make_session(refuse)
        session.on_error = errors.append

        await session.open()

        assert session.connected is False
        assert len(errors) == 1
        assert isinstance(errors[0], TransportError)
        assert session.reconnect_pending is True
        await session.close()


class TestTransportSend:
    """Tests for sending frames."""

    @pytest.mark.asyncio
    async def test_send_while_disconnected(self, transport):
        """Test that sending without a connection is refused."""
        assert await transport.send({"type": "heartbeat", "payload": {}}) is False

    @pytest.mark.asyncio
    async def test_send_connected(self, transport, fake_conn):
        """Test that frames are serialized onto the connection."""
        await transport.open()
        assert await transport.send({"type": "tag_update", "payload": {"name": "A"}}) is True
        assert fake_conn.sent[-1] == {"type": "tag_update", "payload": {"name": "A"}}

    @pytest.mark.asyncio
    async def test_send_failure_returns_false(self, transport, fake_conn):
        """Test that a failing send is logged, not raised."""
        await transport.open()
        fake_conn.closed = True
        assert await transport.send({"type": "heartbeat", "payload": {}}) is False


class TestTransportReceive:
    """Tests for inbound frames."""

    @pytest.mark.asyncio
    async def test_frames_delivered_in_order(self, transport, fake_conn):
        """Test that decoded frames reach on_frame in arrival order."""
        frames = []
        transport.on_frame = frames.append
        await transport.open()

        fake_conn.feed({"type": "tag_update", "payload": {"n": 1}})
        fake_conn.feed({"type": "tag_update", "payload": {"n": 2}})
        await drain()

        assert [f["payload"]["n"] for f in frames] == [1, 2]

    @pytest.mark.asyncio
    async def test_invalid_frames_dropped(self, transport, fake_conn):
        """Test that undecodable and non-object frames are dropped."""
        frames = []
        transport.on_frame = frames.append
        await transport.open()

        fake_conn.feed_raw("{not json")
        fake_conn.feed_raw("[1, 2]")
        fake_conn.feed({"type": "connect", "payload": {}})
        await drain()

        assert [f["type"] for f in frames] == ["connect"]
        assert transport.connected is True

    @pytest.mark.asyncio
    async def test_heartbeat_ack_latency(self, transport, fake_conn):
        """Test that heartbeat acks carry a non-negative latency."""
        frames = []
        transport.on_frame = frames.append
        await transport.open()

        sent_at = datetime.now(timezone.utc) - timedelta(milliseconds=40)
        future = datetime.now(timezone.utc) + timedelta(seconds=5)
        fake_conn.feed({"type": "heartbeat_ack", "payload": {"timestamp": sent_at.isoformat()}})
        fake_conn.feed({"type": "heartbeat-ack", "payload": {"timestamp": future.isoformat()}})
        await drain()

        assert frames[0]["payload"]["latencyMs"] >= 40.0
        assert frames[1]["payload"]["latencyMs"] == 0.0
        assert transport.latency_ms == 0.0

    @pytest.mark.asyncio
    async def test_callback_error_isolated(self, transport, fake_conn):
        """Test that a failing on_frame does not kill the reader."""
        frames = []

        def flaky(frame):
            frames.append(frame)
            if len(frames) == 1:
                raise RuntimeError("boom")

        transport.on_frame = flaky
        await transport.open()

        fake_conn.feed({"type": "connect"})
        fake_conn.feed({"type": "connect"})
        await drain()

        assert len(frames) == 2


class TestTransportReconnect:
    """Tests for disconnect handling and reconnect scheduling."""

    @pytest.mark.asyncio
    async def test_drop_reports_and_schedules(self, transport, fake_conn):
        """Test that a dropped connection closes and reschedules."""
        reasons = []
        transport.on_close = reasons.append
        await transport.open()

        fake_conn.drop()
        await drain()

        assert transport.connected is False
        assert reasons == ["connection closed by broker"]
        assert transport.reconnect_pending is True

    @pytest.mark.asyncio
    async def test_schedule_reconnect_idempotent(self, transport):
        """Test that two schedule calls produce one pending attempt."""
        await transport.open()
        await transport.close()
        transport._alive = True

        assert transport.schedule_reconnect() is True
        first = transport._reconnect_task
        assert transport.schedule_reconnect() is False
        assert transport._reconnect_task is first

    @pytest.mark.asyncio
    async def test_schedule_reconnect_after_close(self, transport):
        """Test that a closed session never reschedules."""
        await transport.open()
        await transport.close()
        assert transport.schedule_reconnect() is False

    @pytest.mark.asyncio
    async def test_reconnects_after_delay(self):
        """Test that a dropped session reconnects after the delay."""
        connector, connections = connection_factory()
        session = make_session(connector, reconnect_delay=0.01)
        await session.open()

        connections[0].drop()
        await asyncio.sleep(0.05)

        assert len(connections) == 2
        assert session.connected is True
        assert connections[1].sent_types() == ["connect_client", "project_connect"]
        await session.close()

    @pytest.mark.asyncio
    async def test_manual_reconnect(self):
        """Test that reconnect() replaces the connection."""
        connector, connections = connection_factory()
        session = make_session(connector)
        await session.open()

        await session.reconnect()

        assert len(connections) == 2
        assert connections[0].closed is True
        assert session.connected is True
        await session.close()


class TestTransportClose:
    """Tests for closing the session."""

    @pytest.mark.asyncio
    async def test_close_cancels_timers(self, transport, fake_conn):
        """Test that close cancels heartbeat and pending reconnect."""
        await transport.open()
        heartbeat = transport._heartbeat_task
        fake_conn.drop()
        await drain()
        assert transport.reconnect_pending is True

        await transport.close()

        assert transport.reconnect_pending is False
        assert heartbeat.done()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, transport, fake_conn):
        """Test that closing twice reports one close."""
        reasons = []
        transport.on_close = reasons.append
        await transport.open()

        await transport.close()
        await transport.close()

        assert reasons == ["closed by client"]
        assert fake_conn.closed is True
        assert transport.connected is False

    @pytest.mark.asyncio
    async def test_close_without_open(self, transport):
        """Test closing a session that never opened."""
        await transport.close()
        assert transport.connected is False


class TestTransportHeartbeat:
    """Tests for periodic heartbeats."""

    @pytest.mark.asyncio
    async def test_periodic_heartbeat(self, connector, fake_conn):
        """Test that heartbeats are sent while connected."""
        session = make_session(connector, heartbeat_interval=0.01)
        await session.open()

        await asyncio.sleep(0.05)
        await session.close()

        heartbeats = [f for f in fake_conn.sent if f["type"] == "heartbeat"]
        assert len(heartbeats) >= 2
        assert "timestamp" in heartbeats[0]["payload"]

    @pytest.mark.asyncio
    async def test_no_heartbeat_after_disconnect(self, connector, fake_conn):
        """Test that heartbeats stop when the connection drops."""
        session = make_session(connector, heartbeat_interval=0.01)
        await session.open()

        fake_conn.drop()
        await drain()
        sent_before = len(fake_conn.sent)
        await asyncio.sleep(0.05)

        assert len(fake_conn.sent) == sent_before
        await session.close()


class TestComputeLatency:
    """Tests for latency computation."""

    def test_reported_latency_wins(self):
        """Test that a broker-reported figure is used."""
        now = datetime.now(timezone.utc)
        assert compute_latency_ms({"latency": 17, "timestamp": "bad"}, now) == 17.0

    def test_from_echoed_timestamp(self):
        """Test latency from the echoed heartbeat timestamp."""
        now = datetime(2024, 5, 1, 12, 0, 1, tzinfo=timezone.utc)
        payload = {"timestamp": "2024-05-01T12:00:00.750Z"}
        assert compute_latency_ms(payload, now) == pytest.approx(250.0)

    def test_falls_back_to_heartbeat_time(self):
        """Test latency from the last heartbeat when nothing is echoed."""
        now = datetime(2024, 5, 1, 12, 0, 1, tzinfo=timezone.utc)
        sent = now - timedelta(milliseconds=30)
        assert compute_latency_ms({}, now, sent) == pytest.approx(30.0)

    def test_never_negative(self):
        """Test clock skew and negative reports clamp to zero."""
        now = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert compute_latency_ms({"timestamp": "2024-05-01T12:00:05Z"}, now) == 0.0
        assert compute_latency_ms({"latency": -3}, now) == 0.0
        assert compute_latency_ms({}, now) == 0.0
