"""Tests for TagPoller."""

import asyncio

import pytest

from shadowsync.errors import RemoteFailure
from shadowsync.models import MessageKind, TagValue
from shadowsync.polling import TagPoller, snapshot_to_messages


class TestSnapshotToMessages:
    """Tests for snapshot conversion."""

    def test_bare_values(self):
        """Test bare values are attributed to the poller's source."""
        messages = snapshot_to_messages({"streaming": True, "tags": {"Level": 4.2}})

        assert len(messages) == 1
        assert messages[0].kind == MessageKind.TAG_UPDATE
        assert messages[0].payload["name"] == "Level"
        assert messages[0].payload["value"] == 4.2
        assert messages[0].payload["source"] == "shadow"

    def test_paired_values(self):
        """Test shadow/live pairs."""
        messages = snapshot_to_messages(
            {"tags": {"Level": {"shadow": 1.0, "live": 2.0}}}, source="live"
        )
        payload = messages[0].payload
        assert payload["shadowValue"] == 1.0
        assert payload["liveValue"] == 2.0
        assert "source" not in payload

    def test_not_streaming(self):
        """Test that a stopped stream yields nothing."""
        assert snapshot_to_messages({"streaming": False, "tags": {"A": 1}}) == []
        assert snapshot_to_messages({"streaming": True}) == []


class TestTagPoller:
    """Tests for the poll loop."""

    @pytest.mark.asyncio
    async def test_poll_once_feeds_store(self, mock_deployment, dispatcher, store):
        """Test that polled values reach the store through the dispatcher."""
        dispatcher.subscribe(store.handle_message)
        mock_deployment.stream_tags.return_value = {
            "streaming": True,
            "tags": {"Tank_Level": {"shadow": 50.0, "live": 48.0}},
        }
        poller = TagPoller(mock_deployment, dispatcher)

        count = await poller.poll_once()

        assert count == 1
        assert store.tag_values("Tank_Level") == (TagValue.of(50.0), TagValue.of(48.0))
        assert len(store.unresolved_conflicts) == 1

    @pytest.mark.asyncio
    async def test_start_and_stop(self, mock_deployment, dispatcher):
        """Test the loop lifecycle."""
        poller = TagPoller(mock_deployment, dispatcher, interval=0.01)

        await poller.start()
        await asyncio.sleep(0.05)
        assert poller.running is True
        await poller.stop()

        assert poller.running is False
        mock_deployment.start_streaming.assert_awaited_once()
        assert mock_deployment.stream_tags.await_count >= 2

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_loop(self, mock_deployment, dispatcher):
        """Test that poll failures are logged and retried."""
        mock_deployment.start_streaming.side_effect = RemoteFailure("offline")
        mock_deployment.stream_tags.side_effect = RemoteFailure("offline")
        poller = TagPoller(mock_deployment, dispatcher, interval=0.01)

        await poller.start()
        await asyncio.sleep(0.05)
        await poller.stop()

        assert mock_deployment.stream_tags.await_count >= 2
