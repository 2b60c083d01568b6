"""Tests for settings and logging setup."""

import json
import logging

from shadowsync.config import EVENT_LOG_MAX, EVENT_LOG_MIN, clamp_event_log_size, load_settings
from shadowsync.logging_config import DEFAULT_LOGGER_LEVELS, JSONFormatter, parse_logger_levels


class TestLoadSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        """Test settings with an empty environment."""
        settings = load_settings({})

        assert settings.broker_url == "ws://localhost:8000/ws/sync"
        assert settings.reconnect_delay == 5.0
        assert settings.heartbeat_interval == 5.0
        assert settings.event_log_size == 100
        assert settings.polling_enabled is False
        assert settings.device_token is None

    def test_overrides(self):
        """Test settings read from variables."""
        settings = load_settings(
            {
                "SYNC_BROKER_URL": "ws://broker:9000/ws",
                "SYNC_API_URL": "http://backend/api/",
                "SYNC_PROJECT_ID": "plant-3",
                "SYNC_RECONNECT_DELAY": "2.5",
                "SYNC_EVENT_LOG_SIZE": "1000",
                "SYNC_POLLING_ENABLED": "yes",
                "SYNC_DEVICE_TOKEN": "tok",
                "API_PORT": "9001",
            }
        )

        assert settings.broker_url == "ws://broker:9000/ws"
        assert settings.api_url == "http://backend/api"
        assert settings.project_id == "plant-3"
        assert settings.reconnect_delay == 2.5
        assert settings.event_log_size == EVENT_LOG_MAX
        assert settings.polling_enabled is True
        assert settings.device_token == "tok"
        assert settings.api_port == 9001

    def test_clamp(self):
        """Test event log size bounds."""
        assert clamp_event_log_size(5) == EVENT_LOG_MIN
        assert clamp_event_log_size(150) == 150
        assert clamp_event_log_size(500) == EVENT_LOG_MAX


class TestJSONFormatter:
    """Tests for structured log output."""

    def test_format_with_context(self):
        """Test that correlation keys are lifted out of the context."""
        record = logging.LogRecord(
            name="shadowsync.store",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Conflict detected on %s",
            args=("Tank_Level",),
            exc_info=None,
        )
        record.context = {"conflict_id": "c1", "tag_name": "Tank_Level", "attempt": 2}

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "Conflict detected on Tank_Level"
        assert data["conflict_id"] == "c1"
        assert data["tag_name"] == "Tank_Level"
        assert data["context"] == {"attempt": 2}

    def test_format_without_context(self):
        """Test records without extras and the record-time timestamp."""
        record = logging.LogRecord(
            name="shadowsync.transport",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="Broker connection lost",
            args=(),
            exc_info=None,
        )
        record.created = 0.0

        data = json.loads(JSONFormatter().format(record))

        assert "context" not in data
        assert data["timestamp"].startswith("1970-01-01T00:00:00")


class TestLoggerLevels:
    """Tests for per-logger level overrides."""

    def test_defaults(self):
        """Test that chatty libraries are quieted by default."""
        assert parse_logger_levels(None) == DEFAULT_LOGGER_LEVELS
        assert parse_logger_levels("")["httpx"] == "WARNING"

    def test_overrides(self):
        """Test overrides and new loggers."""
        levels = parse_logger_levels("websockets=debug, shadowsync.store=WARNING")

        assert levels["websockets"] == "DEBUG"
        assert levels["shadowsync.store"] == "WARNING"
        assert levels["httpx"] == "WARNING"

    def test_malformed_entries_skipped(self):
        """Test that bad entries leave the defaults alone."""
        levels = parse_logger_levels("httpx,=INFO,websockets=LOUD")
        assert levels == DEFAULT_LOGGER_LEVELS
