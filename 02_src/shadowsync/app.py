"""Sync client bootstrap and lifecycle management."""

from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

from .config import SyncSettings, load_settings
from .deploy import (
    DeploymentClient,
    DeviceTokenProvider,
    IDeploymentClient,
    ITokenProvider,
    StaticTokenProvider,
)
from .errors import ProtocolViolation
from .event_bus import EventDispatcher, Unsubscribe
from .logging_config import get_logger
from .models import TagValue
from .polling import TagPoller
from .push import PushOrchestrator
from .store import SyncStateStore
from .transport import TransportSession

logger = get_logger(__name__)


class ISyncClient(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order and connect."""
        ...

    async def stop(self) -> None:
        """Disconnect and shut down in reverse order."""
        ...


class SyncClient:
    """Wires transport, dispatcher, store and orchestrator together."""

    def __init__(
        self,
        settings: SyncSettings | None = None,
        transport: TransportSession | None = None,
        deployment: IDeploymentClient | None = None,
    ):
        self._settings = settings or load_settings()
        self._injected_transport = transport
        self._injected_deployment = deployment

        # Components (will be initialized in start())
        self._http: httpx.AsyncClient | None = None
        self._store: SyncStateStore | None = None
        self._dispatcher: EventDispatcher | None = None
        self._deployment: IDeploymentClient | None = None
        self._transport: TransportSession | None = None
        self._orchestrator: PushOrchestrator | None = None
        self._poller: TagPoller | None = None
        self._unsubscribe: Unsubscribe | None = None

    async def start(self) -> None:
        """Initialize components in dependency order and connect."""
        settings = self._settings
        logger.info("Starting sync client for project %s", settings.project_id)

        # 1. Store (no dependencies)
        self._store = SyncStateStore(
            event_log_size=settings.event_log_size,
            tag_buffer_size=settings.tag_buffer_size,
        )

        # 2. Dispatcher, with the store as first subscriber
        self._dispatcher = EventDispatcher()
        self._unsubscribe = self._dispatcher.subscribe(self._store.handle_message)

        # 3. Deployment endpoint
        if self._injected_deployment is not None:
            self._deployment = self._injected_deployment
        else:
            self._http = httpx.AsyncClient(timeout=30.0)
            token_provider: ITokenProvider
            if settings.device_token:
                token_provider = StaticTokenProvider(settings.device_token)
            else:
                token_provider = DeviceTokenProvider(self._http, settings.api_url)
            self._deployment = DeploymentClient(
                settings.api_url, token_provider=token_provider, client=self._http
            )

        # 4. Transport, feeding the dispatcher
        self._transport = self._injected_transport or TransportSession(
            url=settings.broker_url,
            project_id=settings.project_id,
            client_type=settings.client_type,
            reconnect_delay=settings.reconnect_delay,
            heartbeat_interval=settings.heartbeat_interval,
        )
        self._transport.on_frame = self._dispatcher.publish_frame
        self._transport.on_close = self._store.mark_disconnected
        self._transport.on_error = self._handle_transport_error

        # 5. Orchestrator (reads store, talks to deployment endpoint)
        self._orchestrator = PushOrchestrator(
            store=self._store,
            deployment=self._deployment,
            transport=self._transport,
        )

        # 6. Optional polling fallback
        if settings.polling_enabled:
            self._poller = TagPoller(
                deployment=self._deployment,
                dispatcher=self._dispatcher,
                interval=settings.poll_interval,
            )

        await self._transport.open()
        if self._poller:
            await self._poller.start()
        logger.info("Sync client started")

    async def stop(self) -> None:
        """Disconnect and shut down in reverse order."""
        if self._poller:
            await self._poller.stop()
        if self._transport:
            await self._transport.close()
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self._http:
            await self._http.aclose()
            self._http = None
        logger.info("Sync client stopped")

    async def write_tag(self, name: str, value: Any, source: str = "shadow") -> bool:
        """Send a tag write to the broker. Returns False when not connected.

        Raises:
            ProtocolViolation: empty name, unknown source, or a value that is
                not a bool, number or string.
        """
        if not name:
            raise ProtocolViolation("Tag name is required")
        if source not in ("shadow", "live"):
            raise ProtocolViolation(f"Invalid tag source: {source!r}")
        tag_value = TagValue.maybe(value)
        if tag_value is None:
            raise ProtocolViolation(f"Unsupported value for tag {name}: {value!r}")

        return await self.transport.send(
            {
                "type": "tag_update",
                "payload": {
                    "name": name,
                    "value": tag_value.to_json(),
                    "source": source,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            }
        )

    def _handle_transport_error(self, error: Exception) -> None:
        logger.warning("Broker transport error: %s", error)

    @property
    def settings(self) -> SyncSettings:
        """Active settings."""
        return self._settings

    @property
    def store(self) -> SyncStateStore:
        """Get store instance."""
        if not self._store:
            raise RuntimeError("Sync client not started")
        return self._store

    @property
    def dispatcher(self) -> EventDispatcher:
        """Get dispatcher instance."""
        if not self._dispatcher:
            raise RuntimeError("Sync client not started")
        return self._dispatcher

    @property
    def transport(self) -> TransportSession:
        """Get transport instance."""
        if not self._transport:
            raise RuntimeError("Sync client not started")
        return self._transport

    @property
    def orchestrator(self) -> PushOrchestrator:
        """Get push orchestrator instance."""
        if not self._orchestrator:
            raise RuntimeError("Sync client not started")
        return self._orchestrator
