"""SIM broker - simulated sync broker for local development."""

import asyncio
import json
import random
from datetime import datetime, timezone
from typing import Any, Protocol

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from shadowsync.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ISimBroker(Protocol):
    """Serve a fake broker that emits tag drift, conflicts and push results."""

    async def start(self) -> None:
        """Start listening."""
        ...

    async def stop(self) -> None:
        """Stop listening."""
        ...


class SimBroker:
    """Websocket broker with a hardcoded two-tag scenario."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8765,
        tick_interval: float = 2.0,
        conflict_chance: float = 0.05,
        rng: random.Random | None = None,
    ):
        self._host = host
        self._port = port
        self._tick_interval = tick_interval
        self._conflict_chance = conflict_chance
        self._rng = rng or random.Random()
        self._server: Any = None
        self.tags: dict[str, float] = {
            "Temperature_PV": 72.5,
            "Temperature_SP": 75.0,
        }

    async def start(self) -> None:
        """Start listening."""
        if self._server is not None:
            return
        self._server = await serve(self._handle_connection, self._host, self._port)
        logger.info("SIM broker listening on ws://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        """Stop listening."""
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("SIM broker stopped")

    def handle_frame(self, frame: dict) -> list[dict]:
        """Replies to one client frame."""
        frame_type = frame.get("type")
        payload = frame.get("payload") or {}

        if frame_type == "project_connect":
            return [
                {
                    "type": "connect",
                    "payload": {
                        "success": True,
                        "projectId": payload.get("projectId"),
                        "timestamp": _now_iso(),
                    },
                },
                {
                    "type": "sync_status_update",
                    "payload": {"shadowOk": True, "liveOk": True, "executionMode": "simulation"},
                },
            ]

        if frame_type == "heartbeat":
            return [{"type": "heartbeat_ack", "payload": {"timestamp": payload.get("timestamp")}}]

        if frame_type == "tag_update":
            name, value = payload.get("name"), payload.get("value")
            is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
            if name in self.tags and is_number:
                self.tags[name] = float(value)
            return []

        if frame_type == "logic_push_request":
            return self._push_response(payload)

        return []

    def tick(self) -> list[dict]:
        """One round of simulated runtime activity."""
        drift = (self._rng.random() - 0.5) * 0.5
        self.tags["Temperature_PV"] = round(self.tags["Temperature_PV"] + drift, 2)

        frames = [
            {
                "type": "tag_update",
                "payload": {
                    "name": "Temperature_PV",
                    "value": self.tags["Temperature_PV"],
                    "source": "live",
                    "timestamp": _now_iso(),
                },
            }
        ]

        if self._rng.random() < self._conflict_chance:
            frames.append(
                {
                    "type": "conflict",
                    "payload": {
                        "tagName": "Temperature_SP",
                        "shadowValue": self.tags["Temperature_SP"],
                        "liveValue": self.tags["Temperature_SP"] + 1.0,
                        "timestamp": _now_iso(),
                    },
                }
            )
        return frames

    def _push_response(self, payload: dict) -> list[dict]:
        target = payload.get("target", "live")
        logic = str(payload.get("logic") or payload.get("logicId") or "")
        has_errors = "ERROR" in logic

        frames = [
            {
                "type": "logic_push_response",
                "payload": {
                    "success": not has_errors,
                    "target": target,
                    "timestamp": _now_iso(),
                    "errors": ["Syntax error detected"] if has_errors else [],
                    "warnings": (
                        ["Pushing to live runtime - ensure safety checks pass"]
                        if target == "live"
                        else []
                    ),
                },
            }
        ]
        if not has_errors:
            frames.append(
                {
                    "type": "sync_status_update",
                    "payload": {
                        "shadowOk": True,
                        "liveOk": target == "live",
                        "lastSync": _now_iso(),
                    },
                }
            )
        return frames

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        logger.info("SIM: client connected from %s", websocket.remote_address)
        ticker = asyncio.create_task(self._tick_loop(websocket))
        try:
            async for message in websocket:
                try:
                    frame = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning("SIM: undecodable frame: %s", str(message)[:100])
                    continue
                if not isinstance(frame, dict):
                    continue
                for reply in self.handle_frame(frame):
                    await websocket.send(json.dumps(reply))
        except ConnectionClosed:
            logger.info("SIM: client disconnected")
        finally:
            ticker.cancel()

    async def _tick_loop(self, websocket: ServerConnection) -> None:
        try:
            while True:
                await asyncio.sleep(self._tick_interval)
                for frame in self.tick():
                    await websocket.send(json.dumps(frame))
        except ConnectionClosed:
            pass


async def main() -> None:
    """Run the SIM broker until interrupted."""
    setup_logging()
    broker = SimBroker()
    await broker.start()
    try:
        await asyncio.Future()
    finally:
        await broker.stop()


if __name__ == "__main__":
    asyncio.run(main())
