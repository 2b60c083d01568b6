"""PushOrchestrator: the only path from shadow logic to the live runtime."""

from typing import Protocol

from ..deploy import DeployResult, IDeploymentClient
from ..errors import ProtocolViolation, RemoteFailure
from ..logging_config import get_logger
from ..models import ConnectionStatus
from ..store import SyncStateStore
from ..transport import ITransportSession
from .preview import PushPreview, PushResult, PushStage, diff_logic

logger = get_logger(__name__)


class IPushOrchestrator(Protocol):
    """Preview, gate and commit pushes."""

    async def preview_changes(self, logic_id: str) -> PushPreview:
        """Route to conflict resolution or produce a diff for review."""
        ...

    async def push_to_live(self, logic_id: str) -> PushResult:
        """Commit logic to live. Raises ProtocolViolation when gated."""
        ...


class PushOrchestrator:
    """Drives preview -> resolve -> confirm -> commit against the backend."""

    def __init__(
        self,
        store: SyncStateStore,
        deployment: IDeploymentClient,
        transport: ITransportSession | None = None,
    ):
        self._store = store
        self._deployment = deployment
        self._transport = transport

    async def preview_changes(self, logic_id: str) -> PushPreview:
        """Route to conflict resolution or produce a diff for review.

        The backend status is pulled first, so conflicts it reports count
        too. No diff is computed while any conflict is unresolved.
        """
        await self.refresh_status()
        unresolved = self._store.unresolved_conflicts
        if unresolved:
            logger.info(
                "Preview of %s needs %d conflict(s) resolved first",
                logic_id,
                len(unresolved),
            )
            return PushPreview(
                logic_id=logic_id,
                stage=PushStage.RESOLVE_CONFLICTS,
                conflicts=unresolved,
            )

        shadow_content = await self._deployment.fetch_logic(logic_id)
        deployed = self._store.deployed_logic or {}
        live_content = str(deployed.get("content", ""))

        return PushPreview(
            logic_id=logic_id,
            stage=PushStage.REVIEW,
            changes=diff_logic(live_content, shadow_content),
        )

    async def confirm_push(self, preview: PushPreview) -> PushResult:
        """Commit a reviewed preview."""
        return await self.push_to_live(preview.logic_id)

    async def push_to_live(self, logic_id: str) -> PushResult:
        """Commit logic to live. Raises ProtocolViolation when gated.

        Not retried on failure; RemoteFailure leaves conflicts and readiness
        untouched so the operator can try again.
        """
        self._ensure_idle()
        blockers = self._store.push_blockers()
        if blockers:
            logger.warning("Push of %s to live blocked: %s", logic_id, "; ".join(blockers))
            raise ProtocolViolation("Push to live blocked", reasons=blockers)

        result = await self._push(logic_id, "live")
        committed_at = self._store.commit_push(logic_id, result.warnings, result.message)
        logger.info("Pushed %s to live", logic_id, extra={"context": {"logic_id": logic_id}})
        await self._notify_broker(logic_id, "live")

        return PushResult(
            logic_id=logic_id,
            target="live",
            committed_at=committed_at,
            message=result.message,
            warnings=result.warnings,
        )

    async def push_to_shadow(self, logic_id: str) -> PushResult:
        """Deploy logic to the shadow runtime. Not conflict-gated."""
        self._ensure_idle()
        result = await self._push(logic_id, "shadow")
        self._store.mark_shadow_pushed(logic_id, result.message)
        logger.info("Pushed %s to shadow", logic_id)
        await self._notify_broker(logic_id, "shadow")

        status = self._store.status
        return PushResult(
            logic_id=logic_id,
            target="shadow",
            committed_at=status.last_sync_at,
            message=result.message,
            warnings=result.warnings,
        )

    async def sync_tags(self) -> int:
        """Ask the backend to resynchronise tags."""
        synced = await self._deployment.sync_tags()
        self._store.mark_synced(synced)
        return synced

    async def refresh_status(self) -> ConnectionStatus:
        """Pull the backend's status report into the store."""
        data = await self._deployment.fetch_status()
        self._store.apply_remote_status(data)
        return self._store.status

    def _ensure_idle(self) -> None:
        if self._store.is_pushing:
            raise ProtocolViolation("A push is already in progress")

    async def _push(self, logic_id: str, target: str) -> DeployResult:
        self._store.begin_push()
        self._store.record_push_request(logic_id, target)
        try:
            result = await self._deployment.push(logic_id, target)
        except RemoteFailure as e:
            logger.error("Push of %s to %s failed: %s", logic_id, target, e)
            self._store.record_push_failure(logic_id, target, str(e))
            raise
        finally:
            self._store.end_push()

        if not result.success:
            error = result.error or result.message or "Push rejected by deployment endpoint"
            logger.error("Push of %s to %s rejected: %s", logic_id, target, error)
            self._store.record_push_failure(logic_id, target, error)
            raise RemoteFailure(error)
        return result

    async def _notify_broker(self, logic_id: str, target: str) -> None:
        if self._transport is None:
            return
        await self._transport.send(
            {"type": "logic_push_request", "payload": {"logicId": logic_id, "target": target}}
        )
