"""Sync API routes: status, conflicts and pushes."""

from typing import Any, Literal, NoReturn

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from ...app import SyncClient
from ...errors import ProtocolViolation, RemoteFailure, SyncError, UnknownConflict
from ...models import conflict_to_dict, event_to_dict, sample_to_dict, status_to_dict
from ...push import PushPreview, PushResult


class ResolveRequest(BaseModel):
    """Request model for resolving conflicts."""

    resolution: Literal["shadow", "live"]


class LogicRequest(BaseModel):
    """Request model naming a logic file."""

    model_config = ConfigDict(populate_by_name=True)

    logic_id: str = Field(alias="logicId")


class TagWriteRequest(BaseModel):
    """Request model for writing a tag value."""

    name: str = Field(min_length=1)
    value: bool | int | float | str
    source: Literal["shadow", "live"] = "shadow"


class PushResponse(BaseModel):
    """Response model for a committed push."""

    logic_id: str
    target: str
    committed_at: str | None
    message: str
    warnings: list[str]


def raise_http_error(error: SyncError) -> NoReturn:
    """Map the sync error taxonomy onto HTTP status codes."""
    if isinstance(error, UnknownConflict):
        raise HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ProtocolViolation):
        raise HTTPException(
            status_code=409, detail={"message": str(error), "reasons": error.reasons}
        )
    if isinstance(error, RemoteFailure):
        raise HTTPException(status_code=502, detail=str(error))
    raise HTTPException(status_code=500, detail=str(error))


def _preview_to_dict(preview: PushPreview) -> dict[str, Any]:
    return {
        "logic_id": preview.logic_id,
        "stage": preview.stage.value,
        "conflicts": [conflict_to_dict(c) for c in preview.conflicts],
        "changes": [
            {
                "type": change.type,
                "line": change.line,
                "old_content": change.old_content,
                "new_content": change.new_content,
            }
            for change in preview.changes
        ],
    }


def _push_to_dict(result: PushResult) -> dict[str, Any]:
    return {
        "logic_id": result.logic_id,
        "target": result.target,
        "committed_at": result.committed_at.isoformat() if result.committed_at else None,
        "message": result.message,
        "warnings": result.warnings,
    }


def create_sync_router(client: SyncClient) -> APIRouter:
    """Create sync router."""
    router = APIRouter(prefix="/api/sync", tags=["sync"])

    @router.get("/status")
    async def get_status() -> dict:
        """Current connection status and conflict set."""
        store = client.store
        data = status_to_dict(store.status)
        data["is_pushing"] = store.is_pushing
        data["unresolved_count"] = len(store.unresolved_conflicts)
        return data

    @router.post("/status/refresh")
    async def refresh_status() -> dict:
        """Pull the backend status report into the store."""
        try:
            status = await client.orchestrator.refresh_status()
        except SyncError as e:
            raise_http_error(e)
        return status_to_dict(status)

    @router.get("/events")
    async def get_events(limit: int = Query(100, ge=1, le=200)) -> list[dict]:
        """Sync event log, newest first."""
        return [event_to_dict(e) for e in client.store.events[:limit]]

    @router.get("/tags")
    async def get_tags(
        source: str | None = Query(None, description="shadow or live"),
    ) -> list[dict]:
        """Recent tag samples."""
        return [sample_to_dict(s) for s in client.store.tag_samples(source)]

    @router.post("/tags/sync")
    async def sync_tags() -> dict:
        """Ask the backend to resynchronise tags."""
        try:
            synced = await client.orchestrator.sync_tags()
        except SyncError as e:
            raise_http_error(e)
        return {"synced": synced}

    @router.post("/tags/write")
    async def write_tag(request: TagWriteRequest) -> dict:
        """Send a tag write to the broker."""
        try:
            sent = await client.write_tag(request.name, request.value, request.source)
        except SyncError as e:
            raise_http_error(e)
        return {"sent": sent}

    @router.post("/conflicts/resolve-all")
    async def resolve_all(request: ResolveRequest) -> list[dict]:
        """Resolve every open conflict the same way."""
        try:
            resolved = client.store.resolve_all_conflicts(request.resolution)
        except SyncError as e:
            raise_http_error(e)
        return [conflict_to_dict(c) for c in resolved]

    @router.post("/conflicts/simulate")
    async def simulate_conflicts() -> list[dict]:
        """Inject synthetic conflicts for demos."""
        return [conflict_to_dict(c) for c in client.store.simulate_conflicts()]

    @router.get("/conflicts/integrity")
    async def conflict_integrity() -> dict:
        """Integrity check over the conflict set."""
        violations = client.store.integrity_violations()
        return {"ok": not violations, "violations": violations}

    @router.post("/conflicts/{conflict_id}/resolve")
    async def resolve_conflict(conflict_id: str, request: ResolveRequest) -> dict:
        """Resolve one conflict."""
        try:
            conflict = client.store.resolve_conflict(conflict_id, request.resolution)
        except SyncError as e:
            raise_http_error(e)
        return conflict_to_dict(conflict)

    @router.post("/preview")
    async def preview_changes(request: LogicRequest) -> dict:
        """Preview a push to live, or list the conflicts blocking it."""
        try:
            preview = await client.orchestrator.preview_changes(request.logic_id)
        except SyncError as e:
            raise_http_error(e)
        return _preview_to_dict(preview)

    @router.post("/push/live", response_model=PushResponse)
    async def push_to_live(request: LogicRequest) -> dict:
        """Commit logic to the live runtime."""
        try:
            result = await client.orchestrator.push_to_live(request.logic_id)
        except SyncError as e:
            raise_http_error(e)
        return _push_to_dict(result)

    @router.post("/push/shadow", response_model=PushResponse)
    async def push_to_shadow(request: LogicRequest) -> dict:
        """Deploy logic to the shadow runtime."""
        try:
            result = await client.orchestrator.push_to_shadow(request.logic_id)
        except SyncError as e:
            raise_http_error(e)
        return _push_to_dict(result)

    return router
