from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ema.server import SNAPSHOT_NAME_PATTERN, EmaServer, get_server

router = APIRouter()


class SnapshotRequest(BaseModel):
    name: str = Field(default="default", pattern=SNAPSHOT_NAME_PATTERN, description="Snapshot name")


class SnapshotCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName")


class SnapshotRestoreResponse(BaseModel):
    message: str


@router.post("/snapshot", response_model=SnapshotCreateResponse, response_model_by_alias=True)
async def create_snapshot(
    request: SnapshotRequest,
    server: EmaServer = Depends(get_server),
) -> SnapshotCreateResponse:
    """Snapshot every actor state and short-term memory under ``name``."""
    file_name = await server.snapshot(request.name)
    return SnapshotCreateResponse(file_name=file_name)


@router.post("/snapshot/restore", response_model=SnapshotRestoreResponse)
async def restore_snapshot(
    request: SnapshotRequest,
    server: EmaServer = Depends(get_server),
) -> SnapshotRestoreResponse:
    """Restore the snapshot called ``name``."""
    message = await server.restore(request.name)
    return SnapshotRestoreResponse(message=message)
