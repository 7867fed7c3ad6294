"""API endpoints for workspaces."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Response

from spark_engine.core.logging import get_logger
from spark_engine.core.schemas_workspaces import Workspace, WorkspaceCreate, WorkspaceUpdate
from spark_engine.db.workspaces import (
    create_workspace,
    delete_workspace,
    get_workspace,
    list_workspaces,
    update_workspace,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.get("", response_model=list[Workspace])
async def list_all_workspaces() -> list[dict]:
    try:
        return list_workspaces()
    except Exception as e:
        logger.exception("Failed to list workspaces")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", response_model=Workspace, status_code=201)
async def create_new_workspace(data: WorkspaceCreate) -> dict:
    try:
        workspace = create_workspace(data.name, data.description, data.metadata)
    except Exception as e:
        logger.exception(f"Failed to create workspace {data.name!r}")
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(f"Created workspace {workspace.get('id')}")
    return workspace


@router.get("/{workspace_id}", response_model=Workspace)
async def get_workspace_by_id(workspace_id: UUID) -> dict:
    workspace = get_workspace(workspace_id)
    if not workspace:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


@router.patch("/{workspace_id}", response_model=Workspace)
async def patch_workspace(workspace_id: UUID, data: WorkspaceUpdate) -> dict:
    changes = data.changes()
    try:
        if not changes:
            existing = get_workspace(workspace_id)
            if not existing:
                raise HTTPException(status_code=404, detail="Workspace not found")
            return existing

        updated = update_workspace(workspace_id, changes)
        if not updated:
            raise HTTPException(status_code=404, detail="Workspace not found")
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to update workspace {workspace_id}")
        raise HTTPException(status_code=500, detail=str(e))
    return updated


@router.delete("/{workspace_id}", status_code=204)
async def remove_workspace(workspace_id: UUID) -> Response:
    """Delete a workspace together with its items and chat sessions."""
    try:
        if not get_workspace(workspace_id):
            raise HTTPException(status_code=404, detail="Workspace not found")
        delete_workspace(workspace_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to delete workspace {workspace_id}")
        raise HTTPException(status_code=500, detail=str(e))
    return Response(status_code=204)
