"""API endpoints for workspace items."""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, HTTPException, Response

from spark_engine.core.indexing import index_item
from spark_engine.core.logging import get_logger
from spark_engine.core.schemas_items import IndexStatus, Item, ItemCreate, ItemUpdate
from spark_engine.db.items import delete_item, get_item, insert_item, list_items, update_item
from spark_engine.graphs.index_item_graph import run_item_indexing

logger = get_logger(__name__)

router = APIRouter(tags=["items"])


@router.get("/workspaces/{workspace_id}/items", response_model=list[Item])
async def list_workspace_items(workspace_id: UUID) -> list[dict]:
    """List items in a workspace, newest first."""
    try:
        return list_items(workspace_id)
    except Exception as e:
        logger.exception(f"Failed to list items for workspace {workspace_id}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/items", response_model=Item, status_code=201)
async def create_item(data: ItemCreate, background_tasks: BackgroundTasks) -> dict:
    """
    Create an item.

    Returns immediately; enrichment (for links) and embedding run in the
    background and are reported through the item's index_status.
    """
    try:
        row = insert_item(
            {
                **data.model_dump(mode="json"),
                "index_status": IndexStatus.PENDING.value,
            }
        )
    except Exception as e:
        logger.exception(f"Failed to create item in workspace {data.workspace_id}")
        raise HTTPException(status_code=500, detail=str(e))

    background_tasks.add_task(run_item_indexing, row)
    return row


@router.get("/items/{item_id}", response_model=Item)
async def get_item_by_id(item_id: UUID) -> dict:
    item = get_item(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.patch("/items/{item_id}", response_model=Item)
async def patch_item(item_id: UUID, data: ItemUpdate, background_tasks: BackgroundTasks) -> dict:
    """Update an item; re-embeds in the background when embedded fields change."""
    try:
        existing = get_item(item_id)
        if not existing:
            raise HTTPException(status_code=404, detail="Item not found")

        changes = data.changes()
        if not changes:
            return existing
        if data.touches_embedding():
            # Stored vector describes the old content until re-encoded
            changes["index_status"] = IndexStatus.PENDING.value

        updated = update_item(item_id, changes)
        if not updated:
            raise HTTPException(status_code=404, detail="Item not found")
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to update item {item_id}")
        raise HTTPException(status_code=500, detail=str(e))

    if data.touches_embedding():
        background_tasks.add_task(index_item, updated)
    return updated


@router.delete("/items/{item_id}", status_code=204)
async def remove_item(item_id: UUID) -> Response:
    try:
        if not get_item(item_id):
            raise HTTPException(status_code=404, detail="Item not found")
        delete_item(item_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to delete item {item_id}")
        raise HTTPException(status_code=500, detail=str(e))
    return Response(status_code=204)
