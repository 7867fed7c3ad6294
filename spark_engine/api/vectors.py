"""3D vector space endpoint for the workspace visualization."""

from uuid import UUID

from fastapi import APIRouter, HTTPException

from spark_engine.core.logging import get_logger
from spark_engine.core.projection import project
from spark_engine.core.schemas_vectors import VectorSpaceResponse
from spark_engine.db.items import list_embedded_items

logger = get_logger(__name__)

router = APIRouter(tags=["vectors"])


@router.get("/workspaces/{workspace_id}/vectors", response_model=VectorSpaceResponse, response_model_by_alias=True)
async def get_vector_space(workspace_id: UUID) -> VectorSpaceResponse:
    """Projected positions and similarity edges for every embedded item."""
    try:
        items = list_embedded_items(workspace_id)
    except Exception as e:
        logger.exception(f"Failed to load embeddings for workspace {workspace_id}")
        raise HTTPException(status_code=500, detail=str(e))

    return project(items)
