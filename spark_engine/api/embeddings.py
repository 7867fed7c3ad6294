"""Embedding backfill endpoint."""

from fastapi import APIRouter, HTTPException

from spark_engine.core.config import get_settings
from spark_engine.core.indexing import index_items_batch
from spark_engine.core.logging import get_logger
from spark_engine.core.schemas_items import BackfillRequest, BackfillResponse
from spark_engine.db.items import list_items_for_backfill

logger = get_logger(__name__)

router = APIRouter(prefix="/embeddings", tags=["embeddings"])


@router.post("/generate", response_model=BackfillResponse)
async def generate_embeddings(request: BackfillRequest) -> BackfillResponse:
    """
    Embed items that have no embedding yet (or every item with force=True).

    Processes at most BACKFILL_LIMIT items per call; call again to continue.
    """
    settings = get_settings()
    if not settings.VOYAGE_API_KEY:
        raise HTTPException(
            status_code=500,
            detail="Voyage API key not configured. Please set VOYAGE_API_KEY in environment.",
        )

    try:
        items = list_items_for_backfill(request.workspace_id, request.force, settings.BACKFILL_LIMIT)
    except Exception as e:
        logger.exception("Failed to load items for backfill")
        raise HTTPException(status_code=500, detail=str(e))

    success, failed = await index_items_batch(items)
    return BackfillResponse(
        total=len(items),
        success=success,
        failed=failed,
        model=settings.EMBEDDING_MODEL,
        dimensions=settings.EMBEDDING_DIM,
    )
