"""Workspace search endpoint."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query

from spark_engine.core.config import get_settings
from spark_engine.core.embeddings import encode_query
from spark_engine.core.hybrid_search import search, threshold_search
from spark_engine.core.logging import get_logger
from spark_engine.core.schemas_items import SearchHit, SearchResponse
from spark_engine.db.items import get_items_by_ids

logger = get_logger(__name__)

router = APIRouter(tags=["search"])


@router.get("/workspaces/{workspace_id}/search", response_model=SearchResponse)
async def search_workspace(
    workspace_id: UUID,
    q: str = Query(..., min_length=1, description="Search query"),
    k: int = Query(10, ge=1, le=50, description="Max results"),
    mode: Literal["hybrid", "vector"] = Query("hybrid", description="Ranking mode"),
) -> SearchResponse:
    """
    Search a workspace.

    hybrid: RRF over full-text and vector rankings (lexical-only if the query
    can't be encoded). vector: similarity above the single-purpose threshold.
    """
    settings = get_settings()
    query_vector = await encode_query(q)
    degraded = query_vector is None

    try:
        if mode == "vector":
            if query_vector is None:
                return SearchResponse(query=q, mode=mode, degraded=True)
            rows = threshold_search(workspace_id, query_vector, settings.SEARCH_MATCH_THRESHOLD, k)
            hits = [SearchHit.model_validate(r) for r in rows]
            return SearchResponse(query=q, mode=mode, results=hits)

        candidates = search(workspace_id, q, query_vector, k)
        rows = {str(r["id"]): r for r in get_items_by_ids([c.item_id for c in candidates])}
        hits = [
            SearchHit(
                **{key: rows[c.item_id].get(key) for key in ("id", "type", "title", "summary")},
                similarity=c.similarity,
                fused_score=c.fused_score,
                lexical_rank=c.lexical_rank,
                vector_rank=c.vector_rank,
            )
            for c in candidates
            if c.item_id in rows
        ]
        return SearchResponse(query=q, mode=mode, degraded=degraded, results=hits)

    except Exception as e:
        logger.exception(f"Search failed for workspace {workspace_id}")
        raise HTTPException(status_code=500, detail=str(e))
