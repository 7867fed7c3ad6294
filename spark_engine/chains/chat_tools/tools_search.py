"""Search and listing tool implementations.

Each handler returns tool-result content for the Claude API: a JSON text block
of item summaries, followed by inline image blocks for items with a publicly
fetchable image so the model can look at them.
"""

import asyncio
import json
from typing import Any

from spark_engine.core.config import get_settings
from spark_engine.core.embeddings import encode_query
from spark_engine.core.hybrid_search import search
from spark_engine.core.indexing import is_publicly_fetchable
from spark_engine.core.logging import get_logger
from spark_engine.core.retrieval import item_image_url
from spark_engine.db.items import get_items_by_ids, keyword_search_items, list_items
from spark_engine.db.workspaces import get_workspace

from .definitions import (
    KeywordSearchInput,
    ListItemsInput,
    SemanticSearchInput,
    WorkspaceDetailsInput,
)

logger = get_logger(__name__)

MAX_IMAGES_PER_RESULT = 5
BODY_CHARS = 2000
SEMANTIC_RESULT_COUNT = 10
KEYWORD_RESULT_COUNT = 20

ToolContent = str | list[dict[str, Any]]


def build_tool_content(items: list[dict[str, Any]], prefix: str) -> list[dict[str, Any]]:
    """JSON summaries of `items` plus up to 5 image blocks."""
    summaries = []
    for item in items:
        entry = {
            "id": item.get("id"),
            "type": item.get("type"),
            "title": item.get("title"),
            "body": (item.get("body") or "")[:BODY_CHARS] or None,
            "summary": item.get("summary"),
            "tags": item.get("tags") or [],
            "metadata": item.get("metadata") or {},
        }
        for optional in ("similarity", "fused_score", "created_at"):
            if item.get(optional) is not None:
                entry[optional] = item[optional]
        summaries.append(entry)

    content: list[dict[str, Any]] = [
        {"type": "text", "text": f"{prefix}\n{json.dumps(summaries, indent=2, default=str)}"}
    ]

    image_count = 0
    for item in items:
        if image_count >= MAX_IMAGES_PER_RESULT:
            break
        url = item_image_url(item)
        if url and is_publicly_fetchable(url):
            content.append({"type": "image", "source": {"type": "url", "url": url}})
            content.append({"type": "text", "text": f'Above image: "{item.get("title")}"'})
            image_count += 1

    return content


def _ranked_items(workspace_id: str, query: str, query_vector: list[float] | None) -> list[dict[str, Any]]:
    settings = get_settings()
    candidates = search(workspace_id, query, query_vector, SEMANTIC_RESULT_COUNT)
    candidates = [
        c
        for c in candidates
        if c.lexical_rank is not None
        or (c.similarity is not None and c.similarity > settings.TOOL_MATCH_THRESHOLD)
    ]
    if not candidates:
        return []

    rows = {str(r["id"]): r for r in get_items_by_ids([c.item_id for c in candidates])}
    ranked = []
    for cand in candidates:
        row = rows.get(cand.item_id)
        if row:
            ranked.append({**row, "similarity": cand.similarity, "fused_score": round(cand.fused_score, 5)})
    return ranked


async def _semantic_search(params: SemanticSearchInput) -> ToolContent:
    """Hybrid search; lexical-only when the query cannot be encoded."""
    workspace_id = str(params.workspace_id)
    query_vector = await encode_query(params.query)
    if query_vector is None:
        logger.info("Semantic search degraded to lexical ranking (no query vector)")

    items = await asyncio.to_thread(_ranked_items, workspace_id, params.query, query_vector)
    if items:
        return build_tool_content(items, f"Found {len(items)} relevant items:")

    # Nothing ranked: fall through to a plain substring match
    keyword_items = await asyncio.to_thread(
        keyword_search_items, workspace_id, params.query, SEMANTIC_RESULT_COUNT
    )
    return build_tool_content(keyword_items, f"Found {len(keyword_items)} items (keyword match):")


async def _keyword_search(params: KeywordSearchInput) -> ToolContent:
    items = await asyncio.to_thread(
        keyword_search_items, str(params.workspace_id), params.query, KEYWORD_RESULT_COUNT
    )
    return build_tool_content(items, f"Found {len(items)} items:")


async def _list_items(params: ListItemsInput) -> ToolContent:
    items = await asyncio.to_thread(list_items, str(params.workspace_id))
    if not items:
        return "No items in this workspace yet."
    return build_tool_content(items, f"Found {len(items)} items:")


async def _get_workspace_details(params: WorkspaceDetailsInput) -> ToolContent:
    workspace = await asyncio.to_thread(get_workspace, str(params.workspace_id))
    if not workspace:
        return "Workspace not found."
    return json.dumps(workspace, indent=2, default=str)
