"""Item indexing LangGraph: optional enrichment from an external source, then embedding.

Per-item status transitions are persisted on the row as ``index_status``:

    pending -> enriched | failed -> embedded

Items that need no external content go straight from pending to embedded.
A failed enrichment never blocks embedding: the item is encoded from whatever
content it already has (title alone, in the worst case).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from langgraph.graph import END, START, StateGraph

from spark_engine.core.config import get_settings
from spark_engine.core.firecrawl_service import scrape_page_safe
from spark_engine.core.indexing import index_item, is_http_url, mark_index_status
from spark_engine.core.logging import get_logger, log_with_context
from spark_engine.core.schemas_items import ENRICHABLE_TYPES, EnrichmentStatus, IndexStatus
from spark_engine.db.items import update_item

logger = get_logger(__name__)

SUMMARY_FALLBACK_CHARS = 300


@dataclass
class IndexItemState:
    """State for indexing one item."""

    item: dict[str, Any]
    index_status: str = IndexStatus.PENDING.value
    embedded: bool = False


def _source_url(item: dict[str, Any]) -> str | None:
    metadata = item.get("metadata") or {}
    url = metadata.get("url") or item.get("body")
    return url if is_http_url(url) else None


def route_item(state: IndexItemState) -> str:
    """Enrich link items first; everything else is embedded directly."""
    item_type = state.item.get("type")
    if item_type in {t.value for t in ENRICHABLE_TYPES} and _source_url(state.item):
        return "enrich"
    return "embed"


def build_enrichment_changes(item: dict[str, Any], page: Any) -> dict[str, Any]:
    """Row changes for a scrape result; ``page`` is None when the scrape failed."""
    settings = get_settings()
    metadata = dict(item.get("metadata") or {})
    now = datetime.now(timezone.utc).isoformat()

    if page is None:
        metadata.update({"enrichment_status": EnrichmentStatus.FAILED.value, "enriched_at": now})
        return {"metadata": metadata, "index_status": IndexStatus.FAILED.value}

    metadata.update(
        {
            "enrichment_status": EnrichmentStatus.SUCCESS.value,
            "enriched_at": now,
            "og_title": page.title,
            "og_description": page.description,
            "og_image": page.og_image,
            "favicon": page.favicon,
        }
    )
    metadata.setdefault("url", page.url)

    changes: dict[str, Any] = {"metadata": metadata, "index_status": IndexStatus.ENRICHED.value}
    if page.markdown:
        changes["body"] = page.markdown[: settings.SCRAPE_MAX_TEXT_CHARS]
    summary = page.description or page.markdown[:SUMMARY_FALLBACK_CHARS].strip()
    if summary:
        changes["summary"] = summary
    return changes


async def enrich_item(state: IndexItemState) -> dict[str, Any]:
    """Fetch external content and write it back to the item."""
    item = state.item
    url = _source_url(item)
    page = await scrape_page_safe(url) if url else None
    changes = build_enrichment_changes(item, page)

    try:
        update_item(item["id"], changes)
    except Exception as e:
        logger.warning(f"Failed to persist enrichment for item {item['id']}: {e}")

    status = changes["index_status"]
    logger.info(f"Enrichment {status} for item {item['id']}")

    # Embed from the enriched content even if the write failed
    return {"item": {**item, **changes}, "index_status": status}


async def embed_item(state: IndexItemState) -> dict[str, Any]:
    """Encode the item; on success the row is marked embedded."""
    embedding = await index_item(state.item)
    if embedding is None:
        return {"embedded": False}
    return {"embedded": True, "index_status": IndexStatus.EMBEDDED.value}


def _build_graph() -> StateGraph:
    """Build the item indexing graph."""
    graph = StateGraph(IndexItemState)

    graph.add_node("enrich", enrich_item)
    graph.add_node("embed", embed_item)

    graph.add_conditional_edges(START, route_item, {"enrich": "enrich", "embed": "embed"})
    graph.add_edge("enrich", "embed")
    graph.add_edge("embed", END)

    return graph


# Compile the graph once at module load
_compiled_graph = _build_graph().compile()


async def run_item_indexing(item: dict[str, Any]) -> str:
    """
    Run the indexing graph for one item. Safe to schedule as a background task.

    Args:
        item: The stored item row

    Returns:
        Final index_status value (never raises)
    """
    item_id = item.get("id")
    try:
        final_state = await _compiled_graph.ainvoke(IndexItemState(item=item))
    except Exception as e:
        logger.error(f"Indexing graph failed for item {item_id}: {e}", exc_info=True)
        if item_id:
            mark_index_status(item_id, IndexStatus.FAILED.value)
        return IndexStatus.FAILED.value

    status = final_state.get("index_status", IndexStatus.PENDING.value)
    log_with_context(
        logger,
        logging.INFO,
        "Completed item indexing",
        item_id=str(item_id),
        index_status=status,
        embedded=final_state.get("embedded"),
    )
    return status
