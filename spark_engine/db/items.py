"""Database operations for workspace items and their embeddings."""

import json
import re
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from spark_engine.core.logging import get_logger
from spark_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)

ITEM_COLUMNS = "id, workspace_id, type, title, body, summary, tags, metadata, index_status, created_at, updated_at"

# Characters that would break a PostgREST or=() filter expression
_FILTER_UNSAFE = re.compile(r"[,()*%\\]")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_embedding(raw: Any) -> list[float] | None:
    """Normalize a stored vector (pgvector returns it as a string) to a list."""
    if raw is None:
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if isinstance(raw, list) and raw:
        return [float(v) for v in raw]
    return None


# =============================================================================
# CRUD
# =============================================================================


def insert_item(data: dict[str, Any]) -> dict[str, Any]:
    """Insert an item and return the stored row."""
    supabase = get_supabase()
    response = supabase.table("items").insert(data).execute()
    if not response.data:
        raise RuntimeError("Item insert returned no row")
    return response.data[0]


def get_item(item_id: UUID | str) -> dict[str, Any] | None:
    """Fetch a single item (without its embedding)."""
    supabase = get_supabase()
    response = (
        supabase.table("items")
        .select(ITEM_COLUMNS)
        .eq("id", str(item_id))
        .maybe_single()
        .execute()
    )
    if response is None:
        return None
    return response.data


def update_item(item_id: UUID | str, changes: dict[str, Any]) -> dict[str, Any] | None:
    """Apply a partial update and return the updated row."""
    supabase = get_supabase()
    response = (
        supabase.table("items")
        .update({**changes, "updated_at": _now()})
        .eq("id", str(item_id))
        .execute()
    )
    return response.data[0] if response.data else None


def delete_item(item_id: UUID | str) -> None:
    supabase = get_supabase()
    supabase.table("items").delete().eq("id", str(item_id)).execute()


def list_items(workspace_id: UUID | str, limit: int | None = None) -> list[dict[str, Any]]:
    """All items in a workspace, newest first."""
    supabase = get_supabase()
    query = (
        supabase.table("items")
        .select(ITEM_COLUMNS)
        .eq("workspace_id", str(workspace_id))
        .order("created_at", desc=True)
    )
    if limit:
        query = query.limit(limit)
    return query.execute().data or []


def list_recent_items(workspace_id: UUID | str, limit: int) -> list[dict[str, Any]]:
    """Most recently updated items in a workspace."""
    supabase = get_supabase()
    response = (
        supabase.table("items")
        .select(ITEM_COLUMNS)
        .eq("workspace_id", str(workspace_id))
        .order("updated_at", desc=True)
        .limit(limit)
        .execute()
    )
    return response.data or []


def get_items_by_ids(item_ids: list[str]) -> list[dict[str, Any]]:
    """Fetch items by id. Order of the result is unspecified."""
    if not item_ids:
        return []
    supabase = get_supabase()
    response = supabase.table("items").select(ITEM_COLUMNS).in_("id", item_ids).execute()
    return response.data or []


# =============================================================================
# Embedding / indexing writes
# =============================================================================


def update_item_embedding(item_id: UUID | str, embedding: list[float]) -> None:
    """Overwrite an item's embedding and mark it embedded."""
    supabase = get_supabase()
    supabase.table("items").update(
        {"embedding": embedding, "index_status": "embedded"}
    ).eq("id", str(item_id)).execute()


def set_index_status(item_id: UUID | str, status: str) -> None:
    supabase = get_supabase()
    supabase.table("items").update({"index_status": status}).eq("id", str(item_id)).execute()


def list_items_for_backfill(
    workspace_id: UUID | str | None,
    force: bool,
    limit: int,
    after: tuple[str, str] | None = None,
) -> list[dict[str, Any]]:
    """
    Items missing an embedding (or every item when force=True), oldest first.

    Args:
        after: (created_at, id) of the last row already processed. Rows are
            keyset-paged on that pair so items that keep failing don't hide
            the ones behind them.
    """
    supabase = get_supabase()
    query = supabase.table("items").select(ITEM_COLUMNS)
    if not force:
        query = query.is_("embedding", "null")
    if workspace_id:
        query = query.eq("workspace_id", str(workspace_id))
    if after:
        created_at, item_id = after
        query = query.or_(
            f'created_at.gt."{created_at}",and(created_at.eq."{created_at}",id.gt.{item_id})'
        )
    return query.order("created_at").order("id").limit(limit).execute().data or []


def list_embedded_items(workspace_id: UUID | str) -> list[dict[str, Any]]:
    """Items with embeddings (parsed to float lists), newest first."""
    supabase = get_supabase()
    response = (
        supabase.table("items")
        .select("id, type, title, summary, embedding")
        .eq("workspace_id", str(workspace_id))
        .not_.is_("embedding", "null")
        .order("created_at", desc=True)
        .execute()
    )
    items = []
    for row in response.data or []:
        embedding = parse_embedding(row.get("embedding"))
        if embedding:
            items.append({**row, "embedding": embedding})
    return items


# =============================================================================
# Search
# =============================================================================


def keyword_search_items(
    workspace_id: UUID | str,
    query: str,
    limit: int = 20,
) -> list[dict[str, Any]]:
    """Case-insensitive substring match over title, body and summary."""
    term = _FILTER_UNSAFE.sub(" ", query).strip()
    if not term:
        return []
    supabase = get_supabase()
    pattern = f"%{term}%"
    response = (
        supabase.table("items")
        .select(ITEM_COLUMNS)
        .eq("workspace_id", str(workspace_id))
        .or_(f"title.ilike.{pattern},body.ilike.{pattern},summary.ilike.{pattern}")
        .limit(limit)
        .execute()
    )
    return response.data or []


def rank_items_lexical(
    workspace_id: UUID | str,
    query_text: str,
    match_count: int,
) -> list[dict[str, Any]]:
    """Full-text ranking over title+body+summary. Rows: {id, rank_ix}."""
    supabase = get_supabase()
    response = supabase.rpc(
        "rank_items_lexical",
        {
            "p_workspace_id": str(workspace_id),
            "query_text": query_text,
            "match_count": match_count,
        },
    ).execute()
    return response.data or []


def rank_items_vector(
    workspace_id: UUID | str,
    query_embedding: list[float],
    match_count: int,
) -> list[dict[str, Any]]:
    """Ascending cosine-distance ranking. Rows: {id, rank_ix, similarity}."""
    supabase = get_supabase()
    response = supabase.rpc(
        "rank_items_vector",
        {
            "p_workspace_id": str(workspace_id),
            "query_embedding": query_embedding,
            "match_count": match_count,
        },
    ).execute()
    return response.data or []


def match_items(
    workspace_id: UUID | str,
    query_embedding: list[float],
    match_threshold: float,
    match_count: int,
) -> list[dict[str, Any]]:
    """Vector-only search: items with 1 - cosine_distance > threshold."""
    supabase = get_supabase()
    response = supabase.rpc(
        "match_items",
        {
            "p_workspace_id": str(workspace_id),
            "query_embedding": query_embedding,
            "match_threshold": match_threshold,
            "match_count": match_count,
        },
    ).execute()
    return response.data or []
