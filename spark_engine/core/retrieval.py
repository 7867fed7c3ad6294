"""Grounding context for one chat turn.

Pipeline: encode the query -> rank workspace items and match past sessions in
parallel -> format one context block + collect grounding images.

Graceful degradation: when the query cannot be encoded, or ranking yields
nothing, the most recently updated items are used instead and the block is
labeled as recent rather than relevant. Never raises for retrieval failures.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from spark_engine.core.config import get_settings
from spark_engine.core.embeddings import encode_query
from spark_engine.core.hybrid_search import RetrievalCandidate, search
from spark_engine.core.indexing import is_publicly_fetchable
from spark_engine.core.logging import get_logger
from spark_engine.db.chat_sessions import match_sessions
from spark_engine.db.items import get_items_by_ids, list_recent_items

logger = get_logger(__name__)

RECENT_HEADING = "## Recent Items in This Workspace"
RECENT_INTRO = "These are the most recently updated items (not ranked for relevance to the question):"
RELEVANT_HEADING = "## Retrieved Context (semantically relevant items)"
RELEVANT_INTRO = "The following items from this workspace are most relevant to the user's question:"
SESSIONS_HEADING = "## Relevant Past Conversations"
SESSIONS_INTRO = "The following previous chat sessions in this workspace are relevant:"


# =============================================================================
# Result Model
# =============================================================================


@dataclass
class GroundingImage:
    """A publicly fetchable image sent to the model alongside the question."""

    url: str
    title: str


@dataclass
class RetrievedContext:
    """Grounding for one user turn."""

    text: str = ""
    images: list[GroundingImage] = field(default_factory=list)
    items: list[dict[str, Any]] = field(default_factory=list)  # ranked items for the context event
    ranked: bool = False


# =============================================================================
# Formatting
# =============================================================================


def _truncate(text: str | None, limit: int) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."


def _percent(similarity: float | None) -> str:
    return f" ({similarity * 100:.0f}% match)" if similarity is not None else ""


def format_item_entry(index: int, item: dict[str, Any], similarity: float | None = None) -> str:
    budget = get_settings().RETRIEVAL_CONTENT_CHARS
    lines = [f"{index}. [{item.get('type')}] {item.get('title')}{_percent(similarity)}"]
    body = _truncate(item.get("body"), budget)
    if body:
        lines.append(body)
    if item.get("summary"):
        lines.append(f"Summary: {_truncate(item['summary'], budget)}")
    return "\n".join(lines)


def format_session_entry(index: int, session: dict[str, Any]) -> str:
    budget = get_settings().RETRIEVAL_CONTENT_CHARS
    utterances = session.get("user_utterances") or []
    messages = "\n".join(f"  Message {j}: {u}" for j, u in enumerate(utterances, start=1))
    header = f'{index}. Chat: "{session.get("title")}"{_percent(session.get("similarity"))}'
    return f"{header}\n{_truncate(messages, budget)}"


def _section(heading: str, intro: str, entries: list[str]) -> str:
    return f"\n\n{heading}\n{intro}\n\n" + "\n\n".join(entries)


def item_image_url(item: dict[str, Any]) -> str | None:
    """Image reference for image-bearing items (uploaded images, link previews)."""
    metadata = item.get("metadata") or {}
    if item.get("type") == "image":
        return metadata.get("image_url") or item.get("body")
    if item.get("type") == "link":
        return metadata.get("og_image")
    return None


def collect_images(items: list[dict[str, Any]], limit: int | None = None) -> list[GroundingImage]:
    """Up to `limit` publicly fetchable, de-duplicated image URLs, in item order."""
    if limit is None:
        limit = get_settings().RETRIEVAL_MAX_IMAGES
    images: list[GroundingImage] = []
    seen: set[str] = set()
    for item in items:
        if len(images) >= limit:
            break
        url = item_image_url(item)
        if not url or url in seen or not is_publicly_fetchable(url):
            continue
        seen.add(url)
        images.append(GroundingImage(url=url, title=item.get("title") or "Untitled"))
    return images


# =============================================================================
# Retrieval
# =============================================================================


def _rank_items(
    workspace_id: UUID | str,
    query: str,
    query_vector: list[float],
) -> list[tuple[RetrievalCandidate, dict[str, Any]]]:
    """Hybrid-ranked items, hydrated, in fused order."""
    settings = get_settings()
    candidates = search(workspace_id, query, query_vector, settings.RETRIEVAL_MATCH_COUNT)

    # Vector-only hits must clear the chat grounding threshold; lexical hits always count
    candidates = [
        c
        for c in candidates
        if c.lexical_rank is not None
        or (c.similarity is not None and c.similarity > settings.CHAT_ITEM_MATCH_THRESHOLD)
    ]
    if not candidates:
        return []

    rows = {str(r["id"]): r for r in get_items_by_ids([c.item_id for c in candidates])}
    return [(c, rows[c.item_id]) for c in candidates if c.item_id in rows]


def _match_sessions(workspace_id: UUID | str, query_vector: list[float]) -> list[dict[str, Any]]:
    settings = get_settings()
    return match_sessions(
        workspace_id,
        query_vector,
        settings.CHAT_SESSION_MATCH_THRESHOLD,
        settings.SESSION_MATCH_COUNT,
    )


def _recent_context(workspace_id: UUID | str, sessions_text: str = "") -> RetrievedContext:
    settings = get_settings()
    try:
        recent = list_recent_items(workspace_id, settings.RETRIEVAL_RECENT_FALLBACK)
    except Exception as e:
        logger.warning(f"Recent items unavailable for workspace {workspace_id}: {e}")
        recent = []

    if not recent:
        return RetrievedContext(text=sessions_text)

    entries = [format_item_entry(i, item) for i, item in enumerate(recent, start=1)]
    return RetrievedContext(
        text=_section(RECENT_HEADING, RECENT_INTRO, entries) + sessions_text,
        images=collect_images(recent),
    )


async def retrieve_context(workspace_id: UUID | str, query: str) -> RetrievedContext:
    """
    Assemble grounding context for a user turn.

    Args:
        workspace_id: Workspace to search
        query: The user's message

    Returns:
        RetrievedContext with the context block, grounding images and the
        ranked items (empty when falling back to recent items)
    """
    query_vector = await encode_query(query)
    if query_vector is None:
        logger.info(f"Query not encoded, using recent items for workspace {workspace_id}")
        return _recent_context(workspace_id)

    ranked_result, sessions_result = await asyncio.gather(
        asyncio.to_thread(_rank_items, workspace_id, query, query_vector),
        asyncio.to_thread(_match_sessions, workspace_id, query_vector),
        return_exceptions=True,
    )

    sessions_text = ""
    if isinstance(sessions_result, BaseException):
        logger.warning(f"Session search failed for workspace {workspace_id}: {sessions_result}")
        sessions_result = []
    if sessions_result:
        entries = [format_session_entry(i, s) for i, s in enumerate(sessions_result, start=1)]
        sessions_text = _section(SESSIONS_HEADING, SESSIONS_INTRO, entries)

    if isinstance(ranked_result, BaseException):
        logger.warning(f"Item ranking failed for workspace {workspace_id}: {ranked_result}")
        ranked_result = []

    if not ranked_result:
        logger.info(f"No ranked items, using recent items for workspace {workspace_id}")
        return _recent_context(workspace_id, sessions_text)

    entries = [
        format_item_entry(i, item, cand.similarity)
        for i, (cand, item) in enumerate(ranked_result, start=1)
    ]
    items = [
        {
            "id": cand.item_id,
            "type": item.get("type"),
            "title": item.get("title"),
            "summary": item.get("summary"),
            "similarity": cand.similarity,
            "fused_score": cand.fused_score,
        }
        for cand, item in ranked_result
    ]

    logger.info(
        f"Retrieved {len(items)} items and {len(sessions_result)} sessions for workspace {workspace_id}"
    )
    return RetrievedContext(
        text=_section(RELEVANT_HEADING, RELEVANT_INTRO, entries) + sessions_text,
        images=collect_images([item for _, item in ranked_result]),
        items=items,
        ranked=True,
    )
