"""Database operations for chat sessions and their turns."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from spark_engine.core.logging import get_logger
from spark_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)

SESSION_COLUMNS = "id, workspace_id, title, user_utterances, created_at, updated_at"

# Recent turns scanned to build message counts and previews for the session list
_PREVIEW_SCAN_LIMIT = 500
_PREVIEW_CHARS = 100


# =============================================================================
# Sessions
# =============================================================================


def create_session(
    workspace_id: UUID | str,
    title: str = "New Chat",
    user_utterances: list[str] | None = None,
) -> dict[str, Any]:
    supabase = get_supabase()
    response = (
        supabase.table("chat_sessions")
        .insert(
            {
                "workspace_id": str(workspace_id),
                "title": title,
                "user_utterances": user_utterances or [],
            }
        )
        .execute()
    )
    if not response.data:
        raise RuntimeError("Session insert returned no row")
    return response.data[0]


def get_session(session_id: UUID | str) -> dict[str, Any] | None:
    supabase = get_supabase()
    response = (
        supabase.table("chat_sessions")
        .select(SESSION_COLUMNS)
        .eq("id", str(session_id))
        .maybe_single()
        .execute()
    )
    if response is None:
        return None
    return response.data


def list_sessions(workspace_id: UUID | str) -> list[dict[str, Any]]:
    """Sessions ordered by most recent activity, with count and preview."""
    supabase = get_supabase()
    sessions = (
        supabase.table("chat_sessions")
        .select(SESSION_COLUMNS)
        .eq("workspace_id", str(workspace_id))
        .order("updated_at", desc=True)
        .execute()
    ).data or []

    if not sessions:
        return []

    messages = (
        supabase.table("chat_messages")
        .select("id, session_id, content, created_at")
        .in_("session_id", [s["id"] for s in sessions])
        .order("created_at", desc=True)
        .limit(_PREVIEW_SCAN_LIMIT)
        .execute()
    ).data or []

    counts: dict[str, int] = {}
    previews: dict[str, str] = {}
    for msg in messages:
        sid = msg["session_id"]
        counts[sid] = counts.get(sid, 0) + 1
        if sid not in previews:
            # Messages are newest first, so the first one seen is the latest
            content = msg.get("content") or ""
            previews[sid] = (
                content[:_PREVIEW_CHARS] + "..." if len(content) > _PREVIEW_CHARS else content
            )

    return [
        {
            **s,
            "message_count": counts.get(s["id"], 0),
            "last_message_preview": previews.get(s["id"]),
        }
        for s in sessions
    ]


def rename_session(session_id: UUID | str, title: str) -> dict[str, Any] | None:
    supabase = get_supabase()
    response = (
        supabase.table("chat_sessions").update({"title": title}).eq("id", str(session_id)).execute()
    )
    return response.data[0] if response.data else None


def delete_session(session_id: UUID | str) -> None:
    """Delete a session. Its turns are removed by the foreign-key cascade."""
    supabase = get_supabase()
    supabase.table("chat_sessions").delete().eq("id", str(session_id)).execute()


def touch_session(session_id: UUID | str) -> None:
    supabase = get_supabase()
    supabase.table("chat_sessions").update(
        {"updated_at": datetime.now(timezone.utc).isoformat()}
    ).eq("id", str(session_id)).execute()


# =============================================================================
# Session memory
# =============================================================================


def append_user_utterance(session_id: UUID | str, text: str) -> None:
    """Atomic array-append at the storage layer (no read-modify-write)."""
    supabase = get_supabase()
    supabase.rpc(
        "append_session_user_message",
        {"p_session_id": str(session_id), "p_message": text},
    ).execute()


def get_user_utterances(session_id: UUID | str) -> list[str]:
    supabase = get_supabase()
    response = (
        supabase.table("chat_sessions")
        .select("user_utterances")
        .eq("id", str(session_id))
        .maybe_single()
        .execute()
    )
    if response is None or not response.data:
        return []
    return list(response.data.get("user_utterances") or [])


def update_session_embedding(session_id: UUID | str, embedding: list[float]) -> None:
    supabase = get_supabase()
    supabase.table("chat_sessions").update({"embedding": embedding}).eq(
        "id", str(session_id)
    ).execute()


def match_sessions(
    workspace_id: UUID | str,
    query_embedding: list[float],
    match_threshold: float,
    match_count: int,
) -> list[dict[str, Any]]:
    """Vector-only search over session embeddings."""
    supabase = get_supabase()
    response = supabase.rpc(
        "match_chat_sessions",
        {
            "p_workspace_id": str(workspace_id),
            "query_embedding": query_embedding,
            "match_threshold": match_threshold,
            "match_count": match_count,
        },
    ).execute()
    return response.data or []


# =============================================================================
# Turns
# =============================================================================


def insert_turn(
    workspace_id: UUID | str,
    session_id: UUID | str | None,
    role: str,
    content: str,
) -> dict[str, Any] | None:
    supabase = get_supabase()
    response = (
        supabase.table("chat_messages")
        .insert(
            {
                "workspace_id": str(workspace_id),
                "session_id": str(session_id) if session_id else None,
                "role": role,
                "content": content,
            }
        )
        .execute()
    )
    return response.data[0] if response.data else None


def list_turns(session_id: UUID | str) -> list[dict[str, Any]]:
    """All turns in a session, oldest first."""
    supabase = get_supabase()
    response = (
        supabase.table("chat_messages")
        .select("id, session_id, role, content, created_at")
        .eq("session_id", str(session_id))
        .order("created_at")
        .execute()
    )
    return response.data or []


def get_recent_turns(
    session_id: UUID | str,
    limit: int,
    exclude_id: str | None = None,
) -> list[dict[str, Any]]:
    """The last `limit` user/assistant turns, returned in chronological order."""
    supabase = get_supabase()
    query = (
        supabase.table("chat_messages")
        .select("id, role, content, created_at")
        .eq("session_id", str(session_id))
        .in_("role", ["user", "assistant"])
    )
    if exclude_id:
        query = query.neq("id", exclude_id)
    response = query.order("created_at", desc=True).limit(limit).execute()
    return list(reversed(response.data or []))
