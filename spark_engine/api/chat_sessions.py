"""API endpoints for chat sessions."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response

from spark_engine.core.logging import get_logger
from spark_engine.core.schemas_chat import (
    ChatSession,
    ChatSessionSummary,
    SessionCreate,
    SessionRename,
    Turn,
)
from spark_engine.core.session_memory import reembed
from spark_engine.db.chat_sessions import (
    create_session,
    delete_session,
    get_session,
    list_sessions,
    list_turns,
    rename_session,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/chat/sessions", tags=["chat_sessions"])


@router.get("", response_model=list[ChatSessionSummary])
async def list_workspace_sessions(
    workspace_id: UUID = Query(..., description="Workspace UUID"),
) -> list[dict]:
    """Sessions for a workspace, most recently active first."""
    try:
        return list_sessions(workspace_id)
    except Exception as e:
        logger.exception(f"Failed to list sessions for workspace {workspace_id}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", response_model=ChatSession, status_code=201)
async def create_chat_session(data: SessionCreate) -> dict:
    try:
        return create_session(data.workspace_id, title=data.title or "New Chat")
    except Exception as e:
        logger.exception(f"Failed to create session in workspace {data.workspace_id}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{session_id}")
async def get_chat_session(session_id: UUID) -> dict:
    """A session with its turns in chronological order."""
    session = get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    turns = list_turns(session_id)
    return {
        "session": ChatSession.model_validate(session).model_dump(mode="json"),
        "messages": [Turn.model_validate(t).model_dump(mode="json") for t in turns],
    }


@router.patch("/{session_id}", response_model=ChatSession)
async def rename_chat_session(session_id: UUID, data: SessionRename) -> dict:
    updated = rename_session(session_id, data.title.strip())
    if not updated:
        raise HTTPException(status_code=404, detail="Session not found")
    return updated


@router.delete("/{session_id}", status_code=204)
async def delete_chat_session(session_id: UUID) -> Response:
    """Delete a session; its turns are removed with it."""
    if not get_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    delete_session(session_id)
    return Response(status_code=204)


@router.post("/{session_id}/embed")
async def embed_chat_session(session_id: UUID) -> dict:
    """Recompute the session's conversation-memory embedding."""
    if not get_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    embedding = await reembed(session_id)
    return {"session_id": str(session_id), "embedded": embedding is not None}
