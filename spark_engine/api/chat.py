"""Chat assistant API endpoint (SSE)."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from spark_engine.core.chat_stream import ChatStreamConfig, generate_chat_stream
from spark_engine.core.config import get_settings
from spark_engine.core.logging import get_logger
from spark_engine.core.schemas_chat import ChatRequest

logger = get_logger(__name__)

router = APIRouter(tags=["chat"])


@router.post("/chat")
async def chat_with_assistant(request: ChatRequest) -> StreamingResponse:
    """
    Chat with the workspace assistant using streaming responses.

    Frames (``data: {json}``): context, status, text, error, done. ``done``
    is always the final frame and carries the session id.
    """
    settings = get_settings()

    if not settings.ANTHROPIC_API_KEY:
        raise HTTPException(
            status_code=500,
            detail="Anthropic API key not configured. Please set ANTHROPIC_API_KEY in environment.",
        )

    config = ChatStreamConfig(
        workspace_id=request.workspace_id,
        message=request.message,
        session_id=request.session_id,
        skip_persist=request.skip_persist,
        anthropic_api_key=settings.ANTHROPIC_API_KEY,
        chat_model=settings.CHAT_MODEL,
        max_tokens=settings.CHAT_MAX_TOKENS,
        max_tool_rounds=settings.CHAT_MAX_TOOL_ROUNDS,
        history_window=settings.CHAT_HISTORY_WINDOW,
    )

    return StreamingResponse(
        generate_chat_stream(config),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
