"""Chat streaming engine: grounded, bounded tool loop over Anthropic.

One user turn runs through these phases:

    AWAITING_MODEL -> (TOOL_CALL_PENDING -> TOOLS_EXECUTING -> AWAITING_MODEL)* -> STREAMING -> DONE

The first model call is non-streaming, since a tool call is likely. Every round
after tool execution is streamed, but its text is buffered and only committed
to the caller once the round turns out to be final (no trailing tool call).
Tool-call rounds are capped; when the cap is hit the loop stops and flushes
whatever text the last round produced.

SSE frames: context -> status* -> text* -> [error] -> done. ``done`` is always
the last frame and carries the session id.
"""

import asyncio
import json
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from spark_engine.chains.chat_tools import execute_tool, get_status_label, get_tool_definitions
from spark_engine.core.logging import get_logger
from spark_engine.core.retrieval import RetrievedContext, retrieve_context
from spark_engine.core.session_memory import append_utterance, reembed
from spark_engine.db.chat_sessions import create_session, get_recent_turns, insert_turn, touch_session

logger = get_logger(__name__)

GENERATING_STATUS = "Generating response..."
SESSION_TITLE_CHARS = 200

SYSTEM_PROMPT = """You are the workspace assistant: you help people make sense of the links, notes, images, files and imported documents they have collected in a workspace.

## Your Capabilities
- Search and retrieve items stored in the workspace
- Answer questions about the collected information
- Identify patterns, connections, and insights across items
- Summarize content and provide recommendations

## Guidelines
- Use the semantic_search tool when you need to find items related to a specific topic
- Use keyword_search for an exact term, list_items for a complete overview
- Be specific and reference actual items from the workspace when answering
- Keep responses concise but thorough
- Format responses in Markdown for readability
- If you're unsure about something, say so rather than making assumptions"""


class LoopPhase(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    TOOL_CALL_PENDING = "tool_call_pending"
    TOOLS_EXECUTING = "tools_executing"
    STREAMING = "streaming"
    DONE = "done"


@dataclass
class ChatStreamConfig:
    """Explicit inputs for one chat turn."""

    workspace_id: UUID
    message: str
    session_id: UUID | None = None
    skip_persist: bool = False
    anthropic_api_key: str = ""
    chat_model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 4096
    max_tool_rounds: int = 10
    history_window: int = 30


@dataclass
class PreparedTurn:
    """Session bookkeeping done before the model is called."""

    session_id: str | None = None
    history: list[dict[str, Any]] = field(default_factory=list)


def _sse_event(data: dict) -> str:
    """Format a dict as an SSE data line."""
    return f"data: {json.dumps(data, default=str)}\n\n"


# =============================================================================
# Turn setup and persistence
# =============================================================================


def prepare_turn(config: ChatStreamConfig) -> PreparedTurn:
    """
    Record the user's message and load prior turns.

    A missing session id starts a new session titled with (and seeded by) the
    message. With skip_persist nothing is written and no history is loaded.
    Persistence failures are logged; the turn still gets an answer.
    """
    session_id = str(config.session_id) if config.session_id else None
    if config.skip_persist:
        return PreparedTurn(session_id=session_id)

    try:
        if session_id is None:
            session = create_session(
                config.workspace_id,
                title=config.message[:SESSION_TITLE_CHARS],
                user_utterances=[config.message],
            )
            session_id = str(session["id"])
        else:
            append_utterance(session_id, config.message)
    except Exception as e:
        logger.error(f"Failed to record utterance for workspace {config.workspace_id}: {e}")

    user_turn_id = None
    try:
        user_turn = insert_turn(config.workspace_id, session_id, "user", config.message)
        user_turn_id = str(user_turn["id"]) if user_turn else None
    except Exception as e:
        logger.error(f"Failed to persist user turn: {e}")

    history: list[dict[str, Any]] = []
    if session_id and user_turn_id:
        try:
            turns = get_recent_turns(session_id, config.history_window, exclude_id=user_turn_id)
            history = [
                {"role": t["role"], "content": t["content"]}
                for t in turns
                if (t.get("content") or "").strip()
            ]
        except Exception as e:
            logger.warning(f"Failed to load history for session {session_id}: {e}")

    return PreparedTurn(session_id=session_id, history=history)


async def finish_turn(config: ChatStreamConfig, session_id: str | None, text: str) -> None:
    """Persist the assistant turn, touch the session and re-embed its memory."""
    if config.skip_persist or not text or not session_id:
        return

    try:
        insert_turn(config.workspace_id, session_id, "assistant", text)
    except Exception as e:
        logger.error(f"Failed to persist assistant turn for session {session_id}: {e}")

    try:
        touch_session(session_id)
    except Exception as e:
        logger.warning(f"Failed to update session timestamp {session_id}: {e}")

    await reembed(session_id)


def build_user_content(message: str, context: RetrievedContext) -> list[dict[str, Any]]:
    """The user's message followed by grounding images as separate blocks."""
    content: list[dict[str, Any]] = [{"type": "text", "text": message}]
    for image in context.images:
        content.append({"type": "image", "source": {"type": "url", "url": image.url}})
        content.append({"type": "text", "text": f'(Contextual image: "{image.title}")'})
    return content


# =============================================================================
# Dialogue loop
# =============================================================================


def _tool_uses(content: list[Any]) -> list[Any]:
    return [block for block in content if getattr(block, "type", None) == "tool_use"]


def _text_of(content: list[Any]) -> list[str]:
    return [
        block.text
        for block in content
        if getattr(block, "type", None) == "text" and getattr(block, "text", None)
    ]


class DialogueLoop:
    """
    Bounded tool-use exchange with the model for one user turn.

    ``run()`` yields event dicts (status/text). The committed answer is
    accumulated in ``text``.
    """

    def __init__(
        self,
        client: Any,
        config: ChatStreamConfig,
        system: str,
        messages: list[dict[str, Any]],
    ):
        self.client = client
        self.config = config
        self.system = system
        self.messages = messages
        self.tools = get_tool_definitions()
        self.phase = LoopPhase.AWAITING_MODEL
        self.rounds_used = 0
        self.text = ""
        self.budget_exhausted = False

    def _request(self) -> dict[str, Any]:
        return {
            "model": self.config.chat_model,
            "max_tokens": self.config.max_tokens,
            "system": self.system,
            "tools": self.tools,
            "messages": self.messages,
        }

    async def _run_tools(self, tool_uses: list[Any]) -> list[dict[str, Any]]:
        """Execute all requested tools concurrently; failures become error strings."""
        self.phase = LoopPhase.TOOLS_EXECUTING
        results = await asyncio.gather(
            *(execute_tool(self.config.workspace_id, t.name, t.input) for t in tool_uses),
            return_exceptions=True,
        )
        tool_results = []
        for tool_use, result in zip(tool_uses, results, strict=True):
            if isinstance(result, Exception):
                logger.error(f"Tool {tool_use.name} raised: {result}")
                result = f"Error executing {tool_use.name}: {result}"
            elif isinstance(result, BaseException):
                raise result
            tool_results.append(
                {"type": "tool_result", "tool_use_id": tool_use.id, "content": result}
            )
        return tool_results

    async def _stream_round(self) -> tuple[list[str], Any]:
        """Stream one round into a buffer; nothing reaches the caller yet."""
        self.phase = LoopPhase.STREAMING
        buffer: list[str] = []
        async with self.client.messages.stream(**self._request()) as stream:
            async for event in stream:
                if getattr(event, "type", None) == "content_block_delta":
                    delta_text = getattr(event.delta, "text", None)
                    if delta_text:
                        buffer.append(delta_text)
            final_message = await stream.get_final_message()
        return buffer, final_message

    def _commit(self, chunks: list[str]):
        for chunk in chunks:
            self.text += chunk
            yield {"type": "text", "content": chunk}

    async def run(self) -> AsyncGenerator[dict[str, Any], None]:
        self.phase = LoopPhase.AWAITING_MODEL
        response = await self.client.messages.create(**self._request())
        content = response.content
        tool_uses = _tool_uses(content)

        if not tool_uses:
            for event in self._commit(_text_of(content)):
                yield event
            self.phase = LoopPhase.DONE
            return

        buffer: list[str] = []
        while tool_uses:
            if self.rounds_used >= self.config.max_tool_rounds:
                self.budget_exhausted = True
                logger.warning(
                    f"Tool round budget ({self.config.max_tool_rounds}) exhausted, "
                    f"flushing {len(buffer)} buffered chunks"
                )
                break

            self.rounds_used += 1
            self.phase = LoopPhase.TOOL_CALL_PENDING
            for tool_use in tool_uses:
                yield {"type": "status", "content": get_status_label(tool_use.name)}

            tool_results = await self._run_tools(tool_uses)
            self.messages.append({"role": "assistant", "content": content})
            self.messages.append({"role": "user", "content": tool_results})

            self.phase = LoopPhase.AWAITING_MODEL
            yield {"type": "status", "content": GENERATING_STATUS}

            buffer, final_message = await self._stream_round()
            content = final_message.content
            tool_uses = _tool_uses(content)
            # A trailing tool call supersedes the buffered text: drop it unless we stop here

        for event in self._commit(buffer):
            yield event
        self.phase = LoopPhase.DONE


# =============================================================================
# SSE entry point
# =============================================================================


async def generate_chat_stream(
    config: ChatStreamConfig,
    client: Any = None,
) -> AsyncGenerator[str, None]:
    """Generate SSE frames for one chat turn.

    Yields: context? -> status/text* -> error? -> done (always last).
    """
    session_id = str(config.session_id) if config.session_id else None

    try:
        prepared = await asyncio.to_thread(prepare_turn, config)
        session_id = prepared.session_id

        context = await retrieve_context(config.workspace_id, config.message)
        logger.info(
            f"Grounding: {len(context.items)} ranked items, {len(context.images)} images, "
            f"{len(prepared.history)} history turns"
        )

        # Ranked items go out before any model call so the UI can highlight them
        if context.items:
            yield _sse_event({"type": "context", "items": context.items})

        if client is None:
            # Import here to avoid loading if API key not set
            from anthropic import AsyncAnthropic

            client = AsyncAnthropic(api_key=config.anthropic_api_key)

        messages = prepared.history + [
            {"role": "user", "content": build_user_content(config.message, context)}
        ]
        loop = DialogueLoop(client, config, SYSTEM_PROMPT + context.text, messages)

        async for event in loop.run():
            yield _sse_event(event)

        logger.info(
            f"Chat turn complete: {loop.rounds_used} tool rounds, {len(loop.text)} chars"
            + (" (budget exhausted)" if loop.budget_exhausted else "")
        )

        await finish_turn(config, session_id, loop.text)

    except Exception as e:
        logger.error(f"Error in chat stream: {e}", exc_info=True)
        yield _sse_event({"type": "error", "content": str(e)})

    yield _sse_event({"type": "done", "session_id": session_id})
