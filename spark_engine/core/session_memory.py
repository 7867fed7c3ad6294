"""Conversation memory: a session's user utterances embedded as one document.

The session embedding is always recomputed from the full utterance list, never
patched incrementally, so re-embedding twice without a new utterance yields the
same stored vector.
"""

from uuid import UUID

from spark_engine.core.embeddings import encode_document
from spark_engine.core.logging import get_logger
from spark_engine.db.chat_sessions import (
    append_user_utterance,
    get_user_utterances,
    update_session_embedding,
)

logger = get_logger(__name__)

UTTERANCE_SEPARATOR = "\n\n"


def build_session_text(utterances: list[str]) -> str:
    return UTTERANCE_SEPARATOR.join(u for u in utterances if u)


def append_utterance(session_id: UUID | str, text: str) -> None:
    """Append a user utterance atomically (storage-side array append)."""
    append_user_utterance(session_id, text)


async def reembed(session_id: UUID | str) -> list[float] | None:
    """
    Re-encode the whole conversation and overwrite the session embedding.

    Best-effort: failures are logged, never raised. When the encoder is
    unavailable the stored embedding is left unchanged.

    Returns:
        The stored vector, or None if nothing was written
    """
    try:
        utterances = get_user_utterances(session_id)
        text = build_session_text(utterances)
        if not text.strip():
            logger.debug(f"Session {session_id} has no utterances to embed")
            return None

        embedding = await encode_document(text)
        if embedding is None:
            logger.warning(f"Session {session_id} re-embed skipped: encoder unavailable")
            return None

        update_session_embedding(session_id, embedding)
        logger.debug(f"Re-embedded session {session_id} from {len(utterances)} utterances")
        return embedding

    except Exception as e:
        logger.warning(f"Session re-embed failed for {session_id}: {e}")
        return None
