"""Tests for conversation memory re-embedding."""

from unittest.mock import AsyncMock, patch

import pytest

from spark_engine.core.session_memory import build_session_text, reembed

SESSION_ID = "22222222-2222-2222-2222-222222222222"


def test_session_text_joins_with_blank_line():
    assert build_session_text(["first", "", "second"]) == "first\n\nsecond"


@pytest.mark.asyncio
async def test_reembed_encodes_full_conversation():
    vector = [0.3] * 1024
    with (
        patch(
            "spark_engine.core.session_memory.get_user_utterances",
            return_value=["what is pgvector?", "and hnsw?"],
        ),
        patch(
            "spark_engine.core.session_memory.encode_document",
            new=AsyncMock(return_value=vector),
        ) as mock_encode,
        patch("spark_engine.core.session_memory.update_session_embedding") as mock_update,
    ):
        result = await reembed(SESSION_ID)

    assert result == vector
    mock_encode.assert_awaited_once_with("what is pgvector?\n\nand hnsw?")
    mock_update.assert_called_once_with(SESSION_ID, vector)


@pytest.mark.asyncio
async def test_reembed_twice_stores_same_vector():
    vector = [0.3] * 1024
    with (
        patch("spark_engine.core.session_memory.get_user_utterances", return_value=["hello"]),
        patch("spark_engine.core.session_memory.encode_document", new=AsyncMock(return_value=vector)),
        patch("spark_engine.core.session_memory.update_session_embedding") as mock_update,
    ):
        await reembed(SESSION_ID)
        await reembed(SESSION_ID)

    first, second = mock_update.call_args_list
    assert first.args == second.args


@pytest.mark.asyncio
async def test_encoder_unavailable_leaves_embedding_unchanged():
    with (
        patch("spark_engine.core.session_memory.get_user_utterances", return_value=["hello"]),
        patch("spark_engine.core.session_memory.encode_document", new=AsyncMock(return_value=None)),
        patch("spark_engine.core.session_memory.update_session_embedding") as mock_update,
    ):
        assert await reembed(SESSION_ID) is None

    mock_update.assert_not_called()


@pytest.mark.asyncio
async def test_no_utterances_skips_encoder():
    with (
        patch("spark_engine.core.session_memory.get_user_utterances", return_value=[]),
        patch("spark_engine.core.session_memory.encode_document", new=AsyncMock()) as mock_encode,
    ):
        assert await reembed(SESSION_ID) is None

    mock_encode.assert_not_called()


@pytest.mark.asyncio
async def test_storage_failure_is_not_raised():
    with patch(
        "spark_engine.core.session_memory.get_user_utterances",
        side_effect=RuntimeError("db down"),
    ):
        assert await reembed(SESSION_ID) is None
