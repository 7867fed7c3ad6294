"""Tests for chat assistant tool definitions and dispatch.

Covers:
- get_tool_definitions() / get_status_label(): closed tool set and labels
- execute_tool(): dispatch, workspace injection and error strings
- build_tool_content(): JSON summaries plus inline image blocks
"""

import json
from unittest.mock import AsyncMock, patch
from uuid import UUID

import pytest

from spark_engine.chains.chat_tools import (
    ToolName,
    execute_tool,
    get_status_label,
    get_tool_definitions,
)
from spark_engine.chains.chat_tools.tools_search import build_tool_content
from spark_engine.core.hybrid_search import RetrievalCandidate

WORKSPACE_ID = UUID("00000000-0000-0000-0000-000000000001")
OTHER_WORKSPACE_ID = "00000000-0000-0000-0000-000000000002"


# ──────────────────────────────────────────────────────────────────────
# Definitions
# ──────────────────────────────────────────────────────────────────────


class TestDefinitions:
    def test_closed_tool_set(self):
        names = {t["name"] for t in get_tool_definitions()}
        assert names == {t.value for t in ToolName}

    def test_workspace_not_exposed_to_model(self):
        for tool in get_tool_definitions():
            assert "workspace_id" not in tool["input_schema"].get("properties", {})

    def test_status_labels(self):
        assert get_status_label("semantic_search") == "Searching your workspace..."
        assert get_status_label("not_a_tool") == "Processing..."


# ──────────────────────────────────────────────────────────────────────
# Dispatch
# ──────────────────────────────────────────────────────────────────────


class TestExecuteTool:
    @pytest.mark.asyncio
    async def test_unknown_tool_returns_string(self):
        result = await execute_tool(WORKSPACE_ID, "delete_everything", {})
        assert result == "Unknown tool: delete_everything"

    @pytest.mark.asyncio
    async def test_invalid_input_returns_string(self):
        result = await execute_tool(WORKSPACE_ID, "keyword_search", {})
        assert isinstance(result, str)
        assert result.startswith("Invalid input for keyword_search")

    @pytest.mark.asyncio
    async def test_handler_failure_returns_string(self):
        with patch(
            "spark_engine.chains.chat_tools.tools_search.list_items",
            side_effect=RuntimeError("db down"),
        ):
            result = await execute_tool(WORKSPACE_ID, "list_items", {})

        assert result == "Error executing list_items: db down"

    @pytest.mark.asyncio
    async def test_turn_workspace_overrides_model_input(self):
        with patch(
            "spark_engine.chains.chat_tools.tools_search.keyword_search_items",
            return_value=[],
        ) as mock_search:
            await execute_tool(
                WORKSPACE_ID,
                "keyword_search",
                {"query": "pgvector", "workspace_id": OTHER_WORKSPACE_ID},
            )

        assert mock_search.call_args.args[0] == str(WORKSPACE_ID)

    @pytest.mark.asyncio
    async def test_list_items_empty_workspace(self):
        with patch("spark_engine.chains.chat_tools.tools_search.list_items", return_value=[]):
            result = await execute_tool(WORKSPACE_ID, "list_items", {})

        assert result == "No items in this workspace yet."

    @pytest.mark.asyncio
    async def test_workspace_details(self):
        workspace = {"id": str(WORKSPACE_ID), "name": "Research", "description": None}
        with patch("spark_engine.chains.chat_tools.tools_search.get_workspace", return_value=workspace):
            result = await execute_tool(WORKSPACE_ID, "get_workspace_details", {})

        assert json.loads(result)["name"] == "Research"

    @pytest.mark.asyncio
    async def test_semantic_search_filters_weak_vector_hits(self):
        candidates = [
            RetrievalCandidate("a", fused_score=1 / 51, vector_rank=1, similarity=0.45),
            RetrievalCandidate("b", fused_score=1 / 52, vector_rank=2, similarity=0.2),
        ]
        rows = [
            {"id": "a", "type": "note", "title": "Intro to pgvector"},
            {"id": "b", "type": "note", "title": "Quarterly marketing plan"},
        ]
        with (
            patch(
                "spark_engine.chains.chat_tools.tools_search.encode_query",
                new=AsyncMock(return_value=[0.1] * 1024),
            ),
            patch("spark_engine.chains.chat_tools.tools_search.search", return_value=candidates),
            patch("spark_engine.chains.chat_tools.tools_search.get_items_by_ids", return_value=rows),
        ):
            result = await execute_tool(WORKSPACE_ID, "semantic_search", {"query": "vector search"})

        text = result[0]["text"]
        assert text.startswith("Found 1 relevant items:")
        assert "Intro to pgvector" in text
        assert "Quarterly marketing plan" not in text

    @pytest.mark.asyncio
    async def test_semantic_search_falls_back_to_keyword(self):
        with (
            patch(
                "spark_engine.chains.chat_tools.tools_search.encode_query",
                new=AsyncMock(return_value=None),
            ),
            patch("spark_engine.chains.chat_tools.tools_search.search", return_value=[]) as mock_search,
            patch(
                "spark_engine.chains.chat_tools.tools_search.keyword_search_items",
                return_value=[{"id": "a", "type": "note", "title": "pgvector notes"}],
            ),
        ):
            result = await execute_tool(WORKSPACE_ID, "semantic_search", {"query": "pgvector"})

        # Lexical-only ranking when the query can't be encoded
        assert mock_search.call_args.args[2] is None
        assert result[0]["text"].startswith("Found 1 items (keyword match):")


# ──────────────────────────────────────────────────────────────────────
# Result content
# ──────────────────────────────────────────────────────────────────────


class TestBuildToolContent:
    def test_image_blocks_follow_summary(self):
        items = [
            {"id": "1", "type": "image", "title": "Diagram", "metadata": {"image_url": "https://cdn.example.com/d.png"}},
            {"id": "2", "type": "image", "title": "Private", "metadata": {"image_url": "https://drive.google.com/x"}},
        ]
        content = build_tool_content(items, "Found 2 items:")

        assert content[0]["type"] == "text"
        assert content[1] == {"type": "image", "source": {"type": "url", "url": "https://cdn.example.com/d.png"}}
        assert content[2] == {"type": "text", "text": 'Above image: "Diagram"'}
        assert len(content) == 3

    def test_at_most_five_images(self):
        items = [
            {"id": str(i), "type": "image", "title": f"img {i}", "metadata": {"image_url": f"https://cdn.example.com/{i}.png"}}
            for i in range(8)
        ]
        content = build_tool_content(items, "Found 8 items:")
        assert sum(1 for block in content if block["type"] == "image") == 5

    def test_body_truncated(self):
        content = build_tool_content([{"id": "1", "type": "note", "title": "Long", "body": "y" * 5000}], "x")
        payload = json.loads(content[0]["text"].split("\n", 1)[1])
        assert len(payload[0]["body"]) == 2000
