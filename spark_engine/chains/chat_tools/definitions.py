"""Tool definitions for the workspace chat assistant.

4 tools, closed set:
- semantic_search: hybrid (lexical + vector) search, the primary search tool
- keyword_search: exact keyword or phrase match
- list_items: every item in the workspace, newest first
- get_workspace_details: workspace name, description and metadata

The model never supplies the workspace: the dispatcher injects the turn's
workspace_id before validating input against the tool's model.
"""

from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ToolName(str, Enum):
    SEMANTIC_SEARCH = "semantic_search"
    KEYWORD_SEARCH = "keyword_search"
    LIST_ITEMS = "list_items"
    GET_WORKSPACE_DETAILS = "get_workspace_details"


# =============================================================================
# Input models
# =============================================================================


class _ToolInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    workspace_id: UUID


class SemanticSearchInput(_ToolInput):
    query: str = Field(..., min_length=1)


class KeywordSearchInput(_ToolInput):
    query: str = Field(..., min_length=1)


class ListItemsInput(_ToolInput):
    pass


class WorkspaceDetailsInput(_ToolInput):
    pass


TOOL_INPUT_MODELS: dict[ToolName, type[_ToolInput]] = {
    ToolName.SEMANTIC_SEARCH: SemanticSearchInput,
    ToolName.KEYWORD_SEARCH: KeywordSearchInput,
    ToolName.LIST_ITEMS: ListItemsInput,
    ToolName.GET_WORKSPACE_DETAILS: WorkspaceDetailsInput,
}

# Shown to the user while a tool runs
TOOL_STATUS_LABELS: dict[str, str] = {
    ToolName.SEMANTIC_SEARCH.value: "Searching your workspace...",
    ToolName.KEYWORD_SEARCH.value: "Searching by keyword...",
    ToolName.LIST_ITEMS.value: "Loading items...",
    ToolName.GET_WORKSPACE_DETAILS.value: "Getting workspace details...",
}
DEFAULT_STATUS_LABEL = "Processing..."


def get_status_label(tool_name: str) -> str:
    return TOOL_STATUS_LABELS.get(tool_name, DEFAULT_STATUS_LABEL)


def get_tool_definitions() -> list[dict[str, Any]]:
    """Get tool definitions for the Claude API."""
    return [
        {
            "name": ToolName.SEMANTIC_SEARCH.value,
            "description": (
                "Search for items in the workspace by meaning. Finds conceptually related "
                "items even without exact keyword matches. Use this as your primary search tool."
            ),
            "input_schema": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The natural language search query",
                    },
                },
                "required": ["query"],
            },
        },
        {
            "name": ToolName.KEYWORD_SEARCH.value,
            "description": (
                "Search for items by exact keyword or phrase match. "
                "Use when looking for a specific term."
            ),
            "input_schema": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The keyword or phrase to search for",
                    },
                },
                "required": ["query"],
            },
        },
        {
            "name": ToolName.LIST_ITEMS.value,
            "description": (
                "List all items in the workspace, newest first. "
                "Use for a complete overview of everything collected."
            ),
            "input_schema": {"type": "object", "properties": {}},
        },
        {
            "name": ToolName.GET_WORKSPACE_DETAILS.value,
            "description": "Get the workspace name, description, and metadata.",
            "input_schema": {"type": "object", "properties": {}},
        },
    ]
