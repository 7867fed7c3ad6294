"""Tool dispatch: validates input against the tool's model and runs its handler."""

from typing import Any, Callable, Coroutine
from uuid import UUID

from pydantic import ValidationError

from spark_engine.core.logging import get_logger

from .definitions import TOOL_INPUT_MODELS, ToolName

logger = get_logger(__name__)

ToolHandler = Callable[[Any], Coroutine[Any, Any, Any]]

# Lazy-import handler map, populated on first call to avoid circular imports
_HANDLER_MAP: dict[ToolName, ToolHandler] | None = None


class UnknownToolError(Exception):
    """The model asked for a tool outside the registered set."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ToolInputError(Exception):
    """Tool input failed validation against the tool's input model."""

    def __init__(self, tool_name: str, error: ValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in error.errors()
        )
        super().__init__(f"Invalid input for {tool_name}: {details}")
        self.tool_name = tool_name


def _build_handler_map() -> dict[ToolName, ToolHandler]:
    from .tools_search import _get_workspace_details, _keyword_search, _list_items, _semantic_search

    return {
        ToolName.SEMANTIC_SEARCH: _semantic_search,
        ToolName.KEYWORD_SEARCH: _keyword_search,
        ToolName.LIST_ITEMS: _list_items,
        ToolName.GET_WORKSPACE_DETAILS: _get_workspace_details,
    }


def resolve_tool(tool_name: str) -> ToolName:
    try:
        return ToolName(tool_name)
    except ValueError:
        raise UnknownToolError(tool_name) from None


def validate_tool_input(tool: ToolName, workspace_id: UUID | str, tool_input: dict[str, Any] | None):
    """Build the tool's input model; the turn's workspace always wins."""
    payload = {**(tool_input or {}), "workspace_id": str(workspace_id)}
    try:
        return TOOL_INPUT_MODELS[tool].model_validate(payload)
    except ValidationError as e:
        raise ToolInputError(tool.value, e) from e


async def execute_tool(
    workspace_id: UUID | str,
    tool_name: str,
    tool_input: dict[str, Any] | None,
) -> str | list[dict[str, Any]]:
    """
    Execute a tool and return its result content.

    Never raises: unknown tools, invalid input and handler failures all come
    back as an error string the model can read and adapt to.

    Args:
        workspace_id: Workspace of the current turn
        tool_name: Name the model asked for
        tool_input: Arguments the model supplied

    Returns:
        Tool result content (text, or text and image blocks)
    """
    global _HANDLER_MAP
    if _HANDLER_MAP is None:
        _HANDLER_MAP = _build_handler_map()

    try:
        logger.info(f"Executing tool {tool_name} for workspace {workspace_id}")
        tool = resolve_tool(tool_name)
        params = validate_tool_input(tool, workspace_id, tool_input)
        return await _HANDLER_MAP[tool](params)

    except (UnknownToolError, ToolInputError) as e:
        logger.warning(str(e))
        return str(e)
    except Exception as e:
        logger.error(f"Error executing tool {tool_name}: {e}", exc_info=True)
        return f"Error executing {tool_name}: {e}"
