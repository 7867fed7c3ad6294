"""Chat assistant tools for Claude: package barrel exports."""

from .definitions import TOOL_STATUS_LABELS, ToolName, get_status_label, get_tool_definitions
from .dispatcher import ToolInputError, UnknownToolError, execute_tool

__all__ = [
    "get_tool_definitions",
    "get_status_label",
    "execute_tool",
    "ToolName",
    "TOOL_STATUS_LABELS",
    "UnknownToolError",
    "ToolInputError",
]
