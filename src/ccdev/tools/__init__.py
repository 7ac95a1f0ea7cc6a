"""Tool catalog and dispatcher for ccdev."""

from ccdev.tools.manager import TOOL_DEFINITIONS, ToolManager, dispatch, parse_tool_input

__all__ = ["TOOL_DEFINITIONS", "ToolManager", "dispatch", "parse_tool_input"]
