"""Tool contract and descriptor introspection."""

from toolbench.tools.base import Tool, ToolContext, check_execute_contract
from toolbench.tools.introspection import describe_tool, find_tools

__all__ = [
    "check_execute_contract",
    "describe_tool",
    "find_tools",
    "Tool",
    "ToolContext",
]
