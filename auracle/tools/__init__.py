"""Tool system for Auracle.

This package provides the tool data model, the registry that aggregates
tools from providers, and the runner that executes a handler. The policy
aware executor lives in ``auracle.tools.executor``.
"""

from auracle.tools.registry import Tool, ToolHandler, ToolProvider, ToolRegistry, create_tool
from auracle.tools.runner import format_error, run_tool
from auracle.tools.types import (
    Permission,
    ToolCall,
    ToolCategory,
    ToolDefinition,
    ToolParameter,
    ToolResult,
    ToolStatus,
)

__all__ = [
    # Types
    "Permission",
    "ToolCall",
    "ToolCategory",
    "ToolDefinition",
    "ToolParameter",
    "ToolResult",
    "ToolStatus",
    # Registry
    "Tool",
    "ToolHandler",
    "ToolProvider",
    "ToolRegistry",
    "create_tool",
    # Runner
    "format_error",
    "run_tool",
]
