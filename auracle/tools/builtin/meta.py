"""The tool wand: lets the model discover tools it was not shown."""

from __future__ import annotations

import json
import logging
from typing import Any

from auracle.tools.registry import Tool, ToolRegistry
from auracle.tools.types import (
    Permission,
    ToolCategory,
    ToolDefinition,
    ToolParameter,
    ToolResult,
)

logger = logging.getLogger(__name__)

TOOL_WAND_TOOL = ToolDefinition(
    name="sys_tool_wand",
    description=(
        "Search for tools, list available capabilities, or request new features. "
        "Use this when you lack a tool to complete a task."
    ),
    parameters=[
        ToolParameter(
            name="action",
            type="string",
            description="The operation to perform",
            enum=["search", "list_categories", "wish"],
        ),
        ToolParameter(
            name="query",
            type="string",
            description="Search term for 'search', or the desired tool for 'wish'",
            required=False,
        ),
    ],
)


def create_tool_wand(registry: ToolRegistry) -> Tool:
    """Create the discovery tool bound to a registry."""

    def handler(args: dict[str, Any]) -> ToolResult:
        action = args["action"]
        query = (args.get("query") or "").strip()

        if action == "list_categories":
            categories = [c.value for c in ToolCategory if c != ToolCategory.GENERAL]
            return ToolResult.success("Available Categories:\n- " + "\n- ".join(categories))

        if action == "search":
            if not query:
                return ToolResult.failure("query required for search")
            matches = registry.search(query)
            if not matches:
                return ToolResult.success("No matching tools found. Consider 'wish'ing for it?")

            lines = ["Found Tools (definitions injection):"]
            for tool in matches:
                lines.append(f"## {tool.name}")
                lines.append(tool.description)
                lines.append(f"Usage: {json.dumps(tool.definition.json_schema())}")
                lines.append("---")
            lines.append("")
            lines.append("These tool definitions are now available to you in this turn.")
            return ToolResult.success("\n".join(lines), data=[t.name for t in matches])

        # wish
        logger.info(f"Tool wish: {query}")
        return ToolResult.success(
            f"Wish granted (logged). The need for '{query}' was recorded. "
            "Continue with best-effort alternatives."
        )

    return Tool(
        definition=TOOL_WAND_TOOL,
        handler=handler,
        permissions=frozenset({Permission.READ}),
        category=ToolCategory.SYSTEM,
        complexity=1,
        source="meta",
        timeout=5.0,
    )
