"""Expose a tool server's tools through the registry."""

from __future__ import annotations

import logging
from typing import Any

from auracle.mcp.client import MCPClient, MCPServerConfig, MCPToolInfo
from auracle.tools.registry import Tool, ToolProvider
from auracle.tools.types import Permission, ToolCategory, ToolDefinition, ToolResult

logger = logging.getLogger(__name__)

# Nothing is known about what a remote tool touches
MCP_PERMISSIONS = frozenset({Permission.NETWORK, Permission.READ, Permission.WRITE})


class MCPProvider(ToolProvider):
    """Provides the tools of one MCP server.

    The server is started on the first sync and restarted on a later sync
    if it has died.
    """

    def __init__(self, config: MCPServerConfig):
        self.config = config
        self.client = MCPClient(config)

    @property
    def name(self) -> str:
        return f"mcp:{self.config.name}"

    async def provide(self) -> list[Tool]:
        if not self.client.is_running:
            await self.client.start()

        infos = await self.client.list_tools()
        logger.debug(f"{self.name} offers {len(infos)} tools")
        return [self._wrap(info) for info in infos]

    async def close(self) -> None:
        await self.client.close()

    def _wrap(self, info: MCPToolInfo) -> Tool:
        client = self.client
        remote_name = info.name

        async def handler(args: dict[str, Any]) -> ToolResult:
            return await client.call_tool(remote_name, args)

        return Tool(
            definition=ToolDefinition(
                name=info.name,
                description=info.description,
                input_schema=info.input_schema,
            ),
            handler=handler,
            permissions=MCP_PERMISSIONS,
            category=ToolCategory.NETWORK,
            complexity=5,
            source=self.name,
            # The client enforces its own per-request deadline first
            timeout=self.config.request_timeout + 5,
        )
