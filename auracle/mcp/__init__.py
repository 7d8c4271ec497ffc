"""Bridge to external Model Context Protocol tool servers."""

from auracle.mcp.client import MCPClient, MCPServerConfig, MCPToolInfo
from auracle.mcp.provider import MCP_PERMISSIONS, MCPProvider

__all__ = [
    "MCP_PERMISSIONS",
    "MCPClient",
    "MCPProvider",
    "MCPServerConfig",
    "MCPToolInfo",
]
