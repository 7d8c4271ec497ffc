"""Tool providers.

A provider enumerates tools from one source. The registry asks each of its
providers for a fresh list on every sync:

- ``SystemProvider``: the built-in file, command, system and fetch tools.
- ``MetaProvider``: the tool wand, bound to the registry it searches.
- ``ExtensionProvider``: command-backed tools declared in configuration.

Remote tool servers are bridged by ``auracle.mcp.MCPProvider``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional

from auracle.tools.builtin import PathGuard, create_tool_wand, get_builtin_tools, run_process
from auracle.tools.registry import Tool, ToolProvider, ToolRegistry
from auracle.tools.types import (
    Permission,
    ToolCategory,
    ToolDefinition,
    ToolResult,
    ToolStatus,
)

if TYPE_CHECKING:
    from auracle.config.settings import ExtensionSettings
    from auracle.orchestrator.collaborators import SnapshotSource

logger = logging.getLogger(__name__)

# Tools rendered into every prompt; everything else is found with the wand
CORE_TOOLS = (
    "sys_read_file",
    "sys_write_file",
    "sys_shell_exec",
    "sys_tool_wand",
    "sys_info",
)


def core_tools() -> list[str]:
    """Names of the always-on tools."""
    return list(CORE_TOOLS)


class SystemProvider(ToolProvider):
    """Provides the built-in tools."""

    def __init__(
        self,
        monitor: "SnapshotSource",
        guard: Optional[PathGuard] = None,
        working_directory: Optional[str] = None,
        shell_timeout: float = 60.0,
        max_output_length: int = 50000,
    ):
        self._monitor = monitor
        self._guard = guard
        self._working_directory = working_directory
        self._shell_timeout = shell_timeout
        self._max_output_length = max_output_length

    @property
    def name(self) -> str:
        return "system"

    async def provide(self) -> list[Tool]:
        return get_builtin_tools(
            self._monitor,
            working_directory=self._working_directory,
            guard=self._guard,
            shell_timeout=self._shell_timeout,
            max_output_length=self._max_output_length,
        )


class MetaProvider(ToolProvider):
    """Provides tools that operate on the registry itself."""

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    @property
    def name(self) -> str:
        return "meta"

    async def provide(self) -> list[Tool]:
        return [create_tool_wand(self._registry)]


def _parse_permissions(names: Iterable[str]) -> frozenset[Permission]:
    return frozenset(Permission(n) for n in names)


def _parse_category(name: str) -> ToolCategory:
    try:
        return ToolCategory(name)
    except ValueError:
        logger.warning(f"Unknown tool category '{name}', using general")
        return ToolCategory.GENERAL


def create_extension_tool(ext: "ExtensionSettings", default_timeout: float = 30.0) -> Tool:
    """Wrap a declared command as a tool.

    The command receives the call arguments as JSON on stdin; its stdout
    becomes the result content. A non-zero exit is reported as an error
    result carrying stderr.
    """
    argv = list(ext.command)

    async def handler(args: dict[str, Any]) -> ToolResult:
        output = await run_process(argv, stdin_data=json.dumps(args))
        meta = {"exit_code": output.returncode}
        if output.returncode != 0:
            return ToolResult(
                status=ToolStatus.ERROR,
                content=output.stdout or output.stderr,
                error=output.stderr.strip() or f"exit code {output.returncode}",
                meta=meta,
            )
        return ToolResult.success(output.stdout, meta=meta)

    return Tool(
        definition=ToolDefinition(
            name=ext.name,
            description=ext.description,
            input_schema=dict(ext.input_schema),
        ),
        handler=handler,
        permissions=_parse_permissions(ext.permissions),
        category=_parse_category(ext.category),
        complexity=ext.complexity,
        source="extension",
        timeout=ext.timeout if ext.timeout is not None else default_timeout,
    )


class ExtensionProvider(ToolProvider):
    """Provides command-backed tools declared in configuration."""

    def __init__(self, extensions: Iterable["ExtensionSettings"], default_timeout: float = 30.0):
        self._extensions = list(extensions)
        self._default_timeout = default_timeout

    @property
    def name(self) -> str:
        return "extensions"

    async def provide(self) -> list[Tool]:
        tools = [create_extension_tool(ext, self._default_timeout) for ext in self._extensions]
        if tools:
            logger.debug(f"Loaded {len(tools)} extension tools")
        return tools
