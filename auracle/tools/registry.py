"""Tool registry for managing and discovering tools.

The registry provides a central place to register tools with their handlers
and metadata, aggregating them from several providers (built-in, declared
in configuration, or bridged from a remote server). The orchestrator uses it
to discover available tools and the executor uses it to route tool calls.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Iterable, Optional, Union

from auracle.errors import ProviderError
from auracle.tools.types import Permission, ToolCategory, ToolDefinition, ToolParameter

logger = logging.getLogger(__name__)

# Handlers can be sync or async, taking a dict of arguments and returning any result
ToolHandler = Union[
    Callable[[dict[str, Any]], Any],
    Callable[[dict[str, Any]], Coroutine[Any, Any, Any]],
]


@dataclass(frozen=True)
class Tool:
    """A registered tool with its definition and handler.

    Tools are immutable once created; a re-sync replaces them wholesale.

    Attributes:
        definition: The tool's schema definition for model consumption.
        handler: The function that executes the tool.
        permissions: Every permission the tool needs to run.
        category: Operational domain of the tool.
        complexity: Rough cost/danger score from 1 to 10.
        source: Identifier of the provider that produced the tool.
        timeout: Maximum execution time in seconds (None = no timeout).
        executes_commands: Whether arguments are a command line to run.
    """

    definition: ToolDefinition
    handler: ToolHandler
    permissions: frozenset[Permission] = frozenset({Permission.READ})
    category: ToolCategory = ToolCategory.GENERAL
    complexity: int = 1
    source: str = "builtin"
    timeout: Optional[float] = 30.0
    executes_commands: bool = False

    @property
    def name(self) -> str:
        """Get the tool name from its definition."""
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description


class ToolProvider(ABC):
    """A pluggable source of tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier of this provider."""

    @abstractmethod
    async def provide(self) -> list[Tool]:
        """Enumerate the tools this provider currently offers.

        Raises:
            Exception: Any failure aborts the registry sync.
        """


class ToolRegistry:
    """Registry for managing available tools.

    The table is guarded by a lock so lookups from concurrent turns never
    observe a half-applied change, and ``sync`` calls are serialized.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(create_tool(
        ...     name="greet",
        ...     description="Say hello",
        ...     parameters=[],
        ...     handler=lambda args: f"Hello, {args.get('name', 'World')}!",
        ... ))
        >>> tool = registry.get("greet")
    """

    def __init__(self, providers: Optional[Iterable[ToolProvider]] = None):
        self._tools: dict[str, Tool] = {}
        self._providers: list[ToolProvider] = list(providers or [])
        self._lock = threading.Lock()
        self._sync_lock = asyncio.Lock()

    @property
    def providers(self) -> list[ToolProvider]:
        return list(self._providers)

    def register_provider(self, provider: ToolProvider) -> None:
        """Add a provider consulted on every sync."""
        self._providers.append(provider)
        logger.debug(f"Registered provider: {provider.name}")

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any existing tool with the same name.

        Args:
            tool: The tool to register.
        """
        with self._lock:
            _insert(self._tools, tool)

        logger.debug(f"Registered tool: {tool.name} (category: {tool.category.value})")

    def unregister(self, name: str) -> bool:
        """Remove a tool from the registry.

        Returns:
            True if the tool was removed, False if it wasn't registered.
        """
        with self._lock:
            if name not in self._tools:
                return False
            del self._tools[name]

        logger.debug(f"Unregistered tool: {name}")
        return True

    async def sync(self) -> int:
        """Rebuild the table from every registered provider.

        Tools are collected into a fresh table which replaces the current
        one only when every provider succeeded.

        Returns:
            Number of tools in the new table.

        Raises:
            ProviderError: If any provider fails; the previous table is kept.
        """
        async with self._sync_lock:
            table: dict[str, Tool] = {}
            for provider in list(self._providers):
                try:
                    tools = await provider.provide()
                except ProviderError:
                    raise
                except Exception as e:
                    logger.error(f"Provider {provider.name} failed during sync: {e}")
                    raise ProviderError(provider.name, str(e)) from e

                for tool in tools:
                    _insert(table, tool)

            with self._lock:
                self._tools = table

        logger.info(f"Synced {len(table)} tools from {len(self._providers)} providers")
        return len(table)

    def get(self, name: str) -> Optional[Tool]:
        """Get a tool by name, or None if not registered."""
        with self._lock:
            return self._tools.get(name)

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._tools

    def list_tools(self) -> list[Tool]:
        """Get all registered tools."""
        with self._lock:
            return list(self._tools.values())

    def list_names(self) -> list[str]:
        with self._lock:
            return list(self._tools.keys())

    def list_categories(self) -> list[str]:
        """List the categories that have at least one tool, sorted."""
        with self._lock:
            return sorted({tool.category.value for tool in self._tools.values()})

    def search(self, query: str) -> list[Tool]:
        """Find tools whose name, description, or category contains query.

        Matching is case-insensitive.
        """
        needle = query.lower()
        with self._lock:
            tools = list(self._tools.values())
        return [
            tool
            for tool in tools
            if needle in tool.name.lower()
            or needle in tool.description.lower()
            or needle in tool.category.value.lower()
        ]

    def render_definitions(self, subset: Optional[Iterable[str]] = None) -> str:
        """Render tool definitions as a text block for a model prompt.

        Args:
            subset: Names to render, in order. Unknown names are skipped.
                All tools are rendered when omitted.

        Returns:
            One block per tool with its category, complexity, description,
            parameter schema and required permissions.
        """
        with self._lock:
            if subset is None:
                targets = list(self._tools.values())
            else:
                targets = [self._tools[name] for name in subset if name in self._tools]

        blocks = []
        for tool in targets:
            lines = [
                f"## Tool: {tool.name} (Category: {tool.category.value}, "
                f"Complexity: {tool.complexity}/10)",
                f"Description: {tool.description}",
            ]
            schema = tool.definition.json_schema()
            if schema.get("properties"):
                lines.append(f"Parameters (JSON Schema): {json.dumps(schema)}")
            if tool.permissions:
                perms = ", ".join(sorted(p.value for p in tool.permissions))
                lines.append(f"Required Permissions: {perms}")
            lines.append("---")
            blocks.append("\n".join(lines))

        return "\n".join(blocks) + ("\n" if blocks else "")

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get MCP-shaped tool definitions for every registered tool."""
        with self._lock:
            return [tool.definition.to_mcp() for tool in self._tools.values()]

    def clear(self) -> None:
        """Remove all registered tools."""
        with self._lock:
            self._tools.clear()
        logger.debug("Cleared all tools from registry")

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools


def _insert(table: dict[str, Tool], tool: Tool) -> None:
    """Insert a tool into a table; the later tool shadows an earlier one."""
    existing = table.get(tool.name)
    if existing is not None and existing.source != tool.source:
        logger.warning(
            f"Tool '{tool.name}' from {tool.source} shadows the one from {existing.source}"
        )
    table[tool.name] = tool


def create_tool(
    name: str,
    description: str,
    parameters: list[ToolParameter],
    handler: ToolHandler,
    permissions: Iterable[Permission] = (Permission.READ,),
    category: ToolCategory = ToolCategory.GENERAL,
    complexity: int = 1,
    source: str = "builtin",
    timeout: Optional[float] = 30.0,
    executes_commands: bool = False,
) -> Tool:
    """Factory function to create a Tool with a ToolDefinition.

    Args:
        name: Tool name.
        description: Tool description.
        parameters: List of tool parameters.
        handler: Function that executes the tool.
        permissions: Permissions the tool requires.
        category: Tool category.
        complexity: Score from 1 to 10.
        source: Provider identifier.
        timeout: Execution timeout in seconds.
        executes_commands: Mark the tool as running a command line.

    Returns:
        A configured Tool instance.
    """
    definition = ToolDefinition(
        name=name,
        description=description,
        parameters=parameters,
    )
    return Tool(
        definition=definition,
        handler=handler,
        permissions=frozenset(permissions),
        category=category,
        complexity=complexity,
        source=source,
        timeout=timeout,
        executes_commands=executes_commands,
    )
