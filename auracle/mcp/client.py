"""Stdio client for Model Context Protocol tool servers.

The server is a subprocess speaking newline-delimited JSON-RPC 2.0 on its
stdin and stdout. Requests are strictly sequential: one request is written
and its response read before the next one starts, so a single lock guards
the whole exchange and ids increase monotonically.

Example:
    >>> client = MCPClient(MCPServerConfig(name="fs", command="mcp-fs"))
    >>> await client.start()
    >>> tools = await client.list_tools()
    >>> result = await client.call_tool("read", {"path": "README.md"})
    >>> await client.close()
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from auracle import __version__
from auracle.errors import ProtocolError
from auracle.tools.types import ToolResult, ToolStatus

if TYPE_CHECKING:
    from auracle.config.settings import MCPServerSettings

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

# Largest single response line accepted from a server
STREAM_LIMIT = 16 * 1024 * 1024


@dataclass
class MCPServerConfig:
    """How to launch and talk to one tool server."""

    name: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    initialize: bool = True
    request_timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: "MCPServerSettings") -> "MCPServerConfig":
        return cls(
            name=settings.name,
            command=settings.command,
            args=list(settings.args),
            env=dict(settings.env),
            initialize=settings.initialize,
            request_timeout=settings.request_timeout,
        )


@dataclass
class MCPToolInfo:
    """A tool as advertised by a server's ``tools/list``."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=lambda: {"type": "object"})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MCPToolInfo":
        schema = data.get("inputSchema")
        if not isinstance(schema, dict):
            schema = {"type": "object"}
        return cls(
            name=data["name"],
            description=data.get("description") or "",
            input_schema=schema,
        )


class MCPClient:
    """JSON-RPC client for one tool server subprocess."""

    def __init__(self, config: MCPServerConfig):
        self.config = config
        self._process: Optional[asyncio.subprocess.Process] = None
        self._next_id = 0
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def start(self) -> None:
        """Launch the server and, if configured, perform the handshake.

        Raises:
            ProtocolError: If the server cannot be launched or the handshake fails.
        """
        if self.is_running:
            return

        env = {**os.environ, **self.config.env}
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.config.command,
                *self.config.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env=env,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise ProtocolError(self.name, f"failed to launch '{self.config.command}': {e}") from e

        logger.info(f"Started MCP server '{self.name}' (pid {self._process.pid})")

        if self.config.initialize:
            await self.initialize()

    async def initialize(self) -> dict[str, Any]:
        """Run the ``initialize`` handshake and confirm it with a notification."""
        result = await self._request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "auracle", "version": __version__},
            },
        )
        await self._notify("notifications/initialized")
        server_info = result.get("serverInfo", {}) if isinstance(result, dict) else {}
        logger.debug(f"MCP server '{self.name}' initialized: {server_info}")
        return result

    async def list_tools(self) -> list[MCPToolInfo]:
        """Ask the server for its tools."""
        result = await self._request("tools/list", {})
        tools = result.get("tools") if isinstance(result, dict) else None
        if not isinstance(tools, list):
            raise ProtocolError(self.name, "tools/list result has no tool list")

        infos = []
        for item in tools:
            if not isinstance(item, dict) or not item.get("name"):
                logger.warning(f"MCP server '{self.name}' advertised a malformed tool: {item!r}")
                continue
            infos.append(MCPToolInfo.from_dict(item))
        return infos

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> ToolResult:
        """Invoke a remote tool.

        Text content parts are concatenated, each followed by a newline. A
        result flagged ``isError`` becomes an error result; a JSON-RPC level
        error raises.

        Raises:
            ProtocolError: On a JSON-RPC error or a broken connection.
        """
        result = await self._request("tools/call", {"name": name, "arguments": arguments or {}})
        if not isinstance(result, dict):
            raise ProtocolError(self.name, "tools/call result is not an object")

        content = ""
        for part in result.get("content") or []:
            if isinstance(part, dict) and part.get("type") == "text":
                content += f"{part.get('text', '')}\n"

        if result.get("isError"):
            return ToolResult(
                status=ToolStatus.ERROR,
                content=content,
                error=content.strip() or f"remote tool '{name}' reported an error",
                meta={"server": self.name},
            )
        return ToolResult.success(content, meta={"server": self.name})

    async def close(self) -> None:
        """Terminate the server and reap it."""
        proc = self._process
        self._process = None
        if proc is None:
            return

        if proc.stdin is not None and not proc.stdin.is_closing():
            proc.stdin.close()
        if proc.returncode is None:
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(proc.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()

        logger.info(f"Stopped MCP server '{self.name}'")

    async def _notify(self, method: str, params: Optional[dict[str, Any]] = None) -> None:
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        async with self._lock:
            await self._write(message)

    async def _request(self, method: str, params: dict[str, Any]) -> Any:
        async with self._lock:
            self._next_id += 1
            request_id = self._next_id
            try:
                await self._write(
                    {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
                )
                response = await asyncio.wait_for(
                    self._read_response(request_id),
                    timeout=self.config.request_timeout,
                )
            except asyncio.TimeoutError:
                # The late response would desynchronize the stream
                await self._discard()
                raise ProtocolError(
                    self.name,
                    f"'{method}' timed out after {self.config.request_timeout}s",
                ) from None
            except (ProtocolError, asyncio.CancelledError):
                # The stream can no longer be trusted
                await self._discard()
                raise

        if "error" in response:
            error = response["error"]
            reason = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
            raise ProtocolError(self.name, f"'{method}' failed: {reason}", remote_error=error)
        return response.get("result")

    async def _write(self, message: dict[str, Any]) -> None:
        if not self.is_running or self._process.stdin is None:
            raise ProtocolError(self.name, "server is not running")
        line = json.dumps(message) + "\n"
        try:
            self._process.stdin.write(line.encode("utf-8"))
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise ProtocolError(self.name, f"write failed: {e}") from e

    async def _read_response(self, request_id: int) -> dict[str, Any]:
        if self._process is None or self._process.stdout is None:
            raise ProtocolError(self.name, "server is not running")
        while True:
            try:
                line = await self._process.stdout.readline()
            except ValueError as e:
                raise ProtocolError(self.name, f"response too large: {e}") from e
            if not line:
                raise ProtocolError(self.name, "server closed the connection")

            line = line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError as e:
                raise ProtocolError(self.name, f"malformed response: {e}") from e
            if not isinstance(message, dict):
                raise ProtocolError(self.name, "response is not a JSON object")

            if "id" not in message or message["id"] is None:
                logger.debug(f"MCP server '{self.name}' sent {message.get('method', 'a message')}")
                continue
            if message["id"] != request_id:
                raise ProtocolError(
                    self.name,
                    f"response id {message['id']!r} does not match request id {request_id}",
                )
            return message

    async def _discard(self) -> None:
        proc = self._process
        self._process = None
        if proc is not None and proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
