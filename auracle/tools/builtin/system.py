"""System snapshot and HTTP fetch tools."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import urlparse

import httpx

from auracle.tools.registry import Tool
from auracle.tools.types import (
    Permission,
    ToolCategory,
    ToolDefinition,
    ToolParameter,
    ToolResult,
    ToolStatus,
)

if TYPE_CHECKING:
    from auracle.orchestrator.collaborators import SnapshotSource

logger = logging.getLogger(__name__)

MAX_FETCH_BYTES = 512 * 1024

SYS_INFO_TOOL = ToolDefinition(
    name="sys_info",
    description="Get a snapshot of current system resource usage.",
    parameters=[],
)

HTTP_FETCH_TOOL = ToolDefinition(
    name="http_fetch",
    description="Fetch the content of a public URL (HTTP/HTTPS).",
    parameters=[
        ToolParameter(name="url", type="string", description="The URL to fetch"),
    ],
)


def create_sys_info_tool(monitor: "SnapshotSource") -> Tool:
    """Create a tool reporting CPU, memory and working directory."""

    def handler(args: dict[str, Any]) -> ToolResult:
        snap = monitor.get_snapshot()
        return ToolResult.success(
            f"CPU: {snap.cpu_percent:.1f}%, RAM: {snap.mem_percent:.1f}%, CWD: {snap.working_dir}",
            data=snap.to_dict(),
        )

    return Tool(
        definition=SYS_INFO_TOOL,
        handler=handler,
        permissions=frozenset({Permission.READ}),
        category=ToolCategory.SYSTEM,
        complexity=1,
        source="system",
        timeout=10.0,
    )


def create_http_fetch_tool(
    timeout: float = 30.0,
    max_bytes: int = MAX_FETCH_BYTES,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tool:
    """Create a tool issuing a GET request.

    Args:
        timeout: Request timeout in seconds.
        max_bytes: Reading stops once the body exceeds this many bytes.
        transport: httpx transport override (default: the network).
    """

    async def handler(args: dict[str, Any]) -> ToolResult:
        url = args["url"].strip()
        scheme = urlparse(url).scheme.lower()
        if scheme not in ("http", "https"):
            raise ValueError(f"Invalid URL scheme '{scheme}': only http and https are supported")

        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, transport=transport
        ) as client:
            async with client.stream("GET", url) as response:
                raw, truncated = await _read_limited(response, max_bytes)
                body = raw.decode(response.encoding or "utf-8", errors="replace")

        if truncated:
            body += f"\n... (truncated at {max_bytes} bytes)"

        meta = {
            "status_code": response.status_code,
            "url": str(response.url),
            "truncated": truncated,
        }
        logger.debug(f"Fetched {url}: {response.status_code} ({len(raw)} bytes read)")

        if response.is_error:
            return ToolResult(
                status=ToolStatus.ERROR,
                content=body,
                error=f"HTTP {response.status_code}",
                meta=meta,
            )
        return ToolResult.success(body, meta=meta)

    return Tool(
        definition=HTTP_FETCH_TOOL,
        handler=handler,
        permissions=frozenset({Permission.NETWORK}),
        category=ToolCategory.NETWORK,
        complexity=4,
        source="system",
        timeout=timeout + 5,
    )


async def _read_limited(response: httpx.Response, max_bytes: int) -> tuple[bytes, bool]:
    """Read at most ``max_bytes`` of the body; the flag is True if more was sent."""
    buffer = bytearray()
    async for chunk in response.aiter_bytes():
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            return bytes(buffer[:max_bytes]), True
    return bytes(buffer), False
