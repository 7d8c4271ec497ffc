"""Running a tool handler with timeout protection.

This layer performs no authorization. It is shared by the executor, which
checks the policy first, and by approvals resumed after a human decision.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Optional

from auracle.errors import SecurityError, ToolTimeoutError
from auracle.tools.registry import Tool
from auracle.tools.types import ToolResult, format_result_value

logger = logging.getLogger(__name__)

MAX_OUTPUT_LENGTH = 100000


def format_error(tool_name: str, error: str) -> str:
    """Format error with actionable guidance for the model."""
    error_lines = [f"Error: {error}", f"Tool: {tool_name}"]
    error_lower = error.lower()

    if "not found" in error_lower or "no such file" in error_lower:
        error_lines.append(
            "Suggestion: Use fs_list_dir or sys_tool_wand to find the correct path or tool."
        )
    elif "permission" in error_lower:
        error_lines.append(
            "Suggestion: The operating system refused access. Try a path inside the project."
        )
    elif "timed out" in error_lower or "timeout" in error_lower:
        error_lines.append(
            "Suggestion: The operation took too long. Try with a smaller "
            "scope or break it into multiple smaller operations."
        )
    elif "invalid" in error_lower:
        error_lines.append(
            "Suggestion: Check the argument types and values against the tool's schema."
        )
    elif "decode" in error_lower or "encoding" in error_lower:
        error_lines.append(
            "Suggestion: The file may be binary or use a non-UTF8 encoding."
        )
    elif "connection" in error_lower or "network" in error_lower:
        error_lines.append(
            "Suggestion: Network connectivity issue. The operation may succeed if retried."
        )

    return "\n".join(error_lines)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... (truncated, {len(text)} total characters)"


async def run_tool(
    tool: Tool,
    arguments: dict[str, Any],
    timeout: Optional[float] = None,
    max_output_length: int = MAX_OUTPUT_LENGTH,
) -> ToolResult:
    """Run a tool's handler with timeout protection.

    This performs no authorization; callers must have validated the call.

    Args:
        tool: The tool to execute.
        arguments: Arguments for the tool.
        timeout: Maximum execution time; defaults to the tool's own timeout.
        max_output_length: Content longer than this is truncated.

    Returns:
        The tool's result. Handler exceptions and timeouts are reported as
        a result with status ``error``.

    Raises:
        SecurityError: If the handler itself refuses for security reasons.
        asyncio.CancelledError: If the surrounding task is cancelled.
    """
    timeout = timeout if timeout is not None else tool.timeout
    handler = tool.handler
    started = time.monotonic()

    if inspect.iscoroutinefunction(handler):
        coro = handler(arguments)
    else:
        # Run sync handler in thread pool
        loop = asyncio.get_running_loop()
        coro = loop.run_in_executor(None, handler, arguments)

    try:
        if timeout:
            value = await asyncio.wait_for(coro, timeout=timeout)
        else:
            value = await coro
    except asyncio.TimeoutError:
        error = ToolTimeoutError(tool.name, timeout)
        logger.error(f"Tool timeout: {tool.name} after {timeout}s")
        return ToolResult.failure(
            error.message,
            content=format_error(tool.name, error.message),
            meta={"error_code": error.code, "timeout": timeout},
        )
    except SecurityError:
        raise
    except Exception as e:
        logger.warning(f"Tool {tool.name} failed: {type(e).__name__}: {e}")
        message = f"{type(e).__name__}: {e}"
        return ToolResult.failure(
            message,
            content=format_error(tool.name, message),
            meta={"error_type": type(e).__name__},
        )

    if isinstance(value, ToolResult):
        result = value
    else:
        result = ToolResult.success(format_result_value(value))

    result.content = _truncate(result.content, max_output_length)
    result.meta.setdefault("duration_ms", int((time.monotonic() - started) * 1000))

    logger.info(
        f"Tool executed: {tool.name} ({result.status.value}, "
        f"{result.meta['duration_ms']}ms)"
    )
    return result

