"""Command execution tool.

Commands run directly from an argv list, never through a shell, in a new
process session. When the call is cancelled (including by the runner's
timeout) the whole process group is killed and reaped before the
cancellation propagates, so no child outlives its tool call.

Which commands may run is decided by the policy and the approval enclave;
this module only executes.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from auracle.tools.registry import Tool
from auracle.tools.types import (
    Permission,
    ToolCategory,
    ToolDefinition,
    ToolParameter,
    ToolResult,
    ToolStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT = 50000

SHELL_EXEC_TOOL = ToolDefinition(
    name="sys_shell_exec",
    description=(
        "Execute a command. Pass the program as 'command' and each argument "
        "separately in 'args'; no shell syntax (pipes, redirects) is interpreted."
    ),
    parameters=[
        ToolParameter(name="command", type="string", description="The command to execute"),
        ToolParameter(
            name="args",
            type="array",
            description="Arguments for the command",
            required=False,
            items={"type": "string"},
        ),
    ],
)


@dataclass
class ProcessOutput:
    """Captured result of a finished subprocess."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def combined(self) -> str:
        output = self.stdout
        if self.stderr:
            if output and not output.endswith("\n"):
                output += "\n"
            output += self.stderr
        return output


async def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    """Kill a process and every process in its group, then reap it."""
    if proc.returncode is None:
        try:
            if hasattr(os, "killpg"):
                # start_new_session makes the child its own group leader
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except (ProcessLookupError, PermissionError):
            pass
    await proc.wait()
    logger.debug(f"Killed process group {proc.pid}")


async def run_process(
    argv: Sequence[str],
    stdin_data: Optional[str] = None,
    cwd: Optional[str] = None,
    env: Optional[dict[str, str]] = None,
) -> ProcessOutput:
    """Run a program to completion and capture its output.

    Args:
        argv: Program and arguments.
        stdin_data: Text written to the program's stdin, which is then closed.
        cwd: Working directory.
        env: Extra environment variables layered over the current ones.

    Raises:
        FileNotFoundError: If the program does not exist.
        asyncio.CancelledError: After the process group has been killed.
    """
    full_env = None
    if env:
        full_env = {**os.environ, **env}

    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.PIPE if stdin_data is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=cwd,
        env=full_env,
        start_new_session=True,
    )
    logger.debug(f"Started process {proc.pid}: {argv[0]}")

    payload = stdin_data.encode("utf-8") if stdin_data is not None else None
    try:
        stdout, stderr = await proc.communicate(payload)
    except asyncio.CancelledError:
        await _kill_process_group(proc)
        raise

    return ProcessOutput(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    half = limit // 2
    return text[:half] + "\n\n... (truncated) ...\n\n" + text[-half:]


def create_shell_exec_tool(
    working_directory: Optional[str] = None,
    timeout: float = 60.0,
    max_output_length: int = DEFAULT_MAX_OUTPUT,
) -> Tool:
    """Create the command execution tool.

    Args:
        working_directory: Directory commands run in (default: process cwd).
        timeout: Seconds before the process group is killed.
        max_output_length: Output beyond this is elided in the middle.
    """

    async def handler(args: dict[str, Any]) -> ToolResult:
        command = args["command"].strip()
        argv = [str(a) for a in args.get("args") or []]

        output = await run_process([command, *argv], cwd=working_directory)
        content = _truncate(output.combined, max_output_length) or "(no output)"
        meta = {"command": command, "exit_code": output.returncode}

        if output.returncode != 0:
            logger.info(f"Command exited with {output.returncode}: {command}")
            return ToolResult(
                status=ToolStatus.ERROR,
                content=content,
                error=f"exit code {output.returncode}",
                meta=meta,
            )

        return ToolResult.success(content, meta=meta)

    return Tool(
        definition=SHELL_EXEC_TOOL,
        handler=handler,
        permissions=frozenset({Permission.EXECUTE}),
        category=ToolCategory.SYSTEM,
        complexity=8,
        source="system",
        timeout=timeout,
        executes_commands=True,
    )
