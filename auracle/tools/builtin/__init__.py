"""Built-in tools for Auracle.

This package contains the tools shipped with the assistant:
- File operations (read, write, list, stat, grep, source traversal)
- Command execution
- System snapshot and HTTP fetch
- The tool wand used to discover further tools
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from auracle.tools.builtin.files import (
    PathGuard,
    create_grep_tool,
    create_list_dir_tool,
    create_list_files_tool,
    create_read_file_tool,
    create_stat_tool,
    create_traverse_tool,
    create_write_file_tool,
)
from auracle.tools.builtin.meta import create_tool_wand
from auracle.tools.builtin.shell import ProcessOutput, create_shell_exec_tool, run_process
from auracle.tools.builtin.system import create_http_fetch_tool, create_sys_info_tool
from auracle.tools.registry import Tool

if TYPE_CHECKING:
    from auracle.orchestrator.collaborators import SnapshotSource


def get_builtin_tools(
    monitor: "SnapshotSource",
    working_directory: Optional[str] = None,
    guard: Optional[PathGuard] = None,
    shell_timeout: float = 60.0,
    max_output_length: int = 50000,
    fetch_timeout: float = 30.0,
) -> list[Tool]:
    """Build every system tool.

    Args:
        monitor: Snapshot source backing ``sys_info``.
        working_directory: Base directory for file and command tools.
        guard: Path guard applied by the file tools.
        shell_timeout: Seconds a command may run.
        max_output_length: Command output cap.
        fetch_timeout: HTTP request timeout.
    """
    return [
        create_read_file_tool(working_directory=working_directory, guard=guard),
        create_write_file_tool(working_directory=working_directory, guard=guard),
        create_list_files_tool(working_directory=working_directory, guard=guard),
        create_list_dir_tool(working_directory=working_directory, guard=guard),
        create_stat_tool(working_directory=working_directory, guard=guard),
        create_grep_tool(working_directory=working_directory, guard=guard),
        create_traverse_tool(working_directory=working_directory, guard=guard),
        create_shell_exec_tool(
            working_directory=working_directory,
            timeout=shell_timeout,
            max_output_length=max_output_length,
        ),
        create_sys_info_tool(monitor),
        create_http_fetch_tool(timeout=fetch_timeout),
    ]


__all__ = [
    "PathGuard",
    "ProcessOutput",
    "create_grep_tool",
    "create_http_fetch_tool",
    "create_list_dir_tool",
    "create_list_files_tool",
    "create_read_file_tool",
    "create_shell_exec_tool",
    "create_stat_tool",
    "create_sys_info_tool",
    "create_tool_wand",
    "create_traverse_tool",
    "create_write_file_tool",
    "get_builtin_tools",
    "run_process",
]
