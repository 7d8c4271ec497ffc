"""File system tools.

Every tool resolves paths against an optional working directory and runs
each resolved path through a path guard (normally
``PolicyEngine.check_path``), which refuses sensitive files such as
``.env`` or private keys.
"""

from __future__ import annotations

import logging
import os
import re
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from auracle.errors import PolicyBlockedError
from auracle.tools.registry import Tool
from auracle.tools.types import (
    Permission,
    ToolCategory,
    ToolDefinition,
    ToolParameter,
    ToolResult,
)

logger = logging.getLogger(__name__)

PathGuard = Callable[[str], None]

# Directories skipped when walking a source tree
SKIP_DIRS = frozenset({".git", "node_modules", "vendor", "dist", "bin"})

TRAVERSE_LIMIT = 500


READ_FILE_TOOL = ToolDefinition(
    name="sys_read_file",
    description="Read the content of a file from the filesystem.",
    parameters=[
        ToolParameter(
            name="path",
            type="string",
            description="Absolute or relative path to the file",
        ),
    ],
)

WRITE_FILE_TOOL = ToolDefinition(
    name="sys_write_file",
    description="Create or overwrite a file with specific content.",
    parameters=[
        ToolParameter(name="path", type="string", description="Path to the file to write"),
        ToolParameter(name="content", type="string", description="Content to write to the file"),
    ],
)

LIST_FILES_TOOL = ToolDefinition(
    name="sys_list_files",
    description="List files and directories in a given path.",
    parameters=[
        ToolParameter(name="path", type="string", description="Path to list files from"),
    ],
)

LIST_DIR_TOOL = ToolDefinition(
    name="fs_list_dir",
    description="List files in a directory with metadata (size, type).",
    parameters=[
        ToolParameter(name="path", type="string", description="Path to the directory"),
    ],
)

STAT_TOOL = ToolDefinition(
    name="fs_stat",
    description="Get detailed metadata (size, modtime, permissions) for a file.",
    parameters=[
        ToolParameter(name="path", type="string", description="Path to file"),
    ],
)

GREP_TOOL = ToolDefinition(
    name="fs_grep",
    description="Search for regex patterns in files within a directory.",
    parameters=[
        ToolParameter(name="path", type="string", description="Directory or file to search"),
        ToolParameter(name="pattern", type="string", description="Regex pattern"),
        ToolParameter(
            name="recursive",
            type="boolean",
            description="Search recursively (default: true)",
            required=False,
        ),
    ],
)

TRAVERSE_TOOL = ToolDefinition(
    name="traverse_source",
    description="Walk a source tree and list its files, skipping vendored and build directories.",
    parameters=[
        ToolParameter(
            name="path",
            type="string",
            description="Subdirectory to start traversal from",
            required=False,
        ),
    ],
)


def _resolve_path(path: str, working_directory: Optional[str] = None) -> Path:
    """Resolve a path relative to the working directory."""
    p = Path(path).expanduser()
    if not p.is_absolute():
        base = Path(working_directory) if working_directory else Path.cwd()
        p = base / p
    return p.resolve()


def _guarded(path: str, working_directory: Optional[str], guard: Optional[PathGuard]) -> Path:
    resolved = _resolve_path(path, working_directory)
    if guard is not None:
        guard(path)
        guard(str(resolved))
    return resolved


def create_read_file_tool(
    working_directory: Optional[str] = None,
    guard: Optional[PathGuard] = None,
    max_file_size: int = 1024 * 1024,
) -> Tool:
    """Create a tool for reading file contents.

    Args:
        working_directory: Base directory for relative paths.
        guard: Called with each path before it is touched.
        max_file_size: Maximum file size to read in bytes.
    """

    def handler(args: dict[str, Any]) -> ToolResult:
        path = _guarded(args["path"], working_directory, guard)

        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if not path.is_file():
            raise ValueError(f"Path is not a file: {path}")

        size = path.stat().st_size
        if size > max_file_size:
            raise ValueError(f"File too large ({size} bytes). Maximum: {max_file_size} bytes")

        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            # latin-1 decodes any byte sequence
            content = path.read_text(encoding="latin-1")

        logger.debug(f"Read file: {path} ({len(content)} chars)")
        return ToolResult.success(content, data={"size": size})

    return Tool(
        definition=READ_FILE_TOOL,
        handler=handler,
        permissions=frozenset({Permission.READ}),
        category=ToolCategory.FILESYSTEM,
        complexity=2,
        source="system",
        timeout=10.0,
    )


def create_write_file_tool(
    working_directory: Optional[str] = None,
    guard: Optional[PathGuard] = None,
) -> Tool:
    """Create a tool that creates or overwrites a file."""

    def handler(args: dict[str, Any]) -> ToolResult:
        content = args["content"]
        path = _guarded(args["path"], working_directory, guard)

        if not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Created directories: {path.parent}")

        existed = path.exists()
        path.write_text(content, encoding="utf-8")

        action = "Updated" if existed else "Created"
        logger.info(f"{action} file: {path} ({len(content)} chars)")
        return ToolResult.success(
            f"{action} {path} ({len(content)} characters)",
            artifacts=[str(path)],
        )

    return Tool(
        definition=WRITE_FILE_TOOL,
        handler=handler,
        permissions=frozenset({Permission.WRITE}),
        category=ToolCategory.FILESYSTEM,
        complexity=5,
        source="system",
        timeout=10.0,
    )


def create_list_files_tool(
    working_directory: Optional[str] = None,
    guard: Optional[PathGuard] = None,
) -> Tool:
    """Create a tool listing the names in a directory."""

    def handler(args: dict[str, Any]) -> ToolResult:
        path = _guarded(args["path"], working_directory, guard)
        if not path.is_dir():
            raise FileNotFoundError(f"Directory not found: {path}")

        names = sorted(entry.name for entry in path.iterdir())
        return ToolResult.success(
            f"Found {len(names)} files\n" + "\n".join(names),
            data=names,
        )

    return Tool(
        definition=LIST_FILES_TOOL,
        handler=handler,
        permissions=frozenset({Permission.READ}),
        category=ToolCategory.FILESYSTEM,
        complexity=2,
        source="system",
    )


def create_list_dir_tool(
    working_directory: Optional[str] = None,
    guard: Optional[PathGuard] = None,
    max_entries: int = 1000,
) -> Tool:
    """Create a tool listing a directory with entry type and size."""

    def handler(args: dict[str, Any]) -> ToolResult:
        path = _guarded(args["path"], working_directory, guard)
        if not path.exists():
            raise FileNotFoundError(f"Directory not found: {path}")
        if not path.is_dir():
            raise ValueError(f"Path is not a directory: {path}")

        entries = []
        for item in sorted(path.iterdir()):
            if len(entries) >= max_entries:
                break
            try:
                is_dir = item.is_dir()
                size = 0 if is_dir else item.stat().st_size
            except OSError:
                continue
            entries.append({"name": item.name, "type": "dir" if is_dir else "file", "size": size})

        lines = [f"{e['type']}: {e['name']} ({e['size']} bytes)" for e in entries]
        content = f"Found {len(entries)} entries in {path}\n" + "\n".join(lines)
        if len(entries) >= max_entries:
            content += f"\n... (truncated at {max_entries} entries)"

        return ToolResult.success(content, data=entries)

    return Tool(
        definition=LIST_DIR_TOOL,
        handler=handler,
        permissions=frozenset({Permission.READ}),
        category=ToolCategory.FILESYSTEM,
        complexity=2,
        source="system",
    )


def create_stat_tool(
    working_directory: Optional[str] = None,
    guard: Optional[PathGuard] = None,
) -> Tool:
    """Create a tool reporting size, mode and modification time."""

    def handler(args: dict[str, Any]) -> ToolResult:
        path = _guarded(args["path"], working_directory, guard)
        info = path.stat()
        mod_time = datetime.fromtimestamp(info.st_mtime, tz=timezone.utc).isoformat()
        mode = stat.filemode(info.st_mode)

        return ToolResult.success(
            f"{path.name}: size={info.st_size} mode={mode} mod={mod_time}",
            data={
                "name": path.name,
                "size": info.st_size,
                "mode": mode,
                "mod_time": mod_time,
                "is_dir": path.is_dir(),
            },
        )

    return Tool(
        definition=STAT_TOOL,
        handler=handler,
        permissions=frozenset({Permission.READ}),
        category=ToolCategory.FILESYSTEM,
        complexity=1,
        source="system",
    )


def create_grep_tool(
    working_directory: Optional[str] = None,
    guard: Optional[PathGuard] = None,
    max_results: int = 200,
    max_file_size: int = 1024 * 1024,
) -> Tool:
    """Create a tool searching file contents with a regular expression.

    Sensitive files refused by the guard are skipped rather than failing
    the whole search.
    """

    def handler(args: dict[str, Any]) -> ToolResult:
        path = _guarded(args["path"], working_directory, guard)
        recursive = args.get("recursive", True)

        try:
            regex = re.compile(args["pattern"])
        except re.error as e:
            raise ValueError(f"Invalid regex pattern: {e}")

        if path.is_file():
            files = [path]
        elif path.is_dir():
            files = _walk(path) if recursive else sorted(p for p in path.iterdir() if p.is_file())
        else:
            raise FileNotFoundError(f"Path not found: {path}")

        matches = []
        files_searched = 0
        for file in files:
            if len(matches) >= max_results:
                break
            if guard is not None and not _allowed(guard, file):
                continue
            try:
                if file.stat().st_size > max_file_size:
                    continue
                text = file.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError):
                continue
            files_searched += 1

            for number, line in enumerate(text.splitlines(), 1):
                if regex.search(line):
                    rel = file.relative_to(path) if file != path else Path(file.name)
                    matches.append({"file": str(rel), "line": number, "text": line.strip()})
                    if len(matches) >= max_results:
                        break

        lines = [f"{m['file']}:{m['line']}: {m['text']}" for m in matches]
        content = f"Found {len(matches)} matches in {files_searched} files"
        if lines:
            content += "\n" + "\n".join(lines)
        if len(matches) >= max_results:
            content += f"\n... (stopped at {max_results} matches)"

        return ToolResult.success(content, data=matches)

    return Tool(
        definition=GREP_TOOL,
        handler=handler,
        permissions=frozenset({Permission.READ}),
        category=ToolCategory.ANALYSIS,
        complexity=5,
        source="system",
        timeout=60.0,
    )


def create_traverse_tool(
    working_directory: Optional[str] = None,
    guard: Optional[PathGuard] = None,
    limit: int = TRAVERSE_LIMIT,
) -> Tool:
    """Create a tool listing the files of a source tree."""

    def handler(args: dict[str, Any]) -> ToolResult:
        root = Path(working_directory) if working_directory else Path.cwd()
        if args.get("path"):
            root = _guarded(args["path"], str(root), guard)
        if not root.is_dir():
            raise FileNotFoundError(f"Directory not found: {root}")

        results = []
        for file in _walk(root):
            results.append(str(file.relative_to(root)))
            if len(results) >= limit:
                break

        content = f"Found {len(results)} source files"
        if len(results) >= limit:
            content += f" (stopped at {limit})"
        return ToolResult.success(content + "\n" + "\n".join(results), data=results)

    return Tool(
        definition=TRAVERSE_TOOL,
        handler=handler,
        permissions=frozenset({Permission.READ}),
        category=ToolCategory.ANALYSIS,
        complexity=6,
        source="system",
        timeout=60.0,
    )


def _walk(root: Path) -> Iterator[Path]:
    """Yield files under root in sorted order, skipping noise directories."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
        for name in sorted(filenames):
            yield Path(dirpath) / name


def _allowed(guard: PathGuard, path: Path) -> bool:
    try:
        guard(str(path))
    except PolicyBlockedError:
        return False
    return True
