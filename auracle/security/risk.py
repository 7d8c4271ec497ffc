"""Risk classification, request keys, and scope labels for tool calls.

Classification is pattern based. It catches the obvious catastrophic
commands and does not try to understand what a command line means.
"""

from __future__ import annotations

import json
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from auracle.tools.registry import Tool
from auracle.tools.types import Permission


class RiskLevel(str, Enum):
    """Risk tier of a tool call, ordered by severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    BLOCKED = "blocked"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.BLOCKED: 3,
}


class Scope(str, Enum):
    """Coarse target of a call, recorded for audit context."""

    LOCAL = "local"
    SYSTEM = "system"


PERMISSION_RISK = {
    Permission.READ: RiskLevel.LOW,
    Permission.NETWORK: RiskLevel.MEDIUM,
    Permission.WRITE: RiskLevel.HIGH,
    Permission.EXECUTE: RiskLevel.HIGH,
    Permission.SENSITIVE: RiskLevel.HIGH,
}

# Commands blocked regardless of arguments
BLOCKED_COMMANDS = frozenset(
    {"mkfs", "mkfs.ext4", "mkfs.xfs", "dd", "shutdown", "reboot", "poweroff"}
)

SHELL_INTERPRETERS = frozenset({"sh", "bash", "zsh"})

PIPE_TO_SHELL_PATTERNS = ("| sh", "|bash")

BLOCK_DEVICE_PATTERN = re.compile(r"^/dev/(sd|nvme|mmcblk|loop)")

PRIVILEGED_PREFIXES = (
    "/etc",
    "/usr",
    "/var",
    "/bin",
    "/sbin",
    "/boot",
    "/dev",
    "/proc",
    "/sys",
    "/lib",
    "/opt",
)

# Absolute or home-relative paths inside free text, optionally after "--flag="
_PATH_PATTERN = re.compile(r"(?:^|(?<=[\s=]))(~?/[^\s'\"`;|<>()]*)")

# Separator for command key parts; cannot appear in a real argv element
KEY_SEPARATOR = "\x00"

ARGS_PREVIEW_LIMIT = 180


def permission_risk(permissions: Iterable[Permission]) -> RiskLevel:
    """Compute the risk tier of a permission set; the most severe wins."""
    risk = RiskLevel.LOW
    for permission in permissions:
        candidate = PERMISSION_RISK.get(Permission(permission), RiskLevel.HIGH)
        if candidate.severity > risk.severity:
            risk = candidate
    return risk


def command_risk(command: str, args: Iterable[str]) -> RiskLevel:
    """Classify a command line as blocked or not.

    Returns:
        ``RiskLevel.BLOCKED`` when the command matches a hard-block pattern,
        otherwise ``RiskLevel.LOW`` (the call still goes through normal
        permission and approval checks).
    """
    cmd = command.strip().lower()
    argv = [str(a).strip() for a in args]

    if cmd in BLOCKED_COMMANDS:
        return RiskLevel.BLOCKED

    # Arbitrary string execution
    if cmd in SHELL_INTERPRETERS and "-c" in argv:
        return RiskLevel.BLOCKED

    joined = " ".join(str(a) for a in args).lower()
    if any(pattern in joined for pattern in PIPE_TO_SHELL_PATTERNS):
        return RiskLevel.BLOCKED

    if cmd == "rm" and ("-rf" in argv or "-fr" in argv) and "/" in argv:
        return RiskLevel.BLOCKED

    if any(BLOCK_DEVICE_PATTERN.match(a) for a in argv):
        return RiskLevel.BLOCKED

    return RiskLevel.LOW


def command_parts(args: dict[str, Any]) -> tuple[str, list[str]]:
    """Extract ``command`` and ``args`` from a shell-style argument dict."""
    command = args.get("command") or ""
    argv = args.get("args") or []
    if isinstance(argv, str):
        argv = [argv]
    return str(command), [str(a) for a in argv]


def normalize_command_key(command: str, args: Iterable[str]) -> str:
    """Build the order-preserving key of a command line.

    The command is lowercased and trimmed; each argument is trimmed.
    """
    parts = [command.strip().lower()]
    parts.extend(str(a).strip() for a in args)
    return KEY_SEPARATOR.join(parts)


def canonical_json(args: Any) -> str:
    """Encode arguments with sorted keys and no insignificant whitespace."""
    if args is None or args == {}:
        return "{}"
    return json.dumps(args, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def request_key(tool: Tool, args: dict[str, Any]) -> str:
    """Stable key identifying a call for session and ledger lookups."""
    if tool.executes_commands:
        command, argv = command_parts(args)
        return f"{tool.name}:{normalize_command_key(command, argv)}"
    return f"{tool.name}:{canonical_json(args)}"


def call_risk(tool: Tool, args: dict[str, Any]) -> RiskLevel:
    """Risk tier of a call: the permission tier, overridden by a block."""
    risk = permission_risk(tool.permissions)
    if tool.executes_commands:
        command, argv = command_parts(args)
        if command_risk(command, argv) == RiskLevel.BLOCKED:
            return RiskLevel.BLOCKED
    return risk


def summarize(tool: Tool, args: dict[str, Any]) -> tuple[str, str]:
    """Return a human-readable summary and a short argument preview."""
    if tool.executes_commands:
        command, argv = command_parts(args)
        cmdline = " ".join([command, *argv]).strip()
        return f"exec: {cmdline}", cmdline

    preview = canonical_json(args)
    if len(preview) > ARGS_PREVIEW_LIMIT:
        preview = preview[:ARGS_PREVIEW_LIMIT] + "..."
    return tool.name, preview


def iter_strings(value: Any) -> Iterator[str]:
    """Yield every string nested anywhere inside a JSON-like value."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from iter_strings(key)
            yield from iter_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_strings(item)


def find_paths(text: str) -> list[str]:
    """Find absolute and home-relative path tokens in free text."""
    return _PATH_PATTERN.findall(text)


def _is_under(path: str, base: str) -> bool:
    base = base.rstrip("/")
    if not base:
        return False
    return path == base or path.startswith(base + "/")


def resolve_scope(
    args: Any,
    cwd: Optional[str] = None,
    home: Optional[str] = None,
) -> Scope:
    """Label a call as touching the local workspace or the wider system.

    Any path under a privileged prefix makes the call ``system``. Other
    absolute paths are ``local`` only when under the working directory or
    the user's home; anything else falls back to ``system``.
    """
    cwd = cwd or os.getcwd()
    home = home or str(Path.home())

    paths = []
    for text in iter_strings(args):
        for token in find_paths(text):
            if token.startswith("~"):
                token = home + token[1:]
            paths.append(os.path.normpath(token))

    if not paths:
        return Scope.LOCAL

    for path in paths:
        if any(_is_under(path, prefix) for prefix in PRIVILEGED_PREFIXES):
            return Scope.SYSTEM

    for path in paths:
        if not (_is_under(path, cwd) or _is_under(path, home)):
            return Scope.SYSTEM

    return Scope.LOCAL
