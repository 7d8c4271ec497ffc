"""Append-only audit trail of authorization decisions."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

# Decision labels
BLOCKED = "Blocked"
DENIED_SESSION = "Denied (Session)"
APPROVED_SESSION = "Approved (Session)"
APPROVED_PERSISTED = "Approved (Persisted)"
DENIED_PERSISTED = "Denied (Persisted)"
APPROVED_ONCE = "Approved (Once)"
APPROVED_FOREVER = "Approved (Forever)"
DENIED_USER = "Denied (User)"
DENIED_LEDGER_ERROR = "Denied (Ledger Error)"


@dataclass(frozen=True)
class AuditEntry:
    timestamp: str
    tool: str
    args: str
    risk: str
    decision: str
    scope: str


class AuditLog:
    """Writes one JSON line per decision to a file readable only by its owner.

    A write failure is logged and swallowed so the trail never blocks
    execution.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def log(
        self,
        tool_name: str,
        args: str,
        risk: str,
        decision: str,
        scope: str,
    ) -> None:
        """Append an entry.

        Args:
            tool_name: Name of the tool.
            args: Canonical encoding of the call arguments.
            risk: Risk tier label.
            decision: Decision label such as ``Approved (Once)``.
            scope: ``local`` or ``system``.
        """
        entry = AuditEntry(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            tool=tool_name,
            args=args,
            risk=str(getattr(risk, "value", risk)),
            decision=decision,
            scope=str(getattr(scope, "value", scope)),
        )
        line = json.dumps(asdict(entry), ensure_ascii=False) + "\n"

        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd = os.open(self.path, os.O_APPEND | os.O_CREAT | os.O_WRONLY, 0o600)
                with os.fdopen(fd, "a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                logger.error(f"Failed to write audit entry to {self.path}: {e}")
                return

        logger.debug(f"Audit: {tool_name} -> {decision}")

    def read_entries(self, limit: Optional[int] = None) -> list[AuditEntry]:
        """Read entries back, oldest first; ``limit`` keeps the newest N.

        Lines that cannot be decoded are skipped with a warning.
        """
        if not self.path.exists():
            return []

        entries = []
        with self._lock:
            lines = self.path.read_text(encoding="utf-8").splitlines()

        for number, line in enumerate(lines, 1):
            if not line.strip():
                continue
            try:
                data: dict[str, Any] = json.loads(line)
                entries.append(AuditEntry(**data))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed audit line {number}: {e}")

        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries
