"""Durable approval decisions keyed by request key.

The ledger is a single JSON object mapping request key to
``{decision, updated_at, count}``. It is read once at construction and
rewritten wholesale on every change. Only one process may own the file at
a time; concurrent writers from separate processes are not supported.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from auracle.errors import LedgerError

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class ApprovalRecord:
    """A persisted decision for one request key."""

    decision: Decision
    updated_at: str
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision": self.decision.value,
            "updated_at": self.updated_at,
            "count": self.count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ApprovalRecord":
        return cls(
            decision=Decision(data["decision"]),
            updated_at=str(data.get("updated_at", "")),
            count=int(data.get("count", 0)),
        )


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ApprovalLedger:
    """File-backed map of request key to approval record."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._records: dict[str, ApprovalRecord] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        """Read the backing file; a missing or unreadable file starts empty."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Could not read approval ledger {self.path}: {e}; starting empty")
            return

        if not raw.strip():
            return

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("top-level value is not an object")
            records = {key: ApprovalRecord.from_dict(value) for key, value in data.items()}
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Approval ledger {self.path} is corrupt ({e}); starting empty")
            return

        self._records = records
        logger.debug(f"Loaded {len(records)} approvals from {self.path}")

    def _save(self) -> None:
        """Rewrite the backing file atomically. Caller holds the lock."""
        payload = json.dumps(
            {key: record.to_dict() for key, record in self._records.items()},
            indent=2,
        )
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".approvals-", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error(f"Failed to write approval ledger {self.path}: {e}")
            raise LedgerError(str(self.path), str(e)) from e

    def get(self, key: str) -> Optional[ApprovalRecord]:
        with self._lock:
            return self._records.get(key)

    def set(self, key: str, decision: Decision) -> ApprovalRecord:
        """Record a decision and persist the whole ledger.

        Raises:
            LedgerError: If the file cannot be written. The in-memory
                state is rolled back so memory and disk agree.
        """
        decision = Decision(decision)
        with self._lock:
            previous = self._records.get(key)
            record = ApprovalRecord(
                decision=decision,
                updated_at=_now_rfc3339(),
                count=(previous.count if previous else 0) + 1,
            )
            self._records[key] = record
            try:
                self._save()
            except LedgerError:
                if previous is None:
                    del self._records[key]
                else:
                    self._records[key] = previous
                raise

        logger.info(f"Persisted '{decision.value}' for {key!r}")
        return record

    def revoke(self, key: str) -> bool:
        """Remove a persisted decision.

        Returns:
            True if the key existed.
        """
        with self._lock:
            previous = self._records.pop(key, None)
            if previous is None:
                return False
            try:
                self._save()
            except LedgerError:
                self._records[key] = previous
                raise

        logger.info(f"Revoked approval for {key!r}")
        return True

    def items(self) -> list[tuple[str, ApprovalRecord]]:
        with self._lock:
            return list(self._records.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._records
