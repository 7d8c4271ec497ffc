"""Session and thread bookkeeping for the orchestration loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Thread:
    """One completed request/response exchange."""

    id: str
    prompt: str
    response: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "response": self.response,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Session:
    """A conversation made of threads, kept in memory for the process lifetime."""

    id: str
    threads: list[Thread] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def add_thread(self, thread: Thread) -> None:
        self.threads.append(thread)
        self.updated_at = _now()

    def export(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "threads": [t.to_dict() for t in self.threads],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
