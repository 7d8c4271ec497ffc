"""External collaborators of the orchestration loop.

The loop depends on three narrow interfaces: a language model that turns a
prompt into text, a source of system snapshots, and a memory store for
recall. Each has a default implementation here.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Optional

import psutil

from auracle.errors import GenerationError, ModelUnavailableError

logger = logging.getLogger(__name__)

OLLAMA_BASE_URL = "http://localhost:11434/v1"


# =============================================================================
# Model
# =============================================================================


class ModelClient(ABC):
    """Turns a prompt into generated text."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier of the model in use."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate a completion for the prompt.

        Raises:
            GenerationError: If the model call fails.
        """


class OpenAIModelClient(ModelClient):
    """Client for OpenAI and OpenAI-compatible endpoints such as Ollama."""

    def __init__(
        self,
        model_id: str = "gpt-4o",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        provider: str = "openai",
        max_tokens: int = 4096,
        temperature: float = 0.2,
        timeout: float = 120.0,
    ):
        self._model_id = model_id
        self.provider = provider
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

        if provider == "ollama":
            self.base_url = base_url or OLLAMA_BASE_URL
            # Ollama ignores the key but the client requires one
            self.api_key = self.api_key or "ollama"

        self._client = None

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def is_available(self) -> bool:
        return self.api_key is not None

    def _get_client(self) -> Any:
        """Get or create the OpenAI client."""
        if self._client is None:
            import openai

            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def generate(self, prompt: str) -> str:
        if not self.is_available:
            raise ModelUnavailableError(self.model_id, "OpenAI API key not configured")

        import openai

        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model_id,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.OpenAIError as e:
            raise GenerationError(self.model_id, str(e)) from e

        if not response.choices:
            raise GenerationError(self.model_id, "empty response")
        return response.choices[0].message.content or ""


# =============================================================================
# System snapshot
# =============================================================================


@dataclass
class Snapshot:
    """Resource usage and location of the running process."""

    cpu_percent: float
    mem_percent: float
    working_dir: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SnapshotSource(ABC):
    @abstractmethod
    def get_snapshot(self) -> Snapshot:
        """Capture the current system state."""


class SystemMonitor(SnapshotSource):
    """Snapshot source backed by psutil."""

    def __init__(self, working_dir: Optional[str] = None):
        self._working_dir = working_dir
        # The first non-blocking reading is always 0.0; prime it
        psutil.cpu_percent(interval=None)

    def get_snapshot(self) -> Snapshot:
        return Snapshot(
            cpu_percent=psutil.cpu_percent(interval=None),
            mem_percent=psutil.virtual_memory().percent,
            working_dir=self._working_dir or os.getcwd(),
        )


# =============================================================================
# Memory
# =============================================================================


class MemoryStore(ABC):
    @abstractmethod
    def recall(self, query: str) -> list[str]:
        """Return stored snippets relevant to the query."""

    @abstractmethod
    def store(self, key: str, text: str) -> None:
        """Remember a piece of text under a key."""


_WORD = re.compile(r"\w+")


def _words(text: str) -> set[str]:
    return {w.lower() for w in _WORD.findall(text) if len(w) > 2}


class WindowMemory(MemoryStore):
    """Rolling in-memory window ranked by word overlap.

    Storing an existing key refreshes it; once the window is full the least
    recently stored entry is dropped.
    """

    def __init__(self, max_items: int = 50, max_results: int = 5):
        self.max_items = max_items
        self.max_results = max_results
        self._items: OrderedDict[str, str] = OrderedDict()

    def store(self, key: str, text: str) -> None:
        if not text:
            return
        self._items[key] = text
        self._items.move_to_end(key)
        while len(self._items) > self.max_items:
            dropped, _ = self._items.popitem(last=False)
            logger.debug(f"Memory window dropped '{dropped}'")

    def recall(self, query: str) -> list[str]:
        wanted = _words(query)
        if not wanted:
            return []

        scored = []
        # Newest first so ties favour recent entries
        for position, (key, text) in enumerate(reversed(self._items.items())):
            overlap = len(wanted & _words(text))
            if overlap:
                scored.append((-overlap, position, text))

        scored.sort()
        return [text for _, _, text in scored[: self.max_results]]

    def __len__(self) -> int:
        return len(self._items)
