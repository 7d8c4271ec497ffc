"""Orchestration loop for Auracle."""

from auracle.orchestrator.collaborators import (
    MemoryStore,
    ModelClient,
    OpenAIModelClient,
    Snapshot,
    SnapshotSource,
    SystemMonitor,
    WindowMemory,
)
from auracle.orchestrator.engine import Brain, Response, TurnState
from auracle.orchestrator.prompts import format_augmented_prompt, parse_tool_call
from auracle.orchestrator.session import Session, Thread

__all__ = [
    "Brain",
    "MemoryStore",
    "ModelClient",
    "OpenAIModelClient",
    "Response",
    "Session",
    "Snapshot",
    "SnapshotSource",
    "SystemMonitor",
    "Thread",
    "TurnState",
    "WindowMemory",
    "format_augmented_prompt",
    "parse_tool_call",
]
