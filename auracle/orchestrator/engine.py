"""The orchestration loop.

``Brain.process`` runs one user turn:

1. Resolve or create the session
2. Perceive a system snapshot
3. Recall related snippets from memory
4. Render the core tool definitions
5. Compose the augmented prompt
6. Pre-check the raw request for sensitive paths
7. Generate, executing requested tools and feeding their output back
8. Record the thread and remember the reply

A model failure aborts the turn with an exception. A pre-check hit returns
an advisory response without calling the model. A tool call that needs a
human decision returns a response carrying the pending ``Intervention``;
``Brain.resume`` applies the decision and continues the same turn.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from auracle.errors import GenerationError, ModelError, PolicyBlockedError, TurnCancelledError
from auracle.orchestrator.collaborators import MemoryStore, ModelClient, SnapshotSource
from auracle.orchestrator.prompts import (
    LOOP_LIMIT_MESSAGE,
    TOOL_FAILURE_TEMPLATE,
    TOOL_OUTPUT_TEMPLATE,
    format_augmented_prompt,
    format_security_advisory,
    parse_tool_call,
)
from auracle.orchestrator.session import Session, Thread
from auracle.security.intervention import Intervention
from auracle.security.policy import PolicyEngine
from auracle.tools.executor import Pending, ToolExecutor
from auracle.tools.providers import core_tools
from auracle.tools.registry import ToolRegistry
from auracle.tools.types import ToolResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TurnState:
    """Progress of one turn, kept while it waits for an approval."""

    request_id: str
    request: str
    session: Session
    history: str
    turn: int = 0
    tool_calls: list[str] = field(default_factory=list)


@dataclass
class Response:
    """Outcome of a turn.

    Exactly one of three shapes: a final reply, an advisory (the request was
    refused before reaching the model), or a pending approval.
    """

    content: str
    request_id: str = ""
    pending: Optional[Intervention] = None
    advisory: bool = False
    state: Optional[TurnState] = field(default=None, repr=False)

    @property
    def needs_approval(self) -> bool:
        return self.pending is not None


class Brain:
    """Drives user turns through the model, the tools and the policy."""

    def __init__(
        self,
        registry: ToolRegistry,
        executor: ToolExecutor,
        policy: PolicyEngine,
        model: ModelClient,
        monitor: SnapshotSource,
        memory: MemoryStore,
        max_turns: int = 5,
        core_tool_names: Optional[list[str]] = None,
        session_id: str = "default",
    ):
        self.registry = registry
        self.executor = executor
        self.policy = policy
        self.model = model
        self.monitor = monitor
        self.memory = memory
        self.max_turns = max_turns
        self.core_tool_names = core_tool_names if core_tool_names is not None else core_tools()
        self.session_id = session_id
        self._sessions: dict[str, Session] = {}

    @property
    def sessions(self) -> dict[str, Session]:
        return dict(self._sessions)

    def get_session(self, session_id: Optional[str] = None) -> Session:
        """Return the session, creating it on first use."""
        sid = session_id or self.session_id
        session = self._sessions.get(sid)
        if session is None:
            session = Session(id=sid)
            self._sessions[sid] = session
            logger.debug(f"Created session {sid}")
        return session

    async def refresh_tools(self) -> int:
        """Re-sync the registry from its providers."""
        return await self.registry.sync()

    async def process(
        self,
        request: str,
        request_id: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
        session_id: Optional[str] = None,
    ) -> Response:
        """Run one user turn.

        Args:
            request: The raw user text.
            request_id: Thread identifier (generated when omitted).
            cancel: Setting this event aborts an in-flight model call or tool
                run; a tool subprocess is killed before the error is raised.
            session_id: Session to record the thread on.

        Raises:
            GenerationError: If the model call fails.
            TurnCancelledError: If ``cancel`` is set before the turn ends.
            SecurityError: If a requested tool call is blocked or denied.
        """
        request_id = request_id or uuid.uuid4().hex[:8]
        session = self.get_session(session_id)

        snapshot = None
        try:
            snapshot = self.monitor.get_snapshot()
        except Exception as e:
            logger.warning(f"System snapshot unavailable: {e}")
        cwd = snapshot.working_dir if snapshot is not None else os.getcwd()

        snippets = self.memory.recall(request)
        definitions = self.registry.render_definitions(self.core_tool_names)
        prompt = format_augmented_prompt(snippets, cwd, definitions, request_id, request)

        try:
            self.policy.scan_text(request)
        except PolicyBlockedError as e:
            logger.warning(f"Request {request_id} refused by pre-check: {e.message}")
            content = format_security_advisory(e.message)
            session.add_thread(
                Thread(
                    id=request_id,
                    prompt=request,
                    response=content,
                    metadata={"advisory": True},
                )
            )
            return Response(content=content, request_id=request_id, advisory=True)

        state = TurnState(request_id=request_id, request=request, session=session, history=prompt)
        return await self._run(state, cancel)

    async def resume(
        self,
        response: Response,
        choice: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> Response:
        """Apply an approval decision and continue the suspended turn.

        Raises:
            ValueError: If the response is not waiting for an approval.
            InvalidChoiceError: If the choice is not offered.
            SecurityError: If the decision denies the call.
        """
        if response.pending is None or response.state is None:
            raise ValueError("response has no pending approval")

        state = response.state
        pending = response.pending
        result = await self._until_cancelled(
            lambda: pending.resume(choice), state.request_id, cancel
        )
        self._observe(state, result)
        state.turn += 1
        return await self._run(state, cancel)

    async def _run(self, state: TurnState, cancel: Optional[asyncio.Event]) -> Response:
        while state.turn < self.max_turns:
            logger.debug(f"Turn {state.turn + 1}/{self.max_turns} for {state.request_id}")
            reply = await self._generate(state.history, state.request_id, cancel)

            call = parse_tool_call(reply)
            if call is None:
                self._finish(state, reply)
                return Response(content=reply, request_id=state.request_id)

            logger.info(f"Model requested tool {call.name}")
            state.tool_calls.append(call.name)
            outcome = await self._until_cancelled(
                lambda: self.executor.execute(call), state.request_id, cancel
            )

            if isinstance(outcome, Pending):
                logger.info(f"Tool {call.name} awaits approval")
                return Response(
                    content=reply,
                    request_id=state.request_id,
                    pending=outcome.intervention,
                    state=state,
                )

            self._observe(state, outcome.result)
            state.turn += 1

        logger.warning(f"Agent loop limit reached for {state.request_id}")
        return Response(content=LOOP_LIMIT_MESSAGE, request_id=state.request_id)

    def _observe(self, state: TurnState, result: ToolResult) -> None:
        if result.is_error:
            state.history += TOOL_FAILURE_TEMPLATE.format(error=result.content or result.error)
        else:
            state.history += TOOL_OUTPUT_TEMPLATE.format(output=result.content)
        self.memory.store(f"{state.request_id}_step_{state.turn}", result.content)

    def _finish(self, state: TurnState, reply: str) -> None:
        state.session.add_thread(
            Thread(
                id=state.request_id,
                prompt=state.request,
                response=reply,
                metadata={"turns": state.turn + 1, "tool_calls": list(state.tool_calls)},
            )
        )
        self.memory.store(state.request_id, reply)

    async def _generate(
        self,
        prompt: str,
        request_id: str,
        cancel: Optional[asyncio.Event],
    ) -> str:
        return await self._until_cancelled(lambda: self._call_model(prompt), request_id, cancel)

    async def _until_cancelled(
        self,
        start: Callable[[], Awaitable[T]],
        request_id: str,
        cancel: Optional[asyncio.Event],
    ) -> T:
        """Run ``start()`` unless ``cancel`` is set before it finishes.

        On cancel the work is cancelled and awaited before raising, so a
        tool subprocess has been killed by the time the caller sees
        ``TurnCancelledError``.
        """
        if cancel is None:
            return await start()
        if cancel.is_set():
            raise TurnCancelledError(request_id)

        work = asyncio.ensure_future(start())
        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({work, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await _stop(work)
            raise
        finally:
            cancelled.cancel()

        if not work.done():
            await _stop(work)
            logger.info(f"Turn {request_id} cancelled")
            raise TurnCancelledError(request_id)
        return work.result()

    async def _call_model(self, prompt: str) -> str:
        try:
            return await self.model.generate(prompt)
        except ModelError:
            raise
        except Exception as e:
            raise GenerationError(self.model.model_id, str(e)) from e


async def _stop(task: asyncio.Future) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
