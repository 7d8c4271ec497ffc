"""Pending approvals that the caller renders and later resumes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from auracle.errors import InterventionConsumedError, InvalidChoiceError
from auracle.security.risk import RiskLevel, Scope
from auracle.tools.types import ToolResult

logger = logging.getLogger(__name__)

APPROVE_ONCE = "Approve Once"
APPROVE_SESSION = "Approve Session"
APPROVE_FOREVER = "Approve Forever"
DENY = "Deny"

CHOICES = (APPROVE_ONCE, APPROVE_SESSION, APPROVE_FOREVER, DENY)

Resolver = Callable[[str], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ApprovalRequest:
    """What needs approval, described for a human."""

    key: str
    tool_name: str
    summary: str
    risk: RiskLevel
    scope: Scope
    args_preview: str
    suggestion: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "key": self.key,
            "tool_name": self.tool_name,
            "summary": self.summary,
            "risk": self.risk.value,
            "scope": self.scope.value,
            "args_preview": self.args_preview,
            "suggestion": self.suggestion,
        }


class Intervention:
    """A suspended tool call awaiting a human decision.

    The token offers a fixed, ordered set of choices and can be resumed
    exactly once. Resuming with a choice that was not offered fails without
    consuming the token.

    Example:
        >>> outcome = await executor.execute(call)
        >>> if isinstance(outcome, Pending):
        ...     result = await outcome.intervention.resume("Approve Once")
    """

    def __init__(
        self,
        title: str,
        request: ApprovalRequest,
        resolver: Resolver,
        choices: Sequence[str] = CHOICES,
    ):
        self.title = title
        self.request = request
        self.choices: tuple[str, ...] = tuple(choices)
        self._resolver = resolver
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    async def resume(self, choice: str) -> ToolResult:
        """Resolve the pending call with one of the offered choices.

        Raises:
            InvalidChoiceError: If ``choice`` is not one of ``choices``.
            InterventionConsumedError: If the token was already resumed.
            SecurityError: If the choice denies the call.
        """
        if choice not in self.choices:
            raise InvalidChoiceError(choice, list(self.choices))
        if self._consumed:
            raise InterventionConsumedError(self.title)
        self._consumed = True

        logger.debug(f"Resuming '{self.title}' with '{choice}'")
        return await self._resolver(choice)

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else "pending"
        return f"Intervention({self.title!r}, {state})"
