"""Permission policy for tool execution.

The policy engine compares the permissions a tool declares against the
global allow and deny sets and decides whether the call is permitted,
rejected, or must be escalated to an approval hook. It never runs the
tool itself.

Evaluation is conjunctive for allow (every permission must be allowed)
and disjunctive for deny (any denied permission blocks the call).
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Callable, Iterable, Optional, Union

from auracle.errors import (
    ApprovalDeniedError,
    EscalationError,
    PolicyBlockedError,
    SecurityError,
)
from auracle.security.intervention import Intervention
from auracle.tools.registry import Tool
from auracle.tools.types import Permission

logger = logging.getLogger(__name__)

# File name fragments that mark credentials and secrets
SENSITIVE_MARKERS = (".env", ".key", "id_rsa", "credentials", "id_ed25519")

_LEADING_PUNCT = "\"'`([<{"
_TRAILING_PUNCT = "\"'`)]>},;:!?"

# An escalation hook approves (True), denies (False) or suspends the call
EscalationResult = Union[bool, Intervention]
EscalationHook = Callable[[Tool, dict[str, Any]], EscalationResult]


class PolicyEngine:
    """Evaluates tool calls against allow and deny rules.

    Example:
        >>> policy = PolicyEngine()
        >>> policy.set_policy(Permission.WRITE, True)
        >>> policy.validate(write_tool, {"path": "notes.txt"})  # None = approved
    """

    def __init__(
        self,
        allowed: Optional[Iterable[Permission]] = None,
        denied: Optional[Iterable[Permission]] = None,
        allow_sensitive: bool = False,
        escalation_hook: Optional[EscalationHook] = None,
        sensitive_markers: Iterable[str] = SENSITIVE_MARKERS,
    ):
        self._allowed: set[Permission] = (
            set(allowed) if allowed is not None else {Permission.READ}
        )
        self._denied: set[Permission] = set(denied or ())
        self._allowed -= self._denied
        self._allow_sensitive = allow_sensitive
        self._hook = escalation_hook
        self._markers = tuple(m.lower() for m in sensitive_markers)
        self._lock = threading.Lock()

    @property
    def allowed_permissions(self) -> frozenset[Permission]:
        with self._lock:
            return frozenset(self._allowed)

    @property
    def denied_permissions(self) -> frozenset[Permission]:
        with self._lock:
            return frozenset(self._denied)

    @property
    def allow_sensitive(self) -> bool:
        with self._lock:
            return self._allow_sensitive

    @property
    def has_escalation_hook(self) -> bool:
        with self._lock:
            return self._hook is not None

    def set_policy(self, permission: Permission, allowed: bool) -> None:
        """Move a permission into the allow set or the deny set."""
        permission = Permission(permission)
        with self._lock:
            if allowed:
                self._allowed.add(permission)
                self._denied.discard(permission)
            else:
                self._denied.add(permission)
                self._allowed.discard(permission)
        logger.info(f"Permission '{permission.value}' is now {'allowed' if allowed else 'denied'}")

    def set_allow_sensitive(self, allow: bool) -> None:
        """Allow or block access to sensitive files and permissions."""
        with self._lock:
            self._allow_sensitive = allow

    def set_escalation_hook(self, hook: Optional[EscalationHook]) -> None:
        """Install the hook consulted when a call needs escalation."""
        with self._lock:
            self._hook = hook

    def validate(self, tool: Tool, args: dict[str, Any]) -> Optional[Intervention]:
        """Check whether a tool call may run.

        Args:
            tool: The tool about to be executed.
            args: Arguments of the call.

        Returns:
            None when the call is approved, or an Intervention the caller
            must resolve before the call can run.

        Raises:
            PolicyBlockedError: A permission is denied or sensitive access
                is disabled.
            ApprovalDeniedError: The escalation path refused the call, or
                no escalation path exists.
            EscalationError: The escalation hook failed unexpectedly.
        """
        with self._lock:
            allowed = frozenset(self._allowed)
            denied = frozenset(self._denied)
            allow_sensitive = self._allow_sensitive
            hook = self._hook

        permissions = sorted(tool.permissions, key=lambda p: p.value)

        # Deny wins over allow
        for permission in permissions:
            if permission in denied:
                logger.info(f"Blocked {tool.name}: permission '{permission.value}' is denied")
                raise PolicyBlockedError(
                    f"permission '{permission.value}' is explicitly denied",
                    permission=permission.value,
                )

        if Permission.SENSITIVE in tool.permissions and not allow_sensitive:
            logger.info(f"Blocked {tool.name}: sensitive access is disabled")
            raise PolicyBlockedError(
                "sensitive data access is disabled",
                permission=Permission.SENSITIVE.value,
            )

        needs_escalation = [p for p in permissions if p not in allowed]
        if not needs_escalation:
            return None

        missing = ", ".join(p.value for p in needs_escalation)

        if hook is None:
            logger.warning(f"No approval path for {tool.name} (requires {missing}); refusing")
            raise ApprovalDeniedError(
                f"{tool.name} requires manual authorization for: {missing}",
                source="policy",
            )

        logger.debug(f"Escalating {tool.name} (requires {missing})")
        try:
            decision = hook(tool, args)
        except SecurityError:
            raise
        except Exception as e:
            logger.error(f"Escalation hook failed for {tool.name}: {e}")
            raise EscalationError(tool.name, str(e)) from e

        if isinstance(decision, Intervention):
            return decision
        if decision is True:
            return None
        if decision is False:
            raise ApprovalDeniedError(f"{tool.name} was declined", source="user")

        logger.error(f"Escalation hook returned {type(decision).__name__} for {tool.name}")
        raise EscalationError(tool.name, f"unexpected hook result: {decision!r}")

    def check_path(self, path: Union[str, os.PathLike]) -> None:
        """Reject paths whose name marks them as sensitive.

        Raises:
            PolicyBlockedError: If the file name matches a sensitive marker
                and sensitive access is disabled.
        """
        with self._lock:
            if self._allow_sensitive:
                return

        base = os.path.basename(os.fspath(path).rstrip("/")).lower()
        for marker in self._markers:
            if marker in base:
                raise PolicyBlockedError(
                    f"access to '{base}' is blocked",
                    permission=Permission.SENSITIVE.value,
                )

    def scan_text(self, text: str) -> None:
        """Run ``check_path`` on every path-like token of free text.

        Raises:
            PolicyBlockedError: On the first sensitive path found.
        """
        for token in text.split():
            token = token.lstrip(_LEADING_PUNCT).rstrip(_TRAILING_PUNCT).rstrip(".")
            if not token:
                continue
            if "/" in token or "." in token or token.startswith("~"):
                self.check_path(token)
