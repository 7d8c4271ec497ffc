"""Three-tier approval lifecycle for escalated tool calls.

The enclave is installed as the policy engine's escalation hook. For each
call it applies the hard-block rules, then session decisions, then the
persisted ledger, and only when none of those decide it returns an
``Intervention`` offering Approve Once, Approve Session, Approve Forever,
or Deny. Every terminal outcome writes exactly one audit entry.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

from auracle.errors import ApprovalDeniedError, CommandBlockedError, LedgerError
from auracle.security import audit
from auracle.security.audit import AuditLog
from auracle.security.intervention import (
    APPROVE_FOREVER,
    APPROVE_ONCE,
    APPROVE_SESSION,
    ApprovalRequest,
    Intervention,
)
from auracle.security.ledger import ApprovalLedger, Decision
from auracle.security.policy import PolicyEngine
from auracle.security.risk import (
    RiskLevel,
    call_risk,
    canonical_json,
    request_key,
    resolve_scope,
    summarize,
)
from auracle.tools.registry import Tool
from auracle.tools.runner import run_tool
from auracle.tools.types import ToolResult

logger = logging.getLogger(__name__)

SUGGESTIONS = {
    RiskLevel.LOW: "Read-only action. Approve Session if you expect to repeat it.",
    RiskLevel.MEDIUM: "Contacts the network. Check the destination before approving.",
    RiskLevel.HIGH: "May modify files or run programs. Approve Once unless you trust it fully.",
}


class Enclave:
    """Owns the approval ledger, the audit log and per-session decisions.

    Args:
        data_dir: Application data directory; files live under
            ``<data_dir>/enclave``.
        cwd: Working directory used for scope labels (default: process cwd).
        home: Home directory used for scope labels (default: user's home).
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        cwd: Optional[str] = None,
        home: Optional[str] = None,
    ):
        enclave_dir = Path(data_dir).expanduser() / "enclave"
        enclave_dir.mkdir(parents=True, exist_ok=True)

        self.ledger = ApprovalLedger(enclave_dir / "approvals.json")
        self.audit = AuditLog(enclave_dir / "audit.log")
        self._cwd = cwd
        self._home = home
        self._session_allow: set[str] = set()
        self._session_deny: set[str] = set()
        self._lock = threading.RLock()

    def install(self, policy: PolicyEngine) -> None:
        """Register this enclave as the policy's escalation hook."""
        policy.set_escalation_hook(self.interceptor)

    def approve_session(self, key: str) -> None:
        """Allow a request key for the rest of this process."""
        with self._lock:
            self._session_allow.add(key)
            self._session_deny.discard(key)

    def deny_session(self, key: str) -> None:
        """Deny a request key for the rest of this process."""
        with self._lock:
            self._session_deny.add(key)
            self._session_allow.discard(key)

    def approve_forever(self, key: str) -> None:
        """Persist an allow decision.

        Raises:
            LedgerError: If the ledger cannot be written.
        """
        self.ledger.set(key, Decision.ALLOW)

    def deny_forever(self, key: str) -> None:
        """Persist a deny decision."""
        self.ledger.set(key, Decision.DENY)

    def build_request(self, tool: Tool, args: dict[str, Any]) -> ApprovalRequest:
        """Describe a call for a human: key, summary, risk and scope."""
        risk = call_risk(tool, args)
        summary, preview = summarize(tool, args)
        return ApprovalRequest(
            key=request_key(tool, args),
            tool_name=tool.name,
            summary=summary,
            risk=risk,
            scope=resolve_scope(args, cwd=self._cwd, home=self._home),
            args_preview=preview,
            suggestion=SUGGESTIONS.get(risk, ""),
        )

    def interceptor(self, tool: Tool, args: dict[str, Any]) -> Union[bool, Intervention]:
        """Decide an escalated call automatically, or suspend it.

        Returns:
            True if session state or the ledger approves the call, otherwise
            an Intervention for the caller to resolve.

        Raises:
            CommandBlockedError: The command matches a hard-block pattern.
                This check runs before any session or ledger lookup.
            ApprovalDeniedError: Session state or the ledger denies the call.
        """
        request = self.build_request(tool, args)
        snapshot = canonical_json(args)
        key = request.key

        with self._lock:
            if request.risk == RiskLevel.BLOCKED:
                self._record(request, snapshot, audit.BLOCKED)
                logger.warning(f"Blocked action: {request.summary}")
                raise CommandBlockedError(request.args_preview, "blocked action")

            if key in self._session_deny:
                self._record(request, snapshot, audit.DENIED_SESSION)
                raise ApprovalDeniedError(request.summary, source="session")

            if key in self._session_allow:
                self._record(request, snapshot, audit.APPROVED_SESSION)
                return True

            record = self.ledger.get(key)
            if record is not None:
                if record.decision == Decision.ALLOW:
                    self._record(request, snapshot, audit.APPROVED_PERSISTED)
                    return True
                self._record(request, snapshot, audit.DENIED_PERSISTED)
                raise ApprovalDeniedError(request.summary, source="ledger")

        async def resolve(choice: str) -> ToolResult:
            return await self._resume(tool, args, request, snapshot, choice)

        return Intervention(
            title=f"Allow action? {request.summary}",
            request=request,
            resolver=resolve,
        )

    async def _resume(
        self,
        tool: Tool,
        args: dict[str, Any],
        request: ApprovalRequest,
        snapshot: str,
        choice: str,
    ) -> ToolResult:
        key = request.key

        if choice == APPROVE_FOREVER:
            # The ledger write fsyncs; keep it off the event loop
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, self.approve_forever, key)
            except LedgerError:
                self._record(request, snapshot, audit.DENIED_LEDGER_ERROR)
                raise
            self._record(request, snapshot, audit.APPROVED_FOREVER)
        else:
            with self._lock:
                if choice == APPROVE_ONCE:
                    self._record(request, snapshot, audit.APPROVED_ONCE)
                elif choice == APPROVE_SESSION:
                    self.approve_session(key)
                    self._record(request, snapshot, audit.APPROVED_SESSION)
                else:
                    self._record(request, snapshot, audit.DENIED_USER)
                    raise ApprovalDeniedError(request.summary, source="user")

        logger.info(f"{choice}: {request.summary}")
        return await run_tool(tool, args)

    def _record(self, request: ApprovalRequest, snapshot: str, decision: str) -> None:
        self.audit.log(
            request.tool_name,
            snapshot,
            request.risk.value,
            decision,
            request.scope.value,
        )

    @property
    def session_approvals(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._session_allow)

    @property
    def session_denials(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._session_deny)

