"""Authorization for tool calls.

``PolicyEngine`` decides from declared permissions; ``Enclave`` resolves
escalations through session state, the persisted ``ApprovalLedger`` or a
human ``Intervention``; ``AuditLog`` records every decision.
"""

from auracle.security.audit import AuditEntry, AuditLog
from auracle.security.enclave import Enclave
from auracle.security.intervention import CHOICES, ApprovalRequest, Intervention
from auracle.security.ledger import ApprovalLedger, ApprovalRecord, Decision
from auracle.security.policy import SENSITIVE_MARKERS, PolicyEngine
from auracle.security.risk import (
    RiskLevel,
    Scope,
    command_risk,
    normalize_command_key,
    permission_risk,
    request_key,
    resolve_scope,
)

__all__ = [
    "ApprovalLedger",
    "ApprovalRecord",
    "ApprovalRequest",
    "AuditEntry",
    "AuditLog",
    "CHOICES",
    "Decision",
    "Enclave",
    "Intervention",
    "PolicyEngine",
    "RiskLevel",
    "SENSITIVE_MARKERS",
    "Scope",
    "command_risk",
    "normalize_command_key",
    "permission_risk",
    "request_key",
    "resolve_scope",
]
