"""Centralized exception hierarchy for Auracle.

This module defines all custom exceptions used throughout Auracle,
organized in a hierarchy for easy handling and specificity. Security
failures (blocked, denied, infrastructure) are always raised; execution
failures of a tool are captured into its ``ToolResult`` instead.
"""

from __future__ import annotations

from typing import Any, Optional


class AuracleError(Exception):
    """Base exception for all Auracle errors.

    Attributes:
        message: Human-readable error message.
        code: Optional error code for programmatic handling.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(AuracleError):
    """Raised when there's a configuration problem."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for '{field}': {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value)[:100], "reason": reason},
        )


# =============================================================================
# Model Errors
# =============================================================================

class ModelError(AuracleError):
    """Base exception for model collaborator errors."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if model:
            details["model"] = model
        super().__init__(message, code, details)


class ModelUnavailableError(ModelError):
    """Raised when no model is configured or reachable."""

    def __init__(self, model: str, reason: Optional[str] = None):
        message = f"Model {model} is not available"
        if reason:
            message += f": {reason}"
        super().__init__(message, model, "MODEL_UNAVAILABLE")


class GenerationError(ModelError):
    """Raised when response generation fails."""

    def __init__(self, model: str, reason: str):
        super().__init__(
            message=f"Generation failed for {model}: {reason}",
            model=model,
            code="GENERATION_ERROR",
        )


# =============================================================================
# Tool Errors
# =============================================================================

class ToolError(AuracleError):
    """Base exception for tool-related errors."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if tool_name:
            details["tool_name"] = tool_name
        super().__init__(message, code, details)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Raised when a requested tool is not found."""

    def __init__(self, tool_name: str):
        super().__init__(
            message=f"Tool '{tool_name}' not found",
            tool_name=tool_name,
            code="TOOL_NOT_FOUND",
        )


class ToolValidationError(ToolError):
    """Raised when tool arguments fail validation."""

    def __init__(
        self,
        tool_name: str,
        parameter: str,
        reason: str,
    ):
        super().__init__(
            message=f"Invalid argument '{parameter}' for tool '{tool_name}': {reason}",
            tool_name=tool_name,
            code="TOOL_VALIDATION_ERROR",
            details={"parameter": parameter, "reason": reason},
        )


class ToolTimeoutError(ToolError):
    """Raised when tool execution times out."""

    def __init__(self, tool_name: str, timeout: float):
        super().__init__(
            message=f"Tool '{tool_name}' timed out after {timeout}s",
            tool_name=tool_name,
            code="TOOL_TIMEOUT",
            details={"timeout_seconds": timeout},
        )
        self.timeout = timeout


class ProviderError(ToolError):
    """Raised when a tool provider fails to enumerate its tools."""

    def __init__(self, provider: str, reason: str):
        super().__init__(
            message=f"Provider '{provider}' failed: {reason}",
            code="PROVIDER_ERROR",
            details={"provider": provider, "reason": reason},
        )
        self.provider = provider


# =============================================================================
# Protocol Errors
# =============================================================================

class ProtocolError(AuracleError):
    """Raised when a remote tool server misbehaves or reports an error."""

    def __init__(
        self,
        server: str,
        reason: str,
        remote_error: Any = None,
    ):
        details: dict[str, Any] = {"server": server, "reason": reason}
        if remote_error is not None:
            details["remote_error"] = remote_error
        super().__init__(
            message=f"MCP server '{server}': {reason}",
            code="PROTOCOL_ERROR",
            details=details,
        )
        self.server = server
        self.remote_error = remote_error


# =============================================================================
# Security Errors
# =============================================================================

class SecurityError(AuracleError):
    """Base exception for authorization failures.

    Security errors are never captured into a tool result; they always
    reach the caller.
    """
    pass


class PolicyBlockedError(SecurityError):
    """Raised when access is blocked outright by policy."""

    def __init__(self, reason: str, permission: Optional[str] = None):
        details = {"reason": reason}
        if permission:
            details["permission"] = permission
        super().__init__(
            message=f"Blocked: {reason}",
            code="POLICY_BLOCKED",
            details=details,
        )
        self.reason = reason
        self.permission = permission


class CommandBlockedError(PolicyBlockedError):
    """Raised when a command matches a hard-block pattern."""

    def __init__(self, command: str, reason: str = "matches a blocked command pattern"):
        # Don't include full command in message for security
        truncated_cmd = command[:50] + "..." if len(command) > 50 else command
        super().__init__(reason=f"{reason}: {truncated_cmd}")
        self.code = "COMMAND_BLOCKED"
        self.details["command_preview"] = truncated_cmd


class ApprovalDeniedError(SecurityError):
    """Raised when an action is denied by the user, session, or ledger."""

    def __init__(self, summary: str, source: str = "user"):
        super().__init__(
            message=f"Denied ({source}): {summary}",
            code="APPROVAL_DENIED",
            details={"summary": summary, "source": source},
        )
        self.summary = summary
        self.source = source


class EscalationError(SecurityError):
    """Raised when the approval path itself fails; the action is refused."""

    def __init__(self, tool_name: str, reason: str):
        super().__init__(
            message=f"Authorization for '{tool_name}' failed: {reason}",
            code="ESCALATION_ERROR",
            details={"tool_name": tool_name, "reason": reason},
        )


class LedgerError(SecurityError):
    """Raised when the approval ledger cannot be written."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Approval ledger '{path}' unavailable: {reason}",
            code="LEDGER_ERROR",
            details={"path": path, "reason": reason},
        )


# =============================================================================
# Intervention Errors
# =============================================================================

class InterventionError(AuracleError):
    """Base exception for misuse of a pending approval."""
    pass


class InvalidChoiceError(InterventionError):
    """Raised when resuming with a choice that was not offered."""

    def __init__(self, choice: str, choices: list[str]):
        super().__init__(
            message=f"Invalid choice '{choice}'; expected one of {choices}",
            code="INVALID_CHOICE",
            details={"choice": choice, "choices": choices},
        )


class InterventionConsumedError(InterventionError):
    """Raised when a pending approval is resumed more than once."""

    def __init__(self, title: str):
        super().__init__(
            message=f"Intervention already resolved: {title}",
            code="INTERVENTION_CONSUMED",
        )


# =============================================================================
# Orchestration Errors
# =============================================================================

class OrchestrationError(AuracleError):
    """Base exception for orchestration-related errors."""
    pass


class TurnCancelledError(OrchestrationError):
    """Raised when a turn is cancelled while the model call is in flight."""

    def __init__(self, request_id: str):
        super().__init__(
            message=f"Turn '{request_id}' was cancelled",
            code="TURN_CANCELLED",
            details={"request_id": request_id},
        )
