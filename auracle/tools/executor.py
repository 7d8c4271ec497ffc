"""Tool executor for running tools behind the permission policy.

The executor looks up the tool, validates the arguments against the tool's
JSON schema, asks the policy engine for a decision and runs the tool with
timeout protection. Execution failures are captured into the returned
``ToolResult``; authorization failures are raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

import jsonschema

from auracle.errors import ToolNotFoundError, ToolValidationError
from auracle.security.intervention import Intervention
from auracle.security.policy import PolicyEngine
from auracle.tools.registry import Tool, ToolRegistry
from auracle.tools.runner import MAX_OUTPUT_LENGTH, format_error, run_tool
from auracle.tools.types import ToolCall, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class Resolved:
    """The call finished (successfully or not) and produced a result."""

    result: ToolResult


@dataclass(frozen=True)
class Pending:
    """The call is suspended until a human resolves the intervention."""

    intervention: Intervention


Outcome = Union[Resolved, Pending]


def validate_arguments(tool: Tool, arguments: dict[str, Any]) -> None:
    """Validate arguments against the tool's JSON schema.

    Raises:
        ToolValidationError: If validation fails.
    """
    if not isinstance(arguments, dict):
        raise ToolValidationError(tool.name, "arguments", "must be a JSON object")

    schema = tool.definition.json_schema()
    try:
        jsonschema.validate(instance=arguments, schema=schema)
    except jsonschema.ValidationError as e:
        parameter = ".".join(str(p) for p in e.absolute_path) or "arguments"
        raise ToolValidationError(tool.name, parameter, e.message) from e
    except jsonschema.SchemaError as e:
        # Remote servers occasionally publish schemas that are not valid
        logger.warning(f"Tool {tool.name} has an invalid schema, skipping validation: {e.message}")


@dataclass
class ToolExecutor:
    """Executes tool calls behind the permission policy.

    Example:
        >>> executor = ToolExecutor(registry, policy)
        >>> outcome = await executor.execute(tool_call)
        >>> if isinstance(outcome, Pending):
        ...     result = await outcome.intervention.resume("Approve Once")
        ... else:
        ...     result = outcome.result
    """

    registry: ToolRegistry
    policy: PolicyEngine
    default_timeout: float = DEFAULT_TIMEOUT
    max_output_length: int = MAX_OUTPUT_LENGTH

    async def execute(self, tool_call: ToolCall) -> Outcome:
        """Execute a tool call.

        Returns:
            ``Resolved`` with the result, or ``Pending`` when a human must
            decide first.

        Raises:
            SecurityError: If the policy blocks or denies the call.
        """
        tool = self.registry.get(tool_call.name)
        if tool is None:
            error = ToolNotFoundError(tool_call.name)
            logger.warning(f"Tool not found: {tool_call.name}")
            return Resolved(
                ToolResult.failure(error.message, content=format_error(tool_call.name, error.message))
            )

        try:
            validate_arguments(tool, tool_call.arguments)
        except ToolValidationError as e:
            logger.warning(f"Validation failed: {tool.name}: {e.message}")
            return Resolved(
                ToolResult.failure(e.message, content=format_error(tool.name, e.message))
            )

        intervention = self.policy.validate(tool, tool_call.arguments)
        if intervention is not None:
            logger.info(f"Approval required: {intervention.title}")
            return Pending(intervention)

        result = await run_tool(
            tool,
            tool_call.arguments,
            timeout=tool.timeout or self.default_timeout,
            max_output_length=self.max_output_length,
        )
        return Resolved(result)
