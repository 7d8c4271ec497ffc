"""Core tool types shared by the registry, executor, and security layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Permission(str, Enum):
    """A capability a tool needs in order to run."""

    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"
    NETWORK = "network"
    SENSITIVE = "sensitive"  # Access to passwords, keys, etc.


class ToolCategory(str, Enum):
    """Operational domain of a tool."""

    FILESYSTEM = "filesystem"
    ANALYSIS = "analysis"
    SYSTEM = "system"
    NETWORK = "network"
    CODING = "coding"
    SECURITY = "security"
    MEMORY = "memory"
    DEVOPS = "devops"
    GENERAL = "general"


class ToolStatus(str, Enum):
    """Outcome of a single tool execution attempt."""

    SUCCESS = "success"
    ERROR = "error"
    PARTIAL = "partial"


@dataclass
class ToolParameter:
    """A parameter for a tool."""

    name: str
    type: str  # 'string', 'integer', 'number', 'boolean', 'array', 'object'
    description: str
    required: bool = True
    enum: Optional[list[str]] = None
    items: Optional[dict[str, Any]] = None  # For array types
    properties: Optional[dict[str, Any]] = None  # For object types

    def to_json_schema(self) -> dict[str, Any]:
        """Convert to JSON Schema format."""
        schema: dict[str, Any] = {
            "type": self.type,
            "description": self.description,
        }
        if self.enum:
            schema["enum"] = self.enum
        if self.items:
            schema["items"] = self.items
        if self.properties:
            schema["properties"] = self.properties
        return schema


@dataclass
class ToolDefinition:
    """Definition of a tool that can be called by models.

    Built-in tools describe their inputs with ``parameters``; tools bridged
    from a remote server carry the server's raw ``input_schema`` instead.
    """

    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)
    input_schema: Optional[dict[str, Any]] = None

    def json_schema(self) -> dict[str, Any]:
        """Return the JSON schema describing the tool's arguments."""
        if self.input_schema is not None:
            return self.input_schema

        properties = {}
        required = []

        for param in self.parameters:
            properties[param.name] = param.to_json_schema()
            if param.required:
                required.append(param.name)

        schema: dict[str, Any] = {
            "type": "object",
            "properties": properties,
        }
        if required:
            schema["required"] = required

        return schema

    def to_mcp(self) -> dict[str, Any]:
        """Convert to the Model Context Protocol tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.json_schema(),
        }


@dataclass
class ToolResult:
    """Structured outcome of one tool execution.

    Attributes:
        status: success, error, or partial.
        content: Primary textual output.
        data: Optional structured payload for programmatic use.
        artifacts: Paths of files created or modified.
        meta: Extra context such as latency or exit codes.
        error: Error message when status is error.
    """

    status: ToolStatus
    content: str = ""
    data: Any = None
    artifacts: list[str] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def success(cls, content: str, **kwargs: Any) -> "ToolResult":
        """Create a successful result."""
        return cls(status=ToolStatus.SUCCESS, content=content, **kwargs)

    @classmethod
    def failure(cls, error: str, content: str = "", **kwargs: Any) -> "ToolResult":
        """Create an error result."""
        return cls(status=ToolStatus.ERROR, content=content or error, error=error, **kwargs)

    @property
    def is_error(self) -> bool:
        return self.status == ToolStatus.ERROR

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status.value, "content": self.content}
        if self.data is not None:
            result["data"] = self.data
        if self.artifacts:
            result["artifacts"] = list(self.artifacts)
        if self.meta:
            result["meta"] = dict(self.meta)
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


def format_result_value(value: Any) -> str:
    """Format an arbitrary handler return value for model consumption."""
    if value is None:
        return "Success (no output)"

    if isinstance(value, str):
        return value

    if isinstance(value, (list, dict)):
        try:
            return json.dumps(value, indent=2, default=str)
        except (TypeError, ValueError):
            return str(value)

    return str(value)
