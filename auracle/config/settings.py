"""Configuration settings models using Pydantic."""

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PERMISSION_NAMES = ("read", "write", "execute", "network", "sensitive")


def _clean_permissions(names: list[str]) -> list[str]:
    cleaned = []
    for name in names:
        name = name.strip().lower()
        if name not in PERMISSION_NAMES:
            raise ValueError(
                f"unknown permission '{name}', expected one of {', '.join(PERMISSION_NAMES)}"
            )
        cleaned.append(name)
    return cleaned


class ModelConfig(BaseModel):
    """Configuration for the language model collaborator."""

    provider: Literal["openai", "ollama"] = "openai"
    model_id: str = "gpt-4o"
    base_url: Optional[str] = None
    max_tokens: int = Field(default=4096, ge=1, le=200000)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    request_timeout: float = Field(default=120.0, gt=0)

    @field_validator("model_id")
    @classmethod
    def validate_model_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("model_id cannot be empty")
        return v.strip()


class SecurityConfig(BaseModel):
    """Configuration for the permission policy and approval enclave."""

    data_dir: str = "~/.auracle"
    allowed_permissions: list[str] = Field(default_factory=lambda: ["read"])
    denied_permissions: list[str] = Field(default_factory=list)
    allow_sensitive: bool = False

    @field_validator("allowed_permissions", "denied_permissions")
    @classmethod
    def validate_permissions(cls, v: list[str]) -> list[str]:
        return _clean_permissions(v)

    @property
    def resolved_data_dir(self) -> Path:
        """Get the resolved data directory with ~ expanded."""
        return Path(self.data_dir).expanduser()


class ShellConfig(BaseModel):
    """Configuration for subprocess-backed tools."""

    timeout: float = Field(default=60.0, gt=0, le=3600)
    max_output_length: int = Field(default=50000, ge=1000)


class AgentConfig(BaseModel):
    """Configuration for the orchestration loop."""

    max_turns: int = Field(default=5, ge=1, le=50)
    session_id: str = "default"
    memory_window: int = Field(default=50, ge=1)
    core_tools: list[str] = Field(
        default_factory=lambda: [
            "sys_read_file",
            "sys_write_file",
            "sys_shell_exec",
            "sys_tool_wand",
            "sys_info",
        ]
    )


class MCPServerSettings(BaseModel):
    """A tool server launched as a subprocess and spoken to over stdio."""

    name: str
    command: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    initialize: bool = True
    request_timeout: float = Field(default=30.0, gt=0)

    @field_validator("name", "command")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()


class ExtensionSettings(BaseModel):
    """A tool declared in configuration and backed by a fixed command."""

    name: str
    description: str = ""
    command: list[str]
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object"})
    permissions: list[str] = Field(default_factory=lambda: ["execute"])
    category: str = "general"
    complexity: int = Field(default=3, ge=1, le=10)
    timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("command cannot be empty")
        return v

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: list[str]) -> list[str]:
        return _clean_permissions(v)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="AURACLE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # AliasChoices allows reading from either the field name or OPENAI_API_KEY
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("openai_api_key", "OPENAI_API_KEY"),
    )

    # Nested configurations
    model: ModelConfig = Field(default_factory=ModelConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    shell: ShellConfig = Field(default_factory=ShellConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    mcp_servers: list[MCPServerSettings] = Field(default_factory=list)
    extensions: list[ExtensionSettings] = Field(default_factory=list)

    @field_validator("openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate API keys are not empty strings."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def data_dir(self) -> Path:
        return self.security.resolved_data_dir

    def has_model_access(self) -> bool:
        """Check whether the configured model can be reached."""
        if self.model.provider == "ollama" or self.model.base_url:
            return True
        return self.openai_api_key is not None
