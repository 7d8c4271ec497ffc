"""Tests for configuration loading."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from auracle.config import (
    Settings,
    _deep_merge,
    _expand_env_vars,
    load_settings,
    reset_settings,
)
from auracle.config.settings import ExtensionSettings, MCPServerSettings, SecurityConfig
from auracle.errors import InvalidConfigError


class TestExpandEnvVars:
    """Tests for environment variable expansion."""

    def test_expand_simple_var(self) -> None:
        os.environ["AURACLE_TEST_VAR"] = "test_value"
        try:
            assert _expand_env_vars("${AURACLE_TEST_VAR}") == "test_value"
        finally:
            del os.environ["AURACLE_TEST_VAR"]

    def test_expand_missing_var(self) -> None:
        """A string made only of unset variables becomes None."""
        assert _expand_env_vars("${AURACLE_NONEXISTENT_VAR}") is None

    def test_plain_string_untouched(self) -> None:
        assert _expand_env_vars("plain") == "plain"
        assert _expand_env_vars("") == ""

    def test_expand_nested(self) -> None:
        os.environ["AURACLE_NESTED_VAR"] = "nested_value"
        try:
            data = {"level1": {"level2": "${AURACLE_NESTED_VAR}"}, "items": ["${AURACLE_NESTED_VAR}", 3]}
            result = _expand_env_vars(data)
            assert result["level1"]["level2"] == "nested_value"
            assert result["items"] == ["nested_value", 3]
        finally:
            del os.environ["AURACLE_NESTED_VAR"]


class TestDeepMerge:
    def test_nested_merge(self) -> None:
        base = {"outer": {"a": 1, "b": 2}}
        override = {"outer": {"b": 3, "c": 4}}
        assert _deep_merge(base, override) == {"outer": {"a": 1, "b": 3, "c": 4}}

    def test_lists_are_replaced(self) -> None:
        base = {"security": {"allowed_permissions": ["read"]}}
        override = {"security": {"allowed_permissions": ["read", "write"]}}
        result = _deep_merge(base, override)
        assert result["security"]["allowed_permissions"] == ["read", "write"]

    def test_base_not_mutated(self) -> None:
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


class TestSettings:
    def test_defaults(self, clean_env: None) -> None:
        settings = Settings()
        assert settings.model.provider == "openai"
        assert settings.security.allowed_permissions == ["read"]
        assert settings.security.denied_permissions == []
        assert settings.security.allow_sensitive is False
        assert settings.agent.max_turns == 5
        assert "sys_tool_wand" in settings.agent.core_tools
        assert settings.mcp_servers == []
        assert settings.extensions == []

    def test_permissions_normalized(self) -> None:
        config = SecurityConfig(allowed_permissions=[" Read ", "WRITE"])
        assert config.allowed_permissions == ["read", "write"]

    def test_unknown_permission_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SecurityConfig(allowed_permissions=["root"])

    def test_data_dir_expanded(self) -> None:
        settings = Settings(security={"data_dir": "~/somewhere"})
        assert settings.data_dir == Path.home() / "somewhere"

    def test_env_override(self, clean_env: None) -> None:
        os.environ["AURACLE_MODEL__MODEL_ID"] = "llama3"
        settings = Settings()
        assert settings.model.model_id == "llama3"

    def test_openai_key_from_env(self, clean_env: None) -> None:
        os.environ["OPENAI_API_KEY"] = "sk-from-env"
        settings = Settings()
        assert settings.openai_api_key == "sk-from-env"
        assert settings.has_model_access()

    def test_ollama_needs_no_key(self, clean_env: None) -> None:
        settings = Settings(model={"provider": "ollama", "model_id": "llama3"})
        assert settings.openai_api_key is None
        assert settings.has_model_access()

    def test_no_model_access(self, clean_env: None) -> None:
        assert not Settings().has_model_access()


class TestServerAndExtensionSettings:
    def test_mcp_server_defaults(self) -> None:
        server = MCPServerSettings(name=" files ", command="mcp-files")
        assert server.name == "files"
        assert server.args == []
        assert server.initialize is True
        assert server.request_timeout == 30.0

    def test_mcp_server_requires_command(self) -> None:
        with pytest.raises(ValidationError):
            MCPServerSettings(name="files", command="  ")

    def test_extension_defaults(self) -> None:
        ext = ExtensionSettings(name="lint", command=["ruff", "check"])
        assert ext.permissions == ["execute"]
        assert ext.input_schema == {"type": "object"}
        assert ext.category == "general"

    def test_extension_requires_command(self) -> None:
        with pytest.raises(ValidationError):
            ExtensionSettings(name="lint", command=[])


class TestLoadSettings:
    def test_load_from_file(self, temp_dir: Path, clean_env: None) -> None:
        config_path = temp_dir / "config.yaml"
        config_path.write_text(
            f"""
api_keys:
  openai: sk-file-key

security:
  data_dir: {temp_dir / "data"}
  allowed_permissions: [read, network]

mcp_servers:
  - name: files
    command: mcp-files
    args: ["--root", "."]

extensions:
  - name: lint
    description: Run the linter
    command: ["ruff", "check", "."]
    category: coding
""",
            encoding="utf-8",
        )

        settings = load_settings(config_path=config_path, force_reload=True)

        assert settings.openai_api_key == "sk-file-key"
        assert settings.security.allowed_permissions == ["read", "network"]
        assert settings.data_dir == temp_dir / "data"
        # Sections absent from the file keep the packaged defaults
        assert settings.agent.max_turns == 5
        assert settings.mcp_servers[0].name == "files"
        assert settings.mcp_servers[0].args == ["--root", "."]
        assert settings.extensions[0].command == ["ruff", "check", "."]

    def test_missing_file_uses_defaults(self, temp_dir: Path, clean_env: None) -> None:
        settings = load_settings(config_path=temp_dir / "absent.yaml", force_reload=True)
        assert settings.openai_api_key is None
        assert settings.model.model_id == "gpt-4o"

    def test_settings_cached(self, temp_dir: Path, clean_env: None) -> None:
        first = load_settings(config_path=temp_dir / "absent.yaml", force_reload=True)
        assert load_settings() is first
        reset_settings()
        assert load_settings(config_path=temp_dir / "absent.yaml") is not first

    def test_invalid_value_reports_field(self, temp_dir: Path, clean_env: None) -> None:
        config_path = temp_dir / "config.yaml"
        config_path.write_text("security:\n  allowed_permissions: [root]\n", encoding="utf-8")

        with pytest.raises(InvalidConfigError) as exc_info:
            load_settings(config_path=config_path, force_reload=True)

        assert exc_info.value.details["field"] == "security.allowed_permissions"
        assert "unknown permission 'root'" in exc_info.value.message
