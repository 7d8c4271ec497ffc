"""Configuration management for Auracle."""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from auracle.errors import InvalidConfigError

from .settings import (
    AgentConfig,
    ExtensionSettings,
    MCPServerSettings,
    ModelConfig,
    SecurityConfig,
    Settings,
    ShellConfig,
)

# Singleton instance
_settings: Optional[Settings] = None

# Default config directory
CONFIG_DIR = Path.home() / ".auracle"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

SECTIONS = ("model", "security", "shell", "agent", "mcp_servers", "extensions")

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${ENV_VAR} syntax in strings.

    A string that consisted only of references to unset variables becomes
    ``None`` so optional fields fall back to their defaults.
    """
    if isinstance(value, str):
        matches = _ENV_PATTERN.findall(value)
        if not matches:
            return value
        for var_name in matches:
            env_value = os.environ.get(var_name, "")
            value = value.replace(f"${{{var_name}}}", env_value)
        return value if value else None
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> dict:
    """Load a YAML file and return its contents."""
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        content = yaml.safe_load(f)
        return content if content else {}


def _transform_config_to_settings(config: dict) -> dict:
    """Transform YAML config structure to Settings model structure."""
    settings_dict: dict[str, Any] = {}

    api_keys = config.get("api_keys") or {}
    if api_keys.get("openai"):
        settings_dict["openai_api_key"] = api_keys["openai"]

    for section in SECTIONS:
        if config.get(section) is not None:
            settings_dict[section] = config[section]

    return settings_dict


def ensure_config_dir() -> None:
    """Ensure the config directory exists."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)


def create_default_config() -> None:
    """Create a default config file if it doesn't exist."""
    ensure_config_dir()
    if not CONFIG_FILE.exists():
        defaults = DEFAULTS_FILE.read_text(encoding="utf-8")
        CONFIG_FILE.write_text(defaults, encoding="utf-8")


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """
    Load settings with priority: explicit file > env vars > user config > defaults.

    Args:
        config_path: Optional path to a custom config file
        force_reload: Force reload even if settings are cached

    Returns:
        Settings instance

    Raises:
        InvalidConfigError: If a merged value fails validation.
    """
    global _settings

    if _settings is not None and not force_reload:
        return _settings

    defaults = _load_yaml_file(DEFAULTS_FILE)

    user_config_path = config_path or CONFIG_FILE
    user_config = _load_yaml_file(user_config_path)

    merged = _deep_merge(defaults, user_config)
    expanded = _expand_env_vars(merged)
    settings_dict = _transform_config_to_settings(expanded)

    # Settings also reads AURACLE_* environment variables
    try:
        _settings = Settings(**settings_dict)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "settings"
        raise InvalidConfigError(field, error.get("input"), error["msg"]) from e

    return _settings


def get_settings() -> Settings:
    """Get the current settings instance, loading if necessary."""
    if _settings is None:
        return load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None


__all__ = [
    "AgentConfig",
    "ExtensionSettings",
    "MCPServerSettings",
    "ModelConfig",
    "SecurityConfig",
    "Settings",
    "ShellConfig",
    "get_settings",
    "load_settings",
    "reset_settings",
    "ensure_config_dir",
    "create_default_config",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "DEFAULTS_FILE",
]
