"""Pytest configuration and fixtures for Auracle tests."""

import os
from pathlib import Path
from typing import Any, Generator, Iterable, Optional

import pytest

from auracle.config import Settings, reset_settings
from auracle.security import Enclave, PolicyEngine
from auracle.tools import Permission, Tool, ToolCategory, ToolRegistry, create_tool
from auracle.tools.types import ToolParameter


def _make_tool(
    name: str = "echo",
    permissions: Iterable[Permission] = (Permission.READ,),
    handler: Any = None,
    parameters: Optional[list[ToolParameter]] = None,
    category: ToolCategory = ToolCategory.GENERAL,
    source: str = "test",
    timeout: Optional[float] = 5.0,
    executes_commands: bool = False,
) -> Tool:
    """Build a small tool for tests."""
    if parameters is None:
        parameters = [
            ToolParameter(name="message", type="string", description="Text", required=False),
        ]
    return create_tool(
        name=name,
        description=f"Test tool {name}",
        parameters=parameters,
        handler=handler or (lambda args: f"ran {name} with {args}"),
        permissions=permissions,
        category=category,
        source=source,
        timeout=timeout,
        executes_commands=executes_commands,
    )


def _make_shell_tool(handler: Any = None) -> Tool:
    """A shell-style tool that records calls instead of running anything."""
    return _make_tool(
        name="sys_shell_exec",
        permissions=(Permission.EXECUTE,),
        handler=handler or (lambda args: f"executed {args.get('command')}"),
        parameters=[
            ToolParameter(name="command", type="string", description="Command"),
            ToolParameter(
                name="args",
                type="array",
                description="Arguments",
                required=False,
                items={"type": "string"},
            ),
        ],
        category=ToolCategory.SYSTEM,
        executes_commands=True,
    )


@pytest.fixture
def make_tool():
    """Factory for small test tools."""
    return _make_tool


@pytest.fixture
def make_shell_tool():
    """Factory for a shell-style tool that does not run anything."""
    return _make_shell_tool


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """A temporary directory for tests."""
    return tmp_path


@pytest.fixture
def policy() -> PolicyEngine:
    """A policy engine with default rules (read allowed)."""
    return PolicyEngine()


@pytest.fixture
def enclave(temp_dir: Path) -> Enclave:
    """An enclave rooted in a temporary data directory."""
    return Enclave(temp_dir / "data", cwd=str(temp_dir / "project"), home=str(temp_dir / "home"))


@pytest.fixture
def guarded_policy(policy: PolicyEngine, enclave: Enclave) -> PolicyEngine:
    """A policy engine with the enclave installed as escalation hook."""
    enclave.install(policy)
    return policy


@pytest.fixture
def registry() -> ToolRegistry:
    """A registry with a read-only and a write tool."""
    reg = ToolRegistry()
    reg.register(_make_tool("echo"))
    reg.register(_make_tool("writer", permissions=(Permission.WRITE,)))
    return reg


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Settings with every file under the temporary directory."""
    reset_settings()
    return Settings(
        openai_api_key="test-openai-key",
        security={"data_dir": str(temp_dir / "data")},
    )


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables for testing."""
    original = {}
    env_vars = [
        "OPENAI_API_KEY",
        "AURACLE_OPENAI_API_KEY",
        "AURACLE_MODEL__MODEL_ID",
        "AURACLE_SHELL__TIMEOUT",
    ]
    for var in env_vars:
        original[var] = os.environ.pop(var, None)

    reset_settings()

    yield

    for var, value in original.items():
        if value is not None:
            os.environ[var] = value
        elif var in os.environ:
            del os.environ[var]

    reset_settings()
