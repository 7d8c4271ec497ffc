"""Tests for assembling a Brain from settings."""

import pytest

from auracle.app import build_brain, build_policy, build_registry, shutdown
from auracle.config import Settings
from auracle.orchestrator import ModelClient, Snapshot, SnapshotSource
from auracle.security import Enclave
from auracle.tools import Permission
from auracle.tools.executor import Pending
from auracle.tools.providers import CORE_TOOLS
from auracle.tools.types import ToolCall


class EchoModel(ModelClient):
    @property
    def model_id(self):
        return "echo"

    async def generate(self, prompt):
        return "done"


class FixedMonitor(SnapshotSource):
    def get_snapshot(self):
        return Snapshot(cpu_percent=1.0, mem_percent=2.0, working_dir="/work")


def make_settings(temp_dir, **extra):
    return Settings(
        openai_api_key="sk-test",
        security={
            "data_dir": str(temp_dir / "data"),
            "allowed_permissions": ["read", "network"],
            "denied_permissions": ["sensitive"],
        },
        agent={"max_turns": 3},
        **extra,
    )


@pytest.fixture
def settings(temp_dir, clean_env):
    return make_settings(temp_dir)


class TestBuildPolicy:
    def test_from_settings(self, settings):
        policy = build_policy(settings)
        assert policy.allowed_permissions == frozenset({Permission.READ, Permission.NETWORK})
        assert policy.denied_permissions == frozenset({Permission.SENSITIVE})
        assert policy.allow_sensitive is False


class TestBuildRegistry:
    def test_providers(self, temp_dir, clean_env):
        settings = make_settings(
            temp_dir,
            extensions=[{"name": "lint", "command": ["ruff", "check"]}],
            mcp_servers=[{"name": "files", "command": "mcp-files"}],
        )

        registry = build_registry(settings, build_policy(settings), FixedMonitor(), str(temp_dir))

        assert [p.name for p in registry.providers] == ["system", "meta", "extensions", "mcp:files"]
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_sync_provides_core_tools(self, settings, temp_dir):
        registry = build_registry(settings, build_policy(settings), FixedMonitor(), str(temp_dir))
        await registry.sync()
        assert set(CORE_TOOLS) <= set(registry.list_names())

    @pytest.mark.asyncio
    async def test_file_tools_use_policy_guard(self, settings, temp_dir):
        from auracle.errors import PolicyBlockedError
        from auracle.tools import run_tool

        (temp_dir / ".env").write_text("SECRET=1", encoding="utf-8")
        registry = build_registry(settings, build_policy(settings), FixedMonitor(), str(temp_dir))
        await registry.sync()

        with pytest.raises(PolicyBlockedError):
            await run_tool(registry.get("sys_read_file"), {"path": ".env"})


class TestBuildBrain:
    @pytest.mark.asyncio
    async def test_wiring(self, settings, temp_dir):
        brain = build_brain(
            settings,
            model=EchoModel(),
            monitor=FixedMonitor(),
            working_directory=str(temp_dir),
        )
        try:
            await brain.refresh_tools()

            assert brain.max_turns == 3
            assert brain.core_tool_names == list(CORE_TOOLS)
            assert brain.policy.has_escalation_hook

            response = await brain.process("hello")
            assert response.content == "done"

            # Writes are not pre-approved, so the enclave suspends them
            outcome = await brain.executor.execute(
                ToolCall(id="c1", name="sys_write_file", arguments={"path": "a.txt", "content": "x"})
            )
            assert isinstance(outcome, Pending)
            assert not (temp_dir / "a.txt").exists()

            await outcome.intervention.resume("Approve Once")
            assert (temp_dir / "a.txt").read_text(encoding="utf-8") == "x"
        finally:
            await shutdown(brain)

    @pytest.mark.asyncio
    async def test_enclave_override(self, settings, temp_dir):
        enclave = Enclave(temp_dir / "elsewhere")
        brain = build_brain(settings, model=EchoModel(), monitor=FixedMonitor(), enclave=enclave)
        await brain.refresh_tools()

        outcome = await brain.executor.execute(
            ToolCall(id="c1", name="sys_shell_exec", arguments={"command": "ls", "args": ["-la"]})
        )
        assert isinstance(outcome, Pending)
        assert outcome.intervention.request.key == "sys_shell_exec:ls\x00-la"
