"""Tests for built-in tools and tool providers."""

import sys
from pathlib import Path

import httpx
import pytest

from auracle.config.settings import ExtensionSettings
from auracle.errors import PolicyBlockedError
from auracle.orchestrator.collaborators import Snapshot, SnapshotSource
from auracle.security import PolicyEngine
from auracle.tools import Permission, ToolCategory, ToolRegistry, ToolStatus, run_tool
from auracle.tools.builtin import (
    create_grep_tool,
    create_http_fetch_tool,
    create_list_dir_tool,
    create_list_files_tool,
    create_read_file_tool,
    create_stat_tool,
    create_sys_info_tool,
    create_tool_wand,
    create_traverse_tool,
    create_write_file_tool,
)
from auracle.tools.providers import (
    ExtensionProvider,
    MetaProvider,
    SystemProvider,
    core_tools,
)


class FixedMonitor(SnapshotSource):
    def get_snapshot(self) -> Snapshot:
        return Snapshot(cpu_percent=12.5, mem_percent=40.0, working_dir="/work")


@pytest.fixture
def workspace(temp_dir: Path) -> Path:
    root = temp_dir / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.py").write_text("def main():\n    return 'hello'\n", encoding="utf-8")
    (root / "README.md").write_text("# Project\nhello world\n", encoding="utf-8")
    (root / ".env").write_text("SECRET=1\n", encoding="utf-8")
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / "node_modules" / "pkg" / "index.js").write_text("hello", encoding="utf-8")
    return root


@pytest.fixture
def guard() -> PolicyEngine:
    return PolicyEngine()


class TestFileTools:
    @pytest.mark.asyncio
    async def test_read_file(self, workspace):
        tool = create_read_file_tool(working_directory=str(workspace))
        result = await run_tool(tool, {"path": "README.md"})

        assert result.status == ToolStatus.SUCCESS
        assert "hello world" in result.content
        assert result.data["size"] > 0

    @pytest.mark.asyncio
    async def test_read_missing_file(self, workspace):
        tool = create_read_file_tool(working_directory=str(workspace))
        result = await run_tool(tool, {"path": "nope.txt"})
        assert result.is_error
        assert "not found" in result.error.lower()

    @pytest.mark.asyncio
    async def test_sensitive_file_refused(self, workspace, guard):
        tool = create_read_file_tool(working_directory=str(workspace), guard=guard.check_path)
        with pytest.raises(PolicyBlockedError):
            await run_tool(tool, {"path": ".env"})

    @pytest.mark.asyncio
    async def test_sensitive_file_allowed_when_enabled(self, workspace, guard):
        guard.set_allow_sensitive(True)
        tool = create_read_file_tool(working_directory=str(workspace), guard=guard.check_path)
        result = await run_tool(tool, {"path": ".env"})
        assert "SECRET" in result.content

    @pytest.mark.asyncio
    async def test_write_file(self, workspace):
        tool = create_write_file_tool(working_directory=str(workspace))
        assert tool.permissions == frozenset({Permission.WRITE})

        result = await run_tool(tool, {"path": "out/notes.txt", "content": "abc"})

        target = workspace / "out" / "notes.txt"
        assert target.read_text(encoding="utf-8") == "abc"
        assert result.content.startswith("Created")
        assert result.artifacts == [str(target)]

        again = await run_tool(tool, {"path": "out/notes.txt", "content": "xyz"})
        assert again.content.startswith("Updated")

    @pytest.mark.asyncio
    async def test_list_files(self, workspace):
        tool = create_list_files_tool(working_directory=str(workspace))
        result = await run_tool(tool, {"path": "."})
        assert "README.md" in result.data
        assert result.content.startswith(f"Found {len(result.data)} files")

    @pytest.mark.asyncio
    async def test_list_dir_reports_types(self, workspace):
        tool = create_list_dir_tool(working_directory=str(workspace))
        result = await run_tool(tool, {"path": "."})

        entries = {e["name"]: e for e in result.data}
        assert entries["src"]["type"] == "dir"
        assert entries["README.md"]["type"] == "file"
        assert entries["README.md"]["size"] > 0

    @pytest.mark.asyncio
    async def test_stat(self, workspace):
        tool = create_stat_tool(working_directory=str(workspace))
        result = await run_tool(tool, {"path": "README.md"})
        assert result.data["name"] == "README.md"
        assert result.data["is_dir"] is False
        assert result.data["mode"].startswith("-")

    @pytest.mark.asyncio
    async def test_grep_skips_sensitive_files(self, workspace, guard):
        (workspace / "src" / "secret.key").write_text("hello", encoding="utf-8")
        tool = create_grep_tool(working_directory=str(workspace), guard=guard.check_path)

        result = await run_tool(tool, {"path": ".", "pattern": "hello"})

        files = {m["file"] for m in result.data}
        assert "README.md" in files
        assert str(Path("src") / "main.py") in files
        assert not any(f.endswith("secret.key") for f in files)
        # Noise directories are skipped
        assert not any("node_modules" in f for f in files)

    @pytest.mark.asyncio
    async def test_grep_invalid_pattern(self, workspace):
        tool = create_grep_tool(working_directory=str(workspace))
        result = await run_tool(tool, {"path": ".", "pattern": "("})
        assert result.is_error
        assert "Invalid regex" in result.error

    @pytest.mark.asyncio
    async def test_traverse_source(self, workspace):
        tool = create_traverse_tool(working_directory=str(workspace))
        result = await run_tool(tool, {})

        assert str(Path("src") / "main.py") in result.data
        assert not any("node_modules" in f for f in result.data)

    @pytest.mark.asyncio
    async def test_traverse_limit(self, workspace):
        for i in range(5):
            (workspace / f"f{i}.txt").write_text("x", encoding="utf-8")
        tool = create_traverse_tool(working_directory=str(workspace), limit=3)
        result = await run_tool(tool, {})
        assert len(result.data) == 3
        assert "stopped at 3" in result.content


class TestSystemTools:
    @pytest.mark.asyncio
    async def test_sys_info(self):
        tool = create_sys_info_tool(FixedMonitor())
        result = await run_tool(tool, {})
        assert result.content == "CPU: 12.5%, RAM: 40.0%, CWD: /work"
        assert result.data["working_dir"] == "/work"

    @pytest.mark.asyncio
    async def test_http_fetch_rejects_other_schemes(self):
        tool = create_http_fetch_tool()
        assert tool.permissions == frozenset({Permission.NETWORK})

        result = await run_tool(tool, {"url": "file:///etc/passwd"})
        assert result.is_error
        assert "only http and https" in result.error

    @pytest.mark.asyncio
    async def test_http_fetch_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="hello"))
        tool = create_http_fetch_tool(transport=transport)

        result = await run_tool(tool, {"url": "https://example.com/"})

        assert result.status == ToolStatus.SUCCESS
        assert result.content == "hello"
        assert result.meta["status_code"] == 200
        assert result.meta["truncated"] is False

    @pytest.mark.asyncio
    async def test_http_fetch_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404, text="missing"))
        tool = create_http_fetch_tool(transport=transport)

        result = await run_tool(tool, {"url": "https://example.com/nope"})

        assert result.is_error
        assert result.error == "HTTP 404"
        assert result.content == "missing"

    @pytest.mark.asyncio
    async def test_http_fetch_stops_reading_at_limit(self):
        sent = []

        async def endless_body():
            for _ in range(1000):
                sent.append(1024)
                yield b"x" * 1024

        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=endless_body()))
        tool = create_http_fetch_tool(max_bytes=4096, transport=transport)

        result = await run_tool(tool, {"url": "https://example.com/big"})

        assert result.status == ToolStatus.SUCCESS
        assert result.content.startswith("x" * 4096 + "\n... (truncated at 4096 bytes)")
        assert result.meta["truncated"] is True
        # Only the chunks up to the limit were pulled from the server
        assert len(sent) < 10


class TestToolWand:
    @pytest.fixture
    def wand_registry(self, make_tool):
        registry = ToolRegistry()
        registry.register(make_tool("fs_grep", category=ToolCategory.ANALYSIS))
        registry.register(create_tool_wand(registry))
        return registry

    @pytest.mark.asyncio
    async def test_list_categories(self, wand_registry):
        result = await run_tool(wand_registry.get("sys_tool_wand"), {"action": "list_categories"})
        assert result.content.startswith("Available Categories:")
        assert "- filesystem" in result.content
        assert "- general" not in result.content

    @pytest.mark.asyncio
    async def test_search(self, wand_registry):
        result = await run_tool(
            wand_registry.get("sys_tool_wand"), {"action": "search", "query": "grep"}
        )
        assert "## fs_grep" in result.content
        assert "Usage:" in result.content
        assert result.data == ["fs_grep"]

    @pytest.mark.asyncio
    async def test_search_without_match(self, wand_registry):
        result = await run_tool(
            wand_registry.get("sys_tool_wand"), {"action": "search", "query": "kubernetes"}
        )
        assert "No matching tools found" in result.content

    @pytest.mark.asyncio
    async def test_search_requires_query(self, wand_registry):
        result = await run_tool(wand_registry.get("sys_tool_wand"), {"action": "search"})
        assert result.is_error

    @pytest.mark.asyncio
    async def test_wish(self, wand_registry):
        result = await run_tool(
            wand_registry.get("sys_tool_wand"), {"action": "wish", "query": "docker logs"}
        )
        assert result.content.startswith("Wish granted (logged)")
        assert "docker logs" in result.content


class TestProviders:
    @pytest.mark.asyncio
    async def test_system_provider(self, workspace):
        provider = SystemProvider(FixedMonitor(), working_directory=str(workspace))
        tools = {t.name: t for t in await provider.provide()}

        assert provider.name == "system"
        assert set(tools) == {
            "sys_read_file",
            "sys_write_file",
            "sys_list_files",
            "fs_list_dir",
            "fs_stat",
            "fs_grep",
            "traverse_source",
            "sys_shell_exec",
            "sys_info",
            "http_fetch",
        }
        assert tools["sys_shell_exec"].permissions == frozenset({Permission.EXECUTE})
        assert tools["sys_shell_exec"].executes_commands is True
        assert all(t.source == "system" for t in tools.values())

    @pytest.mark.asyncio
    async def test_meta_provider(self):
        registry = ToolRegistry()
        provider = MetaProvider(registry)
        tools = await provider.provide()
        assert provider.name == "meta"
        assert [t.name for t in tools] == ["sys_tool_wand"]

    @pytest.mark.asyncio
    async def test_core_tools_are_provided(self, workspace):
        registry = ToolRegistry()
        registry.register_provider(SystemProvider(FixedMonitor(), working_directory=str(workspace)))
        registry.register_provider(MetaProvider(registry))
        await registry.sync()

        assert set(core_tools()) <= set(registry.list_names())
        rendered = registry.render_definitions(core_tools())
        assert rendered.count("## Tool:") == 5

    @pytest.mark.asyncio
    async def test_extension_tool_receives_json_on_stdin(self):
        script = "import json, sys; data = json.load(sys.stdin); print('got', data['name'])"
        ext = ExtensionSettings(
            name="greeter",
            description="Greets",
            command=[sys.executable, "-c", script],
            input_schema={"type": "object", "properties": {"name": {"type": "string"}}},
            category="coding",
        )
        provider = ExtensionProvider([ext])
        [tool] = await provider.provide()

        assert tool.source == "extension"
        assert tool.permissions == frozenset({Permission.EXECUTE})
        assert tool.category == ToolCategory.CODING
        assert tool.definition.json_schema()["properties"]["name"]["type"] == "string"

        result = await run_tool(tool, {"name": "auracle"})
        assert result.status == ToolStatus.SUCCESS
        assert result.content.strip() == "got auracle"

    @pytest.mark.asyncio
    async def test_extension_nonzero_exit_is_error(self):
        script = "import sys; sys.stderr.write('bad input'); sys.exit(3)"
        ext = ExtensionSettings(name="failing", command=[sys.executable, "-c", script])
        [tool] = await ExtensionProvider([ext]).provide()

        result = await run_tool(tool, {})

        assert result.is_error
        assert result.error == "bad input"
        assert result.meta["exit_code"] == 3

    @pytest.mark.asyncio
    async def test_extension_unknown_category_falls_back(self):
        ext = ExtensionSettings(name="odd", command=["true"], category="astrology")
        [tool] = await ExtensionProvider([ext]).provide()
        assert tool.category == ToolCategory.GENERAL
