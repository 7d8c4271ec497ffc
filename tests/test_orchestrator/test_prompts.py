"""Tests for prompt composition and tool-call parsing."""

import json

import pytest

from auracle.orchestrator.prompts import (
    format_augmented_prompt,
    format_security_advisory,
    parse_tool_call,
)


class TestParseToolCall:
    def test_plain_text(self):
        assert parse_tool_call("The answer is 42.") is None

    def test_valid_block(self):
        reply = (
            "I'll read it.\n"
            "```json\n"
            '{"tool": "sys_read_file", "parameters": {"path": "README.md"}}\n'
            "```\n"
            "Then I'll summarize."
        )
        call = parse_tool_call(reply)

        assert call.name == "sys_read_file"
        assert call.arguments == {"path": "README.md"}
        assert call.id.startswith("call_")

    def test_ids_are_unique(self):
        reply = '```json\n{"tool": "a"}\n```'
        assert parse_tool_call(reply).id != parse_tool_call(reply).id

    def test_first_block_wins(self):
        reply = (
            '```json\n{"tool": "first"}\n```\n'
            '```json\n{"tool": "second"}\n```'
        )
        assert parse_tool_call(reply).name == "first"

    @pytest.mark.parametrize("parameters", [None, "path=README.md", [1, 2]])
    def test_non_object_parameters_become_empty(self, parameters):
        payload = json.dumps({"tool": "sys_info", "parameters": parameters})
        call = parse_tool_call(f"```json\n{payload}\n```")
        assert call.arguments == {}

    def test_missing_parameters(self):
        assert parse_tool_call('```json\n{"tool": "sys_info"}\n```').arguments == {}

    @pytest.mark.parametrize(
        "body",
        [
            "{not json}",
            '["sys_info"]',
            '{"parameters": {}}',
            '{"tool": ""}',
            '{"tool": 7}',
            '"sys_info"',
        ],
    )
    def test_malformed_requests_are_text(self, body):
        assert parse_tool_call(f"```json\n{body}\n```") is None

    def test_unterminated_block(self):
        assert parse_tool_call('```json\n{"tool": "sys_info"}') is None

    def test_other_fences_ignored(self):
        assert parse_tool_call('```python\n{"tool": "sys_info"}\n```') is None


class TestPromptComposition:
    def test_augmented_prompt_layout(self):
        prompt = format_augmented_prompt(
            ["first snippet", "second snippet"],
            "/work",
            "## Tool: sys_info",
            "abc123",
            "how busy is the machine?",
        )

        assert prompt.startswith("System Context:\nfirst snippet\nsecond snippet\n")
        assert "System CWD: /work\nAvailable Tools (JSON-RPC 2.0 Style):\n## Tool: sys_info" in prompt
        assert prompt.index("```json") < prompt.index("User Request")
        assert prompt.endswith("User Request (Thread ID: abc123):\nhow busy is the machine?")

    def test_empty_context(self):
        prompt = format_augmented_prompt([], "/work", "", "id", "hi")
        assert prompt.startswith("System Context:\n\n")

    def test_security_advisory(self):
        text = format_security_advisory("Blocked: access to '.env' is blocked")
        assert text.startswith("Security advisory")
        assert "Blocked: access to '.env' is blocked" in text
