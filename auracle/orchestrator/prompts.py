"""Prompt templates and tool-call parsing for the orchestration loop.

The model is told about tools as rendered text and asks for one by
answering with a fenced JSON block:

    ```json
    {"tool": "sys_read_file", "parameters": {"path": "README.md"}}
    ```
"""

from __future__ import annotations

import json
import uuid
from typing import Optional

from auracle.tools.types import ToolCall

TOOL_CALL_INSTRUCTIONS = """To use a tool, reply with exactly one fenced block:
```json
{"tool": "<tool name>", "parameters": {<arguments>}}
```
The tool's output will be sent back to you. Reply without a block when you are done."""

AUGMENTED_PROMPT_TEMPLATE = """System Context:
{context}

System CWD: {cwd}
Available Tools (JSON-RPC 2.0 Style):
{tools}

{instructions}

User Request (Thread ID: {request_id}):
{request}"""

TOOL_OUTPUT_TEMPLATE = "\n\nUser: Tool Output: {output}\nSystem:"

TOOL_FAILURE_TEMPLATE = "\n\nUser: Tool Execution Failed: {error}\nSystem:"

SECURITY_ADVISORY_TEMPLATE = (
    "Security advisory: this request references a protected location and was not "
    "sent to the model.\n{reason}\n"
    "Enable sensitive access in the security settings if this is intended."
)

LOOP_LIMIT_MESSAGE = "Agent loop limit reached."


def format_augmented_prompt(
    snippets: list[str],
    cwd: str,
    tool_definitions: str,
    request_id: str,
    request: str,
) -> str:
    """Compose the prompt sent to the model for a user request."""
    return AUGMENTED_PROMPT_TEMPLATE.format(
        context="\n".join(snippets),
        cwd=cwd,
        tools=tool_definitions,
        instructions=TOOL_CALL_INSTRUCTIONS,
        request_id=request_id,
        request=request,
    )


def format_security_advisory(reason: str) -> str:
    return SECURITY_ADVISORY_TEMPLATE.format(reason=reason)


def parse_tool_call(text: str) -> Optional[ToolCall]:
    """Extract the first ```json tool request from a model reply.

    Returns None when the reply holds no well-formed request; anything that
    is not a JSON object with a non-empty string ``tool`` is treated as
    ordinary text.
    """
    start = text.find("```json")
    if start == -1:
        return None

    body = text[start + len("```json"):]
    end = body.find("```")
    if end == -1:
        return None

    try:
        payload = json.loads(body[:end].strip())
    except json.JSONDecodeError:
        return None

    if not isinstance(payload, dict):
        return None
    name = payload.get("tool")
    if not isinstance(name, str) or not name:
        return None

    arguments = payload.get("parameters")
    if not isinstance(arguments, dict):
        arguments = {}

    return ToolCall(id=f"call_{uuid.uuid4().hex[:12]}", name=name, arguments=arguments)
