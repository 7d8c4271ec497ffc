"""Approval dialog for suspended tool calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from prompt_toolkit import PromptSession
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from auracle.security.intervention import (
    APPROVE_FOREVER,
    APPROVE_ONCE,
    APPROVE_SESSION,
    DENY,
    Intervention,
)
from auracle.security.risk import RiskLevel, Scope

RISK_STYLES = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "red bold",
    RiskLevel.BLOCKED: "red bold reverse",
}

# Keyboard shortcuts for the standard choices
SHORTCUTS = {
    "y": APPROVE_ONCE,
    "yes": APPROVE_ONCE,
    "once": APPROVE_ONCE,
    "s": APPROVE_SESSION,
    "session": APPROVE_SESSION,
    "a": APPROVE_FOREVER,
    "always": APPROVE_FOREVER,
    "forever": APPROVE_FOREVER,
    "n": DENY,
    "no": DENY,
    "deny": DENY,
}


def parse_choice(text: str, choices: Sequence[str]) -> Optional[str]:
    """Map user input to one of the offered choices.

    Accepts a 1-based index, a full label (case-insensitive) or a shortcut.
    Returns None when nothing offered matches.
    """
    answer = text.strip().lower()
    if not answer:
        return None

    if answer.isdigit():
        index = int(answer) - 1
        return choices[index] if 0 <= index < len(choices) else None

    for choice in choices:
        if choice.lower() == answer:
            return choice

    choice = SHORTCUTS.get(answer)
    return choice if choice in choices else None


@dataclass
class ApprovalDialog:
    """Shows an intervention and asks which choice to resume it with.

    Ctrl-C or end of input counts as Deny.
    """

    console: Console

    def render(self, intervention: Intervention) -> Panel:
        request = intervention.request
        content = Text()

        content.append("Tool: ", style="dim")
        content.append(request.tool_name, style="bold yellow")
        content.append("\n")

        content.append("Risk: ", style="dim")
        content.append(request.risk.value.upper(), style=RISK_STYLES.get(request.risk, ""))
        content.append("   Scope: ", style="dim")
        scope_style = "red" if request.scope == Scope.SYSTEM else "green"
        content.append(request.scope.value, style=scope_style)
        content.append("\n")

        if request.args_preview:
            content.append("\nArguments: ", style="dim")
            content.append(request.args_preview)
            content.append("\n")

        if request.suggestion:
            content.append(f"\n{request.suggestion}\n", style="dim italic")

        content.append("\n")
        for index, choice in enumerate(intervention.choices, start=1):
            style = "red bold" if choice == DENY else "cyan bold"
            content.append(f"[{index}] ", style=style)
            content.append(f"{choice}  ", style="dim")

        return Panel(
            content,
            title=intervention.title,
            title_align="left",
            border_style="yellow",
            padding=(1, 2),
        )

    async def show(self, intervention: Intervention) -> str:
        """Display the dialog and return the chosen label."""
        self.console.print()
        self.console.print(self.render(intervention))

        session: PromptSession = PromptSession()
        while True:
            try:
                answer = await session.prompt_async("Your choice: ")
            except (EOFError, KeyboardInterrupt):
                return DENY

            choice = parse_choice(answer, intervention.choices)
            if choice is not None:
                return choice
            self.console.print(
                f"[yellow]Please enter 1-{len(intervention.choices)} or one of: "
                f"{', '.join(intervention.choices)}[/yellow]"
            )
