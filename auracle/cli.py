"""CLI entry point for Auracle."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

import typer
from prompt_toolkit import PromptSession
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from auracle import __version__
from auracle.config import create_default_config, get_settings, load_settings
from auracle.errors import (
    ApprovalDeniedError,
    AuracleError,
    ConfigurationError,
    ModelError,
    SecurityError,
)
from auracle.security.risk import KEY_SEPARATOR
from auracle.utils.logging import setup_logging

app = typer.Typer(
    name="auracle",
    help="Terminal coding assistant with approval-gated tools",
    add_completion=True,
    no_args_is_help=False,
)

console = Console()

EXIT_COMMANDS = ("/exit", "/quit", "exit", "quit")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]Auracle[/bold] version {__version__}")
        raise typer.Exit()


def _display_key(key: str) -> str:
    return key.replace(KEY_SEPARATOR, " ")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write debug logs to this file",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Auracle - terminal coding assistant.

    Without a subcommand, starts an interactive chat.
    """
    setup_logging(
        level=logging.DEBUG if verbose else logging.WARNING,
        log_file=log_file,
        verbose=verbose,
    )

    try:
        if config:
            load_settings(config_path=config, force_reload=True)
        else:
            create_default_config()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e.message}[/red]")
        raise typer.Exit(1)

    ctx.obj = {"verbose": verbose}
    if ctx.invoked_subcommand is None:
        asyncio.run(start_interactive(verbose=verbose))


@app.command()
def chat(ctx: typer.Context) -> None:
    """Start an interactive chat."""
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    asyncio.run(start_interactive(verbose=verbose))


async def start_interactive(verbose: bool = False) -> None:
    """Run the read-process-approve loop until the user exits."""
    from auracle.app import build_brain, shutdown
    from auracle.ui import ApprovalDialog

    settings = get_settings()
    if not settings.has_model_access():
        console.print(
            Panel(
                "[yellow]No model access configured![/yellow]\n\n"
                "Set OPENAI_API_KEY, or point model.base_url at an OpenAI-compatible\n"
                "endpoint (model.provider: ollama for a local Ollama)\n"
                "in ~/.auracle/config.yaml",
                title="Configuration Required",
                border_style="yellow",
            )
        )
        raise typer.Exit(1)

    brain = build_brain(settings)
    dialog = ApprovalDialog(console)
    try:
        count = await brain.refresh_tools()
        console.print(f"[dim]Auracle {__version__} - {count} tools loaded. Type /exit to quit.[/dim]")

        session: PromptSession = PromptSession()
        while True:
            try:
                text = await session.prompt_async("> ")
            except (EOFError, KeyboardInterrupt):
                break

            text = text.strip()
            if not text:
                continue
            if text.lower() in EXIT_COMMANDS:
                break

            await _run_turn(brain, dialog, text, verbose)
    except AuracleError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)
    finally:
        await shutdown(brain)


async def _run_turn(brain, dialog, text: str, verbose: bool) -> None:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        pass

    try:
        with console.status("[dim]Thinking...[/dim]"):
            response = await brain.process(text, cancel=cancel)

        while response.needs_approval:
            choice = await dialog.show(response.pending)
            with console.status("[dim]Working...[/dim]"):
                response = await brain.resume(response, choice, cancel=cancel)

        if response.advisory:
            console.print(Panel(response.content, title="Security Advisory", border_style="red"))
        else:
            console.print(Markdown(response.content))
    except ApprovalDeniedError as e:
        console.print(f"[yellow]{e.message}[/yellow]")
    except SecurityError as e:
        console.print(f"[red]{e.message}[/red]")
    except ModelError as e:
        console.print(f"[red]Model error: {e.message}[/red]")
    except AuracleError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        if verbose:
            console.print_exception()
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


@app.command()
def tools(
    query: Optional[str] = typer.Argument(None, help="Only show tools matching this text"),
) -> None:
    """List available tools."""
    asyncio.run(_list_tools(query))


async def _list_tools(query: Optional[str]) -> None:
    from auracle.app import build_brain, shutdown
    from auracle.errors import ProviderError

    brain = build_brain(get_settings())
    try:
        await brain.refresh_tools()
    except ProviderError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)
    finally:
        await shutdown(brain)

    found = brain.registry.search(query) if query else brain.registry.list_tools()
    if not found:
        console.print("[dim]No tools found.[/dim]")
        return

    table = Table(title=f"Tools matching '{query}'" if query else "Available Tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Category", style="green")
    table.add_column("Permissions", style="yellow")
    table.add_column("Source", style="blue")
    table.add_column("Description")

    for tool in sorted(found, key=lambda t: t.name):
        table.add_row(
            tool.name,
            tool.category.value,
            ", ".join(sorted(p.value for p in tool.permissions)),
            tool.source,
            tool.description,
        )

    console.print(table)


@app.command()
def approvals(
    revoke: Optional[str] = typer.Option(
        None,
        "--revoke",
        "-r",
        help="Revoke a persisted decision by row number or key",
    ),
) -> None:
    """List or revoke persisted approval decisions."""
    from auracle.app import build_enclave

    enclave = build_enclave(get_settings())
    items = sorted(enclave.ledger.items())

    if revoke is not None:
        key = revoke
        if revoke.isdigit() and 1 <= int(revoke) <= len(items):
            key = items[int(revoke) - 1][0]
        if enclave.ledger.revoke(key):
            console.print(f"[green]Revoked {_display_key(key)}[/green]")
        else:
            console.print(f"[red]No persisted decision for {revoke}[/red]")
            raise typer.Exit(1)
        return

    if not items:
        console.print("[dim]No persisted decisions.[/dim]")
        return

    table = Table(title="Persisted Decisions")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Key", style="cyan")
    table.add_column("Decision", justify="center")
    table.add_column("Count", justify="right")
    table.add_column("Updated", style="yellow")

    for index, (key, record) in enumerate(items, start=1):
        decision_style = "green" if record.decision.value == "allow" else "red"
        table.add_row(
            str(index),
            _display_key(key),
            f"[{decision_style}]{record.decision.value}[/{decision_style}]",
            str(record.count),
            record.updated_at[:19],
        )

    console.print(table)


@app.command()
def audit(
    limit: int = typer.Option(20, "--limit", "-l", help="Number of entries to show"),
) -> None:
    """Show the most recent authorization decisions."""
    from auracle.app import build_enclave

    entries = build_enclave(get_settings()).audit.read_entries(limit=limit)
    if not entries:
        console.print("[dim]Audit log is empty.[/dim]")
        return

    table = Table(title="Audit Trail")
    table.add_column("Time", style="yellow", no_wrap=True)
    table.add_column("Tool", style="cyan")
    table.add_column("Risk")
    table.add_column("Scope")
    table.add_column("Decision", style="bold")
    table.add_column("Arguments", style="dim")

    for entry in entries:
        table.add_row(
            entry.timestamp[:19],
            entry.tool,
            entry.risk,
            entry.scope,
            entry.decision,
            entry.args[:60],
        )

    console.print(table)


if __name__ == "__main__":
    app()
