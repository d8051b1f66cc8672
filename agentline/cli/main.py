"""agentline CLI — run one tool server on stdio.

stdout belongs to the protocol, so everything human-facing (banners,
logs, errors) goes to stderr.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from agentline.config import settings
from agentline.protocol.engine import ProtocolEngine
from agentline.protocol.provider import ToolProvider
from agentline.storage.gateway import PersistenceGateway

console = Console(stderr=True)

app = typer.Typer(
    name="agentline",
    help="agentline -- directory, mailbox and workspace tool servers for agents, over JSON-RPC on stdio.",
    no_args_is_help=True,
)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _serve(provider: ToolProvider, persist_dir: Path | None) -> None:
    console.print(f"[bold]Starting {provider.name}[/bold] v{provider.version}")
    if persist_dir is not None:
        console.print(f"[dim]Persistence directory: {persist_dir}[/dim]")
    else:
        console.print("[dim]Persistence disabled (in-memory only)[/dim]")

    engine = ProtocolEngine(provider)

    async def _run() -> None:
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGTERM, lambda: asyncio.ensure_future(engine.shutdown()))
        await engine.start()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[dim]Interrupted.[/dim]")
    except Exception as e:
        console.print(f"[red]Server failed:[/red] {e}")
        raise typer.Exit(code=1)


def _gateway(persist_dir: Path | None) -> tuple[PersistenceGateway, Path | None]:
    directory = persist_dir or settings.persist_dir
    return PersistenceGateway(directory), directory


@app.command("directory")
def directory(
    persist_dir: Optional[Path] = typer.Option(None, "--persist-dir", help="Directory for persisted state"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
):
    """Company directory: agent registration, discovery, messages and email."""
    from agentline.directory.server import DirectoryProvider

    _configure_logging(verbose)
    gateway, data_dir = _gateway(persist_dir)
    _serve(DirectoryProvider(gateway), data_dir)


@app.command("notepad")
def notepad(
    persist_dir: Optional[Path] = typer.Option(None, "--persist-dir", help="Directory for persisted state"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
):
    """Per-agent notepad."""
    from agentline.servers.notepad import NotepadProvider

    _configure_logging(verbose)
    gateway, data_dir = _gateway(persist_dir)
    _serve(NotepadProvider(gateway), data_dir)


@app.command("tasks")
def tasks(
    persist_dir: Optional[Path] = typer.Option(None, "--persist-dir", help="Directory for persisted state"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
):
    """Per-agent task list with priorities, due dates and tags."""
    from agentline.servers.task_list import TaskListProvider

    _configure_logging(verbose)
    gateway, data_dir = _gateway(persist_dir)
    _serve(TaskListProvider(gateway), data_dir)


@app.command("kanban")
def kanban(
    persist_dir: Optional[Path] = typer.Option(None, "--persist-dir", help="Directory for persisted state"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
):
    """Per-agent kanban board stored as markdown."""
    from agentline.servers.kanban import KanbanProvider

    _configure_logging(verbose)
    gateway, data_dir = _gateway(persist_dir)
    _serve(KanbanProvider(gateway), data_dir)


@app.command("version")
def version_cmd():
    """Show agentline version."""
    from agentline import __version__
    console.print(f"agentline v{__version__}")


def main() -> None:
    app()
