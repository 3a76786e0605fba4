#!/usr/bin/env python3
"""
procctl - operator CLI for event-sourced processes

Main entrypoint for the procctl command-line tool.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from procflow.logging_config import setup_logging
from procctl.commands import handle, process, registry, replay

app = typer.Typer(
    name="procctl",
    help="Event-sourced process engine CLI",
    add_completion=False,
)

console = Console()

app.add_typer(process.app, name="process", help="Process inspection and corrections")

app.command(name="handle")(handle.handle_command)
app.command(name="commands")(handle.commands_command)
app.command(name="replay")(replay.replay_command)
app.command(name="reprocess")(replay.reprocess_command)
app.command(name="registry")(registry.registry_command)


@app.callback()
def configure(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Emit logs at this level (text format)"),
):
    """Event-sourced process engine CLI."""
    if log_level:
        setup_logging(log_level, "text")


@app.command()
def version():
    """Show version information."""
    from procctl import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]procctl[/bold]", f"v{__version__}")
    table.add_row("Engine", "procflow")

    console.print(table)


def main():
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
