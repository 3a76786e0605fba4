"""
Replay commands: rebuild one process, or reprocess all of them
"""

from typing import Optional

import typer
from rich.syntax import Syntax
from rich.table import Table

from procflow.core import ConfigError, ProcflowError, ReplayCorruptionError
from procflow.core.canonical import canonical_json_str
from procflow.core.clock import parse_timestamp
from procflow.replay import compute_state_hash

from .common import PATH_HELP, STORE_HELP, console, fail, open_app, print_json


def replay_command(
    process_id: str = typer.Argument(..., help="Process to rebuild"),
    as_of: Optional[str] = typer.Option(
        None, "--as-of", "-t", help="Point-in-time (ISO timestamp); read-only, no actions run"
    ),
    no_dispatch: bool = typer.Option(False, "--no-dispatch", help="Rebuild without executing pending actions"),
    show_state: bool = typer.Option(False, "--show-state", "-s", help="Show derived attributes"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Rebuild a process from its events, retrying failed actions.

    Examples:
        procctl replay order-1
        procctl replay order-1 --as-of 2024-01-01T00:00:03+00:00 --show-state
        procctl replay order-1 --json
    """
    try:
        cutoff = parse_timestamp(as_of) if as_of else None
    except ValueError as e:
        fail(f"invalid --as-of: {e}", json_output, code=1)

    try:
        app = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        if cutoff is not None:
            result = app.runtime.state_at(process_id, cutoff)
        else:
            result = app.runtime.rebuild(process_id, dispatch=not no_dispatch)
    except ReplayCorruptionError as e:
        fail(f"{e} (process flagged)", json_output, code=3)
    except ProcflowError as e:
        fail(str(e), json_output)
    finally:
        app.close()

    state_hash = compute_state_hash(result.process)
    executed = [
        {
            "event_id": ex.event_id,
            "event_type": ex.event_type,
            "action": ex.action,
            "status": ex.outcome.status.value,
            "error": ex.outcome.error,
        }
        for ex in result.executed
    ]

    if json_output:
        output = {
            "process_id": result.process.id,
            "status": result.status,
            "applied": result.applied,
            "skipped": result.skipped,
            "executed": executed,
            "as_of": result.as_of.isoformat() if result.as_of else None,
            "persisted": result.persisted,
            "state_hash": state_hash,
        }
        if show_state:
            output["attributes"] = result.process.attributes
        print_json(output)
        return

    label = f" as of {result.as_of.isoformat()}" if result.as_of else ""
    console.print(f"[green]✓ Rebuilt {result.process.id}{label}[/green]")
    console.print(f"  Status: [bold]{result.status}[/bold]")
    console.print(f"  Events applied: [cyan]{result.applied}[/cyan], skipped: [cyan]{result.skipped}[/cyan]")
    console.print(f"  State hash: [yellow]{state_hash}[/yellow]")

    if executed:
        table = Table(title="Executed Actions")
        table.add_column("Event", style="dim")
        table.add_column("Type", style="green")
        table.add_column("Action", style="cyan")
        table.add_column("Outcome")
        for ex in executed:
            style = "green" if ex["status"] == "succeeded" else "red"
            table.add_row(ex["event_id"][:12], ex["event_type"], ex["action"], f"[{style}]{ex['status']}[/{style}]")
        console.print(table)

    if show_state:
        console.print("\n[bold]Attributes:[/bold]")
        console.print(Syntax(canonical_json_str(result.process.attributes), "json", theme="monokai"))


def reprocess_command(
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="Only processes of this kind"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Rebuild every process, retrying failed actions. Corrupt processes are flagged.

    Examples:
        procctl reprocess
        procctl reprocess --kind order --json
    """
    try:
        app = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        report = app.runtime.reprocess_all(kind)
    except ProcflowError as e:
        fail(str(e), json_output)
    finally:
        app.close()

    if json_output:
        print_json(
            {
                "rebuilt": report.rebuilt,
                "flagged": report.flagged,
                "failed_actions": report.failed_actions,
            }
        )
    else:
        console.print(f"[green]✓ Rebuilt {len(report.rebuilt)} processes[/green]")
        if report.failed_actions:
            console.print(f"  [yellow]{report.failed_actions} actions still failing[/yellow]")
        for pid, reason in sorted(report.flagged.items()):
            console.print(f"  [red]✗ {pid} flagged:[/red] {reason}")

    if report.flagged:
        raise typer.Exit(3)
