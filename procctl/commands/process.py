"""
Process commands: show, list, events, verify, corrections, remove, force
"""

from typing import Optional

import typer
from rich.syntax import Syntax
from rich.table import Table

from procflow.core import ConfigError, ProcflowError, ReplayCorruptionError, ValidationError
from procflow.core.canonical import canonical_json_str

from .common import PATH_HELP, STORE_HELP, console, event_view, fail, open_app, print_json, process_view

app = typer.Typer()


@app.command()
def show(
    process_id: str = typer.Argument(..., help="Process id"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show a process's stored (last rebuilt) state.

    Examples:
        procctl process show order-1
        procctl process show order-1 --json
    """
    try:
        app_ = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        process = app_.store.load(process_id)
    except ProcflowError as e:
        fail(str(e), json_output)
    finally:
        app_.close()

    view = process_view(process)
    if json_output:
        print_json(view)
        return

    table = Table(show_header=False, box=None)
    table.add_row("[bold]Process[/bold]", process.id)
    table.add_row("Kind", process.kind)
    table.add_row("Status", f"[bold]{process.status}[/bold]")
    table.add_row("Created", view["created_at"])
    table.add_row("Events", str(view["events"]))
    if process.flagged:
        table.add_row("[red]Flagged[/red]", process.flagged)
    console.print(table)
    console.print(Syntax(canonical_json_str(process.attributes), "json", theme="monokai"))


@app.command(name="list")
def list_processes(
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="Only processes of this kind"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List processes with their status."""
    try:
        app_ = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        processes = [app_.store.load(pid) for pid in app_.store.ids(kind)]
    except ProcflowError as e:
        fail(str(e), json_output)
    finally:
        app_.close()

    if json_output:
        print_json({"processes": [process_view(p) for p in processes], "count": len(processes)})
        return

    if not processes:
        console.print("[yellow]No processes[/yellow]")
        return

    table = Table(title="Processes")
    table.add_column("Id", style="yellow")
    table.add_column("Kind")
    table.add_column("Status", style="green")
    table.add_column("Events", justify="right", style="cyan")
    table.add_column("Flagged", style="red")
    for p in processes:
        table.add_row(p.id, p.kind, p.status or "", str(len(p.events)), p.flagged or "")
    console.print(table)


@app.command()
def events(
    process_id: str = typer.Argument(..., help="Process id"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List a process's events with their action outcomes.

    Examples:
        procctl process events order-1
        procctl process events order-1 --json
    """
    try:
        app_ = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        stored = list(app_.store.read(process_id))
    except ProcflowError as e:
        fail(str(e), json_output)
    finally:
        app_.close()

    if json_output:
        print_json({"events": [event_view(ev) for ev in stored], "count": len(stored)})
        return

    table = Table(title=f"Events: {process_id}")
    table.add_column("Pos", style="cyan", justify="right")
    table.add_column("Type", style="green")
    table.add_column("Occurred At")
    table.add_column("Id", style="dim")
    table.add_column("Actions")
    for ev in stored:
        actions = ", ".join(
            f"{rec.name}={rec.status.value}" + (f" (x{rec.attempts})" if rec.attempts > 1 else "")
            for rec in ev.actions.values()
        )
        table.add_row(str(ev.position), ev.type, ev.occurred_at.isoformat(), ev.id[:12], actions or "-")
    console.print(table)


@app.command()
def verify(
    process_id: str = typer.Argument(..., help="Process id"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Verify a process's event hash chain."""
    try:
        app_ = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        count = app_.store.verify(process_id)
    except ProcflowError as e:
        fail(str(e), json_output, code=1)
    finally:
        app_.close()

    if json_output:
        print_json({"process_id": process_id, "valid": True, "events": count})
    else:
        console.print(f"[green]✓ Hash chain valid ({count} events)[/green]")


@app.command()
def corrections(
    process_id: str = typer.Argument(..., help="Process id"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show the audit trail of removed events."""
    try:
        app_ = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        entries = app_.store.corrections(process_id)
    except ProcflowError as e:
        fail(str(e), json_output)
    finally:
        app_.close()

    if json_output:
        print_json({"corrections": entries, "count": len(entries)})
        return

    if not entries:
        console.print("[yellow]No corrections[/yellow]")
        return

    table = Table(title=f"Corrections: {process_id}")
    table.add_column("Removed At")
    table.add_column("Event", style="green")
    table.add_column("Pos", justify="right", style="cyan")
    table.add_column("Actor", style="yellow")
    table.add_column("Reason")
    for c in entries:
        table.add_row(c["removed_at"], c["event_type"], str(c["position"]), c["actor"], c["reason"])
    console.print(table)


@app.command()
def remove(
    process_id: str = typer.Argument(..., help="Process id"),
    event_id: str = typer.Argument(..., help="Event to remove"),
    reason: str = typer.Option(..., "--reason", "-r", help="Why the event is removed"),
    actor: str = typer.Option(..., "--actor", "-a", help="Who removes it"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Remove an event as an audited correction and rebuild the process.

    Examples:
        procctl process remove order-1 3f2a... --reason "duplicate webhook" --actor ops
    """
    try:
        app_ = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        result = app_.runtime.remove_event(process_id, event_id, reason=reason, actor=actor)
    except ValidationError as e:
        fail(str(e), json_output, code=1)
    except ReplayCorruptionError as e:
        fail(f"{e} (process flagged)", json_output, code=3)
    except ProcflowError as e:
        fail(str(e), json_output)
    finally:
        app_.close()

    if json_output:
        print_json({"process_id": process_id, "removed": event_id, "status": result.status})
    else:
        console.print(f"[green]✓ Removed {event_id}[/green]; status now [bold]{result.status}[/bold]")


@app.command()
def force(
    process_id: str = typer.Argument(..., help="Process id"),
    event_id: str = typer.Argument(..., help="Event the action belongs to"),
    action: str = typer.Argument(..., help="Action name"),
    reason: str = typer.Option(..., "--reason", "-r", help="Why the action is re-executed"),
    actor: str = typer.Option(..., "--actor", "-a", help="Who forces it"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Re-execute one action even if it already succeeded (audited).

    Examples:
        procctl process force order-1 3f2a... send_payment_success_email -r "mail bounced" -a ops
    """
    try:
        app_ = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        result = app_.runtime.force_action(process_id, event_id, action, reason=reason, actor=actor)
    except ValidationError as e:
        fail(str(e), json_output, code=1)
    except ReplayCorruptionError as e:
        fail(f"{e} (process flagged)", json_output, code=3)
    except ProcflowError as e:
        fail(str(e), json_output)
    finally:
        app_.close()

    outcome = next(
        (ex.outcome for ex in result.executed if ex.event_id == event_id and ex.action == action), None
    )
    status = outcome.status.value if outcome else "not executed"
    if json_output:
        print_json({"process_id": process_id, "event_id": event_id, "action": action, "outcome": status})
    else:
        style = "green" if status == "succeeded" else "red"
        console.print(f"Forced {action} on {event_id}: [{style}]{status}[/{style}]")
