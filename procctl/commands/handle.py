"""
Handle command: validate a request and append one event
"""

from typing import List, Optional

import typer
from rich.table import Table

from procflow.core import ConfigError, ProcflowError, ValidationError

from .common import PATH_HELP, STORE_HELP, console, fail, open_app, parse_params, print_json


def handle_command(
    command: str = typer.Argument(..., help="Command name (see `procctl commands`)"),
    process_id: Optional[str] = typer.Option(None, "--process", "-p", help="Target process id"),
    params: List[str] = typer.Option([], "--set", "-s", help="Payload field as key=value (repeatable)"),
    store: Optional[str] = typer.Option(None, "--store", help=STORE_HELP),
    path: Optional[str] = typer.Option(None, "--path", help=PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Apply a command: validate, append exactly one event, rebuild.

    Examples:
        procctl handle request_order -p order-1 -s email=a@example.com -s total=100
        procctl handle record_payment -p order-1 -s amount=100 --json
    """
    try:
        app = open_app(store, path)
    except ConfigError as e:
        fail(str(e), json_output)

    try:
        parameters = parse_params(params)
        if process_id:
            parameters["process_id"] = process_id
        result = app.commands.handle(command, parameters)
    except (ValueError, ValidationError) as e:
        fail(str(e), json_output, code=1)
    except ProcflowError as e:
        fail(str(e), json_output)
    finally:
        app.close()

    if json_output:
        print_json(
            {
                "event_id": result.event_id,
                "process_id": result.process_id,
                "status": result.status,
                "failed_actions": list(result.failed_actions),
            }
        )
        return

    console.print(f"[green]✓ {command}[/green] -> event [cyan]{result.event_id}[/cyan]")
    console.print(f"  Process: [yellow]{result.process_id}[/yellow]")
    console.print(f"  Status: [bold]{result.status}[/bold]")
    for action in result.failed_actions:
        console.print(f"  [red]✗ action {action} failed (will retry on next replay)[/red]")


def commands_command():
    """List available commands."""
    from fulfillment.commands import order_commands
    from procflow.core import event_type_name

    table = Table(title="Commands")
    table.add_column("Command", style="green")
    table.add_column("Event", style="cyan")
    table.add_column("Kind")
    table.add_column("Creates", justify="center")
    for cmd in order_commands():
        table.add_row(cmd.name, event_type_name(cmd.event_type), cmd.kind, "yes" if cmd.creates else "")
    console.print(table)
