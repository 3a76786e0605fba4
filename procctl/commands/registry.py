"""
Registry command: inspect event handlers and subscriptions without running them
"""

import typer
from rich.table import Table

from fulfillment import order_definition

from .common import console, print_json


def registry_command(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show event types, mutations, payload records and subscribed actions.

    Examples:
        procctl registry
        procctl registry --json
    """
    definition = order_definition()
    rows = definition.registry.describe()

    if json_output:
        print_json({"kind": definition.kind, "statuses": list(definition.statuses), "handlers": rows})
        return

    table = Table(title=f"Handlers: {definition.kind}")
    table.add_column("Event Type", style="green")
    table.add_column("Mutation", style="cyan")
    table.add_column("Payload")
    table.add_column("Actions [conditions]", style="yellow")
    for row in rows:
        subs = "\n".join(
            f"{s['action']} [{', '.join(s['conditions'])}]" for s in row["subscriptions"]
        )
        table.add_row(row["event_type"], row["mutation"], row["payload"] or "-", subs or "-")
    console.print(table)
