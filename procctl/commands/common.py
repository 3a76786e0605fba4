"""
Shared CLI plumbing: app opening, option defaults and error output.
"""

import json
from dataclasses import replace
from typing import Any, Dict, List, NoReturn, Optional

import typer
from rich.console import Console

from fulfillment import App, build_app
from procflow.config import STORE_TYPES, Settings
from procflow.core import ConfigError

console = Console()

STORE_HELP = "Store backend: memory, file or sqlite (default: PROCFLOW_STORE)"
PATH_HELP = "Store directory or database path (default: PROCFLOW_STORE_PATH)"


def open_app(store: Optional[str], path: Optional[str]) -> App:
    """
    Build the order app from the environment plus CLI overrides.

    Raises:
        ConfigError: Invalid settings
    """
    settings = Settings.from_env()
    if store:
        if store not in STORE_TYPES:
            raise ConfigError(f"--store must be one of {', '.join(STORE_TYPES)}, got {store!r}")
        settings = replace(settings, store=store)
    if path:
        settings = replace(settings, store_path=path)
    return build_app(settings)


def parse_params(pairs: List[str]) -> Dict[str, Any]:
    """
    Parse key=value pairs. Values are read as JSON when they parse, else as strings.

    Raises:
        ValueError: A pair without '='
    """
    params: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"expected key=value, got {pair!r}")
        try:
            params[key] = json.loads(raw)
        except ValueError:
            params[key] = raw
    return params


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def fail(message: str, json_output: bool, code: int = 2) -> NoReturn:
    if json_output:
        print(json.dumps({"error": message}))
    else:
        console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code)


def process_view(process) -> Dict[str, Any]:
    return {
        "id": process.id,
        "kind": process.kind,
        "status": process.status,
        "flagged": process.flagged,
        "created_at": process.created_at.isoformat(),
        "attributes": process.attributes,
        "events": len(process.events),
    }


def event_view(event) -> Dict[str, Any]:
    data = event.to_dict()
    data["actions"] = event.outcomes_to_list()
    return data
