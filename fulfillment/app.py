"""
Application wiring: store, runtime and command layer for orders.
"""

from dataclasses import dataclass
from typing import Optional

from procflow.command import CommandLayer
from procflow.config import Settings, open_store
from procflow.dispatch import ActionDispatcher
from procflow.log import ProcessStore
from procflow.logging_config import get_logger, setup_logging
from procflow.metrics import start_metrics_server
from procflow.runtime import ProcessRuntime

from .commands import order_commands
from .definition import order_definition
from .integrations import Integrations


@dataclass
class App:
    settings: Settings
    store: ProcessStore
    runtime: ProcessRuntime
    commands: CommandLayer
    integrations: Integrations

    def close(self) -> None:
        self.runtime.close()
        close_store = getattr(self.store, "close", None)
        if close_store is not None:
            close_store()


def build_app(
    settings: Optional[Settings] = None,
    integrations: Optional[Integrations] = None,
    clock=None,
) -> App:
    """
    Wire the order process against the configured store.

    Args:
        settings: Runtime settings (default: from environment)
        integrations: Outbound clients (default: in-memory recording clients)
        clock: Clock for event timestamps (default: system clock)
    """
    settings = settings or Settings.from_env()
    integrations = integrations or Integrations()
    store = open_store(settings, clock=clock)
    dispatcher = ActionDispatcher(
        timeout=settings.action_timeout,
        clock=store.clock,
        max_workers=settings.action_workers,
    )
    runtime = ProcessRuntime(store, [order_definition(integrations)], dispatcher=dispatcher)
    layer = CommandLayer(runtime)
    for command in order_commands():
        layer.register(command)
    return App(settings=settings, store=store, runtime=runtime, commands=layer, integrations=integrations)


def bootstrap(settings: Optional[Settings] = None) -> App:
    """
    Service startup: configure logging, start the metrics endpoint, wire the app.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_format)
    start_metrics_server(enabled=settings.metrics_enabled, port=settings.metrics_port)
    app = build_app(settings)
    get_logger(__name__).info(
        f"procflow started: store={settings.store} path={settings.store_path} "
        f"action_timeout={settings.action_timeout}"
    )
    return app
