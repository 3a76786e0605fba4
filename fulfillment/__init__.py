"""
Order fulfillment process built on procflow.
"""

from .app import App, bootstrap, build_app
from .definition import KIND, build_registry, order_definition
from .events import OrderEvent
from .integrations import Integrations

__all__ = ["App", "bootstrap", "build_app", "KIND", "build_registry", "order_definition", "OrderEvent", "Integrations"]
