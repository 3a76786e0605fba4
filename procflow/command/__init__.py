"""
Command layer: external requests in, events out.
"""

from .layer import Command, CommandLayer, CommandResult, Precondition

__all__ = ["Command", "CommandLayer", "CommandResult", "Precondition"]
