"""
procctl - operator CLI for procflow processes

Commands:
- procctl handle - Apply a command (validate + append one event)
- procctl replay / reprocess - Rebuild processes, point-in-time inspection
- procctl process show/list/events/verify/corrections/remove/force
- procctl registry - Show event handlers and subscriptions
"""

from procflow import __version__
