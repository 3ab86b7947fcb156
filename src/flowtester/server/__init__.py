# src/flowtester/server/__init__.py
"""HTTP and websocket control surface for the test orchestrator."""

from flowtester.server.app import FlowTesterServer, NotificationHub, create_app
from flowtester.server.commands import CommandDispatcher, CommandError

__all__ = [
    "CommandDispatcher",
    "CommandError",
    "FlowTesterServer",
    "NotificationHub",
    "create_app",
]
