# src/flowtester/core/__init__.py
"""Core infrastructure: configuration, logging and the notification bus."""

from flowtester.core.config import (
    EngineSettings,
    FlowTesterSettings,
    GraphSettings,
    ServerSettings,
    TestCaseSettings,
    TestSuiteSettings,
    load_settings,
)
from flowtester.core.events import EventBus, EventBusProtocol, NullEventBus
from flowtester.core.logging import configure_logging, get_logger

__all__ = [
    "EngineSettings",
    "EventBus",
    "EventBusProtocol",
    "FlowTesterSettings",
    "GraphSettings",
    "NullEventBus",
    "ServerSettings",
    "TestCaseSettings",
    "TestSuiteSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
