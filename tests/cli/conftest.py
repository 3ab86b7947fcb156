# tests/cli/conftest.py
"""Shared fixtures for CLI tests."""

import logging
from collections.abc import Iterator

import pytest


@pytest.fixture(autouse=True)
def restore_root_logging() -> Iterator[None]:
    """Undo the handler the CLI attaches to CliRunner's captured stdout.

    The captured stream is closed once ``invoke`` returns, so later log
    records would hit a dead handler.
    """
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
