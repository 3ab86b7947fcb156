# src/flowtester/core/logging.py
"""Structured logging configuration for flowtester.

structlog and stdlib logging share one processor chain: stdlib records are
routed through ``ProcessorFormatter`` so ``logging.getLogger(__name__)`` and
``structlog.get_logger(__name__)`` produce the same output (JSON or console).

Run identity (suite and test id) is bound through structlog contextvars for
the duration of a test-case run, so every log line emitted by actions, hooks
and addons carries it without threading the ids through each call.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Loggers that flood DEBUG output with transport details.
_NOISY_LOGGERS: tuple[str, ...] = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "asyncio",
)


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Drop ProcessorFormatter bookkeeping keys from the rendered event.

    ProcessorFormatter always adds ``_record`` and ``_from_structlog``; a
    missing key means the integration is broken, so ``del`` is deliberate.
    """
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def _shared_processors() -> list[Any]:
    """Processors every record passes through, structlog or stdlib."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderers(json_output: bool) -> list[Any]:
    if json_output:
        return [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        _remove_internal_fields,
        structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
    ]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging.

    Replaces any handler already on the root logger, so calling this twice
    (the CLI does, once per invocation) leaves exactly one stdout handler.

    Args:
        json_output: Render JSON lines instead of the console format.
        level: Root log level (DEBUG, INFO, WARNING, ERROR).
    """
    log_level = getattr(logging, level.upper())
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure logging; cached loggers would keep the old chain.
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processors=_renderers(json_output), foreign_pre_chain=shared))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # Never make noisy loggers more permissive than root.
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound structlog logger for a module.

    Args:
        name: Logger name (typically __name__).
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def bound_run(suite_id: str, test_id: str) -> Iterator[None]:
    """Bind ``suite_id``/``test_id`` to every log line inside the block."""
    with structlog.contextvars.bound_contextvars(suite_id=suite_id, test_id=test_id):
        yield
