"""Structured logging setup using structlog.

The same shared processor chain feeds either a plain ConsoleRenderer (local use)
or a JSONRenderer (log shipping). Standard-library ``logging`` is routed through
the same formatter so third-party libraries (litellm, urllib3) share the output
format. Everything goes to stderr; stdout is reserved for CLI output.
"""

from __future__ import annotations

import logging
import sys

import structlog

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(level: str = "WARNING", json_output: bool = False) -> None:
    """Configure structlog + stdlib logging.

    Safe to call more than once: the root handler is replaced each time and
    bound to the *current* ``sys.stderr``.

    Args:
        level: Root log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Render JSON lines instead of human-readable console output.
    """
    level = level.upper()
    if level not in _LEVELS:
        level = "WARNING"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
        final = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ]
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
        final = [structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        # Not cached: the CLI reconfigures per invocation and streams change under test.
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=final,
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # litellm is chatty at INFO; keep it one notch quieter than ours.
    logging.getLogger("LiteLLM").setLevel(max(logging.getLevelName(level), logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a named structlog logger (configuration is left to the entry point)."""
    return structlog.get_logger(name)
