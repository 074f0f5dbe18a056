"""structlog configuration for valchain.

Two output modes, both to stderr by default:
- console renderer for humans
- JSON lines when ``log_json`` is set

The library only emits build-time events (plugins loaded, strategies
chosen, array hierarchies built). Embedding applications opt in by calling
:func:`configure_logging` or :func:`configure_from`.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from valchain.config.models import LoggingConfig

LOGGER_NAME = "valchain"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool, stream: TextIO) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib records for the ``valchain`` logger.

    Args:
        verbose: DEBUG for the valchain logger; WARNING otherwise.
        log_json: JSON renderer instead of the console renderer.
        stream: Output stream, stderr when omitted.
    """
    out = stream if stream is not None else sys.stderr
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json, out),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if verbose else logging.WARNING)


def configure_from(config: LoggingConfig) -> None:
    """Apply a ``[logging]`` config section."""
    configure_logging(verbose=config.verbose, log_json=config.log_json)

