# src/gtfsdb/core/logging.py
"""Logging for gtfsdb.

Events from gtfsdb modules (structlog) and records from SQLAlchemy or
Dynaconf (stdlib) leave through one handler on stderr, rendered as JSON or
for the console. stdout carries command output only, so ``gtfsdb order``
and ``gtfsdb config`` can be piped.

The configured level applies to the ``gtfsdb`` logger tree. Every other
logger is held at WARNING or above.

Library modules call get_logger() and feed_context(); the CLI is the only
caller of configure_logging().
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

PACKAGE_LOGGER = "gtfsdb"

# Floor for loggers outside the gtfsdb tree
THIRD_PARTY_LEVEL = logging.WARNING


def _parse_level(level: str) -> int:
    try:
        return logging.getLevelNamesMapping()[level.upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level!r}") from None


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Route every log record through a single handler.

    Args:
        json_output: One JSON object per line instead of console rendering
        level: Level name for gtfsdb's own loggers (DEBUG, INFO, ...)
        stream: Destination, stderr at call time if None

    Raises:
        ValueError: If ``level`` is not a logging level name
    """
    gtfsdb_level = _parse_level(level)
    stream = stream if stream is not None else sys.stderr

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        renderers: list[Any] = [
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [
            ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=stream.isatty()),
        ]

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # configure_logging may run more than once per process (tests, CliRunner)
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(ProcessorFormatter(processors=renderers, foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(max(gtfsdb_level, THIRD_PARTY_LEVEL))
    logging.getLogger(PACKAGE_LOGGER).setLevel(gtfsdb_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a gtfsdb module; pass ``__name__`` so the level applies."""
    return structlog.stdlib.get_logger(name)


@contextmanager
def feed_context(location: str, **fields: Any) -> Iterator[None]:
    """Attach the feed database location and ``fields`` to every event logged in the block.

    Nested blocks add fields; leaving a block restores the outer values.
    """
    with structlog.contextvars.bound_contextvars(location=location, **fields):
        yield
