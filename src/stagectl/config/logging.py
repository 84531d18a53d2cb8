"""structlog configuration for stagectl.

Everything goes to stderr so stdout stays reserved for the run result:
- Human (default): console renderer, colored on a TTY unless NO_COLOR is set
- JSON (--log-json): one JSON object per line, for CI log collectors

Both stagectl's structlog events and the stdlib records from the stage
modules pass through the same processor chain, so the run context bound
by :func:`run_context` (app name, stack id, environment) appears on
every line emitted while a run is in progress.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from stagectl.domain.identity import RunIdentity

STAGE_LOGGER = "stagectl"

# Third-party clients that log request-level chatter at INFO/DEBUG.
_NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")


def _level(*, verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def _renderer(*, log_json: bool) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    colors = sys.stderr.isatty() and "NO_COLOR" not in os.environ
    return structlog.dev.ConsoleRenderer(colors=colors)


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_json: bool = False,
) -> None:
    """Configure structlog processors and output routing.

    Args:
        verbose: Show DEBUG output, including the commands being run.
        quiet: Only warnings and errors. Ignored when *verbose* is set.
        log_json: Use JSON renderer instead of console renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_json=log_json),
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger(STAGE_LOGGER).setLevel(_level(verbose=verbose, quiet=quiet))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def run_context(identity: RunIdentity) -> AbstractContextManager[object]:
    """Bind the run's identity to every log line emitted inside the block."""
    return structlog.contextvars.bound_contextvars(
        app_name=identity.app_name,
        stack_id=identity.stack_id,
        environment=identity.environment,
    )
