"""structlog setup for dirshare.

Request-scoped fields (``request_id``, ``share_token``) are bound with
``structlog.contextvars`` by the middleware and share routes, and are
merged into every entry emitted while they are bound.

Usage::

    from dirshare.observability.logging import configure_logging, get_logger

    configure_logging(level="DEBUG")
    logger = get_logger(__name__)
    logger.info("share_created", token=token)
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

_configured = False

# Servers that would otherwise double up on request lines.
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
}


def _renderer(json_output: bool):
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Only the first call has an effect.

    Args:
        level: Root level name; defaults to LOG_LEVEL, then INFO.
        json_output: JSON lines when True, console rendering when False.
            Defaults to LOG_FORMAT != "console".
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") != "console"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(json_output),
        ],
    ))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level, logging.INFO))
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
