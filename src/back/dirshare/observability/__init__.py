"""Observability for dirshare: structlog logging, Prometheus metrics and
request middleware.

Quick start::

    from dirshare.observability import configure_logging
    from dirshare.observability.middleware import AccessMiddleware, RequestIdMiddleware

    configure_logging()
    app.add_middleware(AccessMiddleware)
    app.add_middleware(RequestIdMiddleware)
"""

from .logging import configure_logging, get_logger
from .metrics import metrics_text

__all__ = [
    "configure_logging",
    "get_logger",
    "metrics_text",
]
