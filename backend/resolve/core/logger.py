"""
Logging setup shared by the whole backend.

Every record carries a ``correlation_id`` attribute; CorrelationMiddleware
binds it per request so log lines from one HTTP call can be grouped.
"""
from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

from resolve.core.config import settings

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = correlation_id_var.get()
        return True


def configure_logging(level: str | None = None) -> logging.Logger:
    root = logging.getLogger()
    if not any(getattr(h, "_resolve_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(CorrelationIdFilter())
        handler._resolve_handler = True
        root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())
    return logging.getLogger("resolve")


logger = configure_logging()
