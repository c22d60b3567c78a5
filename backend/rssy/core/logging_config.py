"""
Structured logging configuration with JSON formatting and context ids.

HTTP requests and scheduler ticks each carry a context id so that every log
line of one request or one job cycle can be correlated.
"""

import logging
import sys
import uuid
from typing import Optional
from datetime import datetime, timezone
from pythonjsonlogger import jsonlogger
from contextvars import ContextVar
from contextlib import contextmanager
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Context variable for the current request or job cycle id
context_id_var: ContextVar[Optional[str]] = ContextVar("context_id", default=None)


class ContextIdFilter(logging.Filter):
    """Add the context id to log records."""

    def filter(self, record):
        record.context_id = context_id_var.get() or "none"
        return True


class RssyJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level, source and context fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["context_id"] = getattr(record, "context_id", "none")
        log_record["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        # Job context
        if hasattr(record, "job"):
            log_record["job"] = record.job
        if hasattr(record, "feed_id"):
            log_record["feed_id"] = record.feed_id
        if hasattr(record, "email"):
            log_record["email"] = record.email


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Configure the root logger with a single stdout handler."""

    if json_logs:
        formatter = RssyJsonFormatter("%(message)s")
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] [%(context_id)s] %(message)s"
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Route uvicorn and apscheduler through the same handler
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.addHandler(console_handler)
        uvicorn_logger.propagate = False

    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


@contextmanager
def job_context(job: str):
    """Tag every log line emitted inside the block with a fresh `<job>-<id>` context."""
    token = context_id_var.set(f"{job}-{uuid.uuid4().hex[:8]}")
    try:
        yield
    finally:
        context_id_var.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation IDs to requests."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        token = context_id_var.set(correlation_id)
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
        finally:
            context_id_var.reset(token)

        response.headers["X-Correlation-ID"] = correlation_id
        return response
