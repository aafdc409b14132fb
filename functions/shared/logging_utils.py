"""
Structured logging utilities for CloudWatch Logs Insights.

Every line carries the invocation's request id plus any billing context
bound with ``bind_log_context`` (Stripe event id, member id, ...), so one
webhook delivery or stream record can be followed across modules.
"""

import json
import logging
import os
import uuid
from contextvars import ContextVar
from typing import Optional

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_log_context_var: ContextVar[Optional[dict]] = ContextVar("log_context", default=None)

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message", "asctime",
})


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: fixed fields, bound context, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(""),
            "function_name": os.environ.get("AWS_LAMBDA_FUNCTION_NAME", ""),
        }
        log_entry.update(_log_context_var.get() or {})
        log_entry.update(
            (key, value) for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS
        )

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def configure_structured_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Route all logging through one JSON handler on the root logger.

    Call this at the start of every handler; it is safe to call on warm starts.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(handler)

    return root_logger


def set_request_id(event: dict) -> str:
    """
    Start a new invocation: set the request ID and drop any bound context.

    Stream batches carry no request context, so they get a fresh ID.
    """
    request_id = (event.get("requestContext") or {}).get("requestId")

    if not request_id:
        headers = event.get("headers") or {}
        request_id = headers.get("x-request-id") or headers.get("X-Request-Id")

    if not request_id:
        request_id = str(uuid.uuid4())

    request_id_var.set(request_id)
    _log_context_var.set(None)
    return request_id


def bind_log_context(**fields) -> None:
    """Add fields to every log line for the rest of the invocation."""
    context = dict(_log_context_var.get() or {})
    context.update(fields)
    _log_context_var.set(context)


def unbind_log_context(*keys: str) -> None:
    """Remove fields bound by ``bind_log_context``."""
    context = dict(_log_context_var.get() or {})
    for key in keys:
        context.pop(key, None)
    _log_context_var.set(context)


def log_api_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    latency_ms: float,
    customer_id: Optional[str] = None,
) -> None:
    """One summary line per HTTP request."""
    logger.info(
        f"{method} {path} -> {status_code}",
        extra={
            "http_method": method,
            "path": path,
            "status_code": status_code,
            "latency_ms": round(latency_ms, 2),
            "customer_id": customer_id or "unknown",
        }
    )


def log_external_call(
    logger: logging.Logger,
    service: str,
    operation: str,
    success: bool,
    latency_ms: float,
    error: Optional[str] = None,
) -> None:
    """One line per Stripe call; failures log at WARNING."""
    level = logging.INFO if success else logging.WARNING
    logger.log(
        level,
        f"External call to {service}: {operation} -> {'success' if success else 'failed'}",
        extra={
            "service": service,
            "operation": operation,
            "success": success,
            "latency_ms": round(latency_ms, 2),
            "error": error,
        }
    )
