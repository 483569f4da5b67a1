"""
Tradewise Logging Configuration

Structured (JSON) and console logging for the analytics and signal engines,
with request correlation for the API layer and a timing decorator for
long-running computations.
"""

import asyncio
import json
import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Extra fields prefixed with ctx_ are lifted into the log output
CONTEXT_PREFIX = "ctx_"

# Loggers that are noisy at INFO
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "httpx", "httpcore", "asyncio")


def _context_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key[len(CONTEXT_PREFIX):]: value
        for key, value in record.__dict__.items()
        if key.startswith(CONTEXT_PREFIX)
    }


class StructuredFormatter(logging.Formatter):
    """
    JSON log formatter.

    One JSON object per line, suitable for ELK, Datadog or CloudWatch.
    """

    def __init__(self, service_name: str = "tradewise", environment: str = "development"):
        super().__init__()
        self.service_name = service_name
        self.environment = environment
        self.hostname = os.uname().nodename if hasattr(os, "uname") else "unknown"

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "environment": self.environment,
            "hostname": self.hostname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "request_id": request_id_var.get(),
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        log_data.update(_context_fields(record))

        return json.dumps(
            {k: v for k, v in log_data.items() if v is not None}, default=str
        )


class ConsoleFormatter(logging.Formatter):
    """Human-readable, colored formatter for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        request_id = request_id_var.get()
        req_str = f"[{request_id[:8]}] " if request_id else ""

        formatted = (
            f"{timestamp} {color}{record.levelname:8}{self.RESET} "
            f"{req_str}{record.name} - {record.getMessage()}"
        )

        extras = [f"{k}={v}" for k, v in _context_fields(record).items()]
        if extras:
            formatted += f" | {', '.join(extras)}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    service_name: str = "tradewise",
    environment: str = "development",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure root logging for Tradewise.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON lines instead of console format
        service_name: Service name for structured logs
        environment: Deployment environment name
        log_file: Optional file that always receives JSON logs
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    if json_format:
        formatter: logging.Formatter = StructuredFormatter(service_name, environment)
    else:
        formatter = ConsoleFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter(service_name, environment))
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (typically ``__name__``)."""
    return logging.getLogger(name)


def set_request_context(request_id: Optional[str] = None) -> str:
    """Bind a request ID to the current context and return it."""
    req_id = request_id or str(uuid.uuid4())
    request_id_var.set(req_id)
    return req_id


def clear_request_context() -> None:
    request_id_var.set(None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


T = TypeVar("T")


def log_performance(threshold_ms: float = 1000.0) -> Callable:
    """
    Decorator logging how long a computation took.

    Logs at DEBUG normally and at WARNING above ``threshold_ms``.
    Exceptions are logged and re-raised.

    Example:
        @log_performance(threshold_ms=250)
        def calculate_metrics(self, trades, equity_curve):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        logger = logging.getLogger(func.__module__)

        def _report(start_time: float, error: Optional[BaseException] = None) -> None:
            duration_ms = (time.perf_counter() - start_time) * 1000
            extra = {
                "ctx_function": func.__name__,
                "ctx_duration_ms": round(duration_ms, 2),
                "ctx_status": "error" if error else "success",
            }
            if error is not None:
                extra["ctx_error_type"] = type(error).__name__
                logger.error(
                    f"Operation failed: {func.__name__} - {error}",
                    extra=extra,
                    exc_info=True,
                )
            elif duration_ms > threshold_ms:
                logger.warning(
                    f"Slow operation: {func.__name__} took {duration_ms:.2f}ms",
                    extra=extra,
                )
            else:
                logger.debug(
                    f"Operation completed: {func.__name__} in {duration_ms:.2f}ms",
                    extra=extra,
                )

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _report(start_time, e)
                raise
            _report(start_time)
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(start_time, e)
                raise
            _report(start_time)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


class LogContext:
    """Context manager adding structured fields to every record in a block."""

    def __init__(self, **fields: Any):
        self.fields = {f"{CONTEXT_PREFIX}{k}": v for k, v in fields.items()}
        self._old_factory: Optional[Callable[..., logging.LogRecord]] = None

    def __enter__(self) -> "LogContext":
        old_factory = logging.getLogRecordFactory()
        self._old_factory = old_factory
        fields = self.fields

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            for key, value in fields.items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._old_factory:
            logging.setLogRecordFactory(self._old_factory)


def log_with_context(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Log ``message`` with ``context`` attached as structured fields."""
    extra = {f"{CONTEXT_PREFIX}{k}": v for k, v in context.items()}
    logger.log(level, message, extra=extra)
