"""
Tradewise Error Handling Module

Structured error codes and exception types, plus helpers that isolate
optional enrichment steps so a failure degrades a result instead of
aborting a computation.
"""

import asyncio
import logging
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Error Code Taxonomy
# =============================================================================


class ErrorCategory(Enum):
    """Top-level error categories."""

    DATA = "DATA"
    VALIDATION = "VALIDATION"
    EXTERNAL = "EXTERNAL"
    SYSTEM = "SYSTEM"


class ErrorSeverity(Enum):
    """Error severity levels, mapped onto logging levels by name."""

    DEBUG = auto()
    INFO = auto()
    WARNING = auto()
    ERROR = auto()
    CRITICAL = auto()


@dataclass(frozen=True)
class ErrorCode:
    """Structured error code with metadata."""

    code: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    user_message: str
    http_status: int
    retryable: bool = False

    def __str__(self) -> str:
        return f"{self.category.value}_{self.code}"


class ErrorCodes:
    """Registry of Tradewise error codes."""

    # Data errors (2xxx)
    DATA_MALFORMED_RECORD = ErrorCode(
        code="2001",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.WARNING,
        message="Input record is malformed and was skipped",
        user_message="Some input records could not be used.",
        http_status=422,
    )
    DATA_DEGENERATE_INPUT = ErrorCode(
        code="2002",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.INFO,
        message="Input is empty or degenerate",
        user_message="Not enough data to compute every statistic.",
        http_status=200,
    )
    DATA_UNPARSABLE_DATE = ErrorCode(
        code="2003",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.WARNING,
        message="Date could not be parsed",
        user_message="A date value was not understood.",
        http_status=422,
    )

    # Validation errors (4xxx)
    VALIDATION_INVALID_VALUE = ErrorCode(
        code="4001",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.WARNING,
        message="Invalid value",
        user_message="A value is outside its allowed range.",
        http_status=400,
    )
    VALIDATION_CLAMPED_VALUE = ErrorCode(
        code="4002",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.WARNING,
        message="Value violated its contract and was clamped",
        user_message="A value was adjusted into its allowed range.",
        http_status=200,
    )

    # External service errors (6xxx)
    EXTERNAL_ENRICHMENT_FAILED = ErrorCode(
        code="6001",
        category=ErrorCategory.EXTERNAL,
        severity=ErrorSeverity.ERROR,
        message="Optional enrichment step failed",
        user_message="Some supplementary data is unavailable.",
        http_status=200,
        retryable=True,
    )
    EXTERNAL_TIMEOUT = ErrorCode(
        code="6002",
        category=ErrorCategory.EXTERNAL,
        severity=ErrorSeverity.WARNING,
        message="External call timed out",
        user_message="A supplementary data source took too long.",
        http_status=504,
        retryable=True,
    )

    # System errors (9xxx)
    SYSTEM_INTERNAL_ERROR = ErrorCode(
        code="9001",
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.CRITICAL,
        message="Internal error",
        user_message="An unexpected error occurred.",
        http_status=500,
    )


# =============================================================================
# Exception Hierarchy
# =============================================================================


class TradewiseError(Exception):
    """Base exception carrying an ErrorCode and optional context."""

    def __init__(
        self,
        error_code: ErrorCode,
        detail: str = "",
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.error_code = error_code
        self.detail = detail
        self.context = context or {}
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)
        self.debug_info: Dict[str, Any] = {}

        if original_error is not None:
            self.debug_info["original_traceback"] = traceback.format_exception(
                type(original_error), original_error, original_error.__traceback__
            )

        super().__init__(self.technical_message)

    @property
    def code(self) -> str:
        return str(self.error_code)

    @property
    def category(self) -> ErrorCategory:
        return self.error_code.category

    @property
    def severity(self) -> ErrorSeverity:
        return self.error_code.severity

    @property
    def http_status(self) -> int:
        return self.error_code.http_status

    @property
    def user_message(self) -> str:
        msg = self.error_code.user_message
        if self.detail:
            msg = f"{msg} ({self.detail})"
        return msg

    @property
    def technical_message(self) -> str:
        msg = f"[{self.code}] {self.error_code.message}"
        if self.detail:
            msg = f"{msg}: {self.detail}"
        return msg

    def to_dict(self, include_debug: bool = False) -> Dict[str, Any]:
        """Convert error to a dictionary for API responses."""
        result = {
            "code": self.code,
            "category": self.category.value,
            "message": self.user_message,
            "retryable": self.error_code.retryable,
            "timestamp": self.timestamp.isoformat(),
        }
        if include_debug:
            result["debug"] = {
                "technical_message": self.technical_message,
                "context": self.context,
                "debug_info": self.debug_info,
            }
        return result

    def log(self) -> None:
        """Log the error at the level matching its severity."""
        log_method = getattr(logger, self.severity.name.lower(), logger.error)
        log_method(
            self.technical_message,
            extra={"ctx_error_code": self.code, "ctx_context": self.context},
        )


class DataError(TradewiseError):
    """A record or dataset could not be used as given."""

    def __init__(self, error_code: ErrorCode = ErrorCodes.DATA_MALFORMED_RECORD, **kwargs):
        super().__init__(error_code, **kwargs)


class ValidationError(TradewiseError):
    """A value is outside its allowed range."""

    def __init__(self, error_code: ErrorCode = ErrorCodes.VALIDATION_INVALID_VALUE, **kwargs):
        super().__init__(error_code, **kwargs)


class ExternalServiceError(TradewiseError):
    """An optional upstream collaborator failed."""

    def __init__(self, error_code: ErrorCode = ErrorCodes.EXTERNAL_ENRICHMENT_FAILED, **kwargs):
        super().__init__(error_code, **kwargs)


def wrap_exception(
    exception: BaseException,
    default_code: ErrorCode = ErrorCodes.SYSTEM_INTERNAL_ERROR,
) -> TradewiseError:
    """
    Wrap a generic exception in a TradewiseError.

    Maps common exception types to the matching error code.
    """
    if isinstance(exception, TradewiseError):
        return exception

    exception_mapping = (
        (asyncio.TimeoutError, ExternalServiceError, ErrorCodes.EXTERNAL_TIMEOUT),
        (TimeoutError, ExternalServiceError, ErrorCodes.EXTERNAL_TIMEOUT),
        (ConnectionError, ExternalServiceError, ErrorCodes.EXTERNAL_ENRICHMENT_FAILED),
        (ValueError, DataError, ErrorCodes.DATA_MALFORMED_RECORD),
        (TypeError, DataError, ErrorCodes.DATA_MALFORMED_RECORD),
        (KeyError, DataError, ErrorCodes.DATA_MALFORMED_RECORD),
    )
    for exc_type, error_cls, error_code in exception_mapping:
        if isinstance(exception, exc_type):
            return error_cls(error_code, detail=str(exception), original_error=exception)

    return TradewiseError(default_code, detail=str(exception), original_error=exception)


# =============================================================================
# Failure Isolation
# =============================================================================


def run_isolated(
    step_name: str,
    func: Callable[..., T],
    *args: Any,
    fallback: T,
    **kwargs: Any,
) -> T:
    """
    Run an optional step, returning ``fallback`` if it raises.

    The failure is wrapped, logged with its traceback and swallowed so the
    surrounding pipeline can continue.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        error = wrap_exception(e, ErrorCodes.EXTERNAL_ENRICHMENT_FAILED)
        logger.error(
            f"{step_name} failed, continuing without it: {error.technical_message}",
            extra={"ctx_step": step_name, "ctx_error_code": error.code},
            exc_info=True,
        )
        return fallback


async def run_isolated_async(
    step_name: str,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    fallback: T,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> T:
    """
    Await an optional step with a timeout, returning ``fallback`` on failure.

    Cancellation of the caller is propagated; every other exception, including
    the timeout, is logged and replaced by ``fallback``.
    """
    try:
        return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        error = wrap_exception(e, ErrorCodes.EXTERNAL_ENRICHMENT_FAILED)
        logger.error(
            f"{step_name} failed, continuing without it: {error.technical_message}",
            extra={"ctx_step": step_name, "ctx_error_code": error.code},
            exc_info=not isinstance(error.original_error, asyncio.TimeoutError),
        )
        return fallback
