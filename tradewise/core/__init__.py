"""
Core Module

Error taxonomy and failure-isolation helpers.
"""

from .errors import (
    DataError,
    ErrorCategory,
    ErrorCode,
    ErrorCodes,
    ErrorSeverity,
    ExternalServiceError,
    TradewiseError,
    ValidationError,
    run_isolated,
    run_isolated_async,
    wrap_exception,
)

__all__ = [
    "ErrorCategory",
    "ErrorSeverity",
    "ErrorCode",
    "ErrorCodes",
    "TradewiseError",
    "DataError",
    "ValidationError",
    "ExternalServiceError",
    "wrap_exception",
    "run_isolated",
    "run_isolated_async",
]
