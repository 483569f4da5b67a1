"""
Configuration Module

Settings and logging for Tradewise.
"""

from .logging import (
    LogContext,
    configure_logging,
    get_logger,
    log_performance,
    log_with_context,
)
from .settings import AnalyticsSettings, get_settings, load_settings

__all__ = [
    "AnalyticsSettings",
    "get_settings",
    "load_settings",
    "LogContext",
    "configure_logging",
    "get_logger",
    "log_performance",
    "log_with_context",
]
