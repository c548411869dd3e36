"""Logging module with structured formatters, coordinate redaction, and context management."""

from .context import ContextFilter, LogContext, log_context, log_subject_context
from .filters import CoordinateRedactionFilter, DefaultCorrelationFilter
from .formatters import DevFormatter, JSONFormatter
from .setup import get_logger, setup_logging, setup_logging_from_settings

__all__ = [
    "setup_logging",
    "setup_logging_from_settings",
    "get_logger",
    "log_context",
    "log_subject_context",
    "JSONFormatter",
    "DevFormatter",
    "CoordinateRedactionFilter",
    "DefaultCorrelationFilter",
    "LogContext",
    "ContextFilter",
]
