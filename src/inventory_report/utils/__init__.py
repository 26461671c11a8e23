"""Utilities package for the inventory report service.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from inventory_report.utils.exceptions import (
    ConfigurationError,
    DataSourceError,
    EmptyResultError,
    ErrorCode,
    HTTPStatusMixin,
    MalformedContainerError,
    ReportError,
    SheetNotFoundError,
    StorageError,
    TemplateError,
    TemplateNotFoundError,
    ValidationError,
    WorkbookUpdateError,
)
from inventory_report.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Exceptions
    "ConfigurationError",
    "DataSourceError",
    "EmptyResultError",
    "ErrorCode",
    "HTTPStatusMixin",
    "MalformedContainerError",
    "ReportError",
    "SheetNotFoundError",
    "StorageError",
    "TemplateError",
    "TemplateNotFoundError",
    "ValidationError",
    "WorkbookUpdateError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
