"""Centralized exception classes for the inventory report service.

This module provides a hierarchy of custom exceptions with error codes,
HTTP status code mapping, and structured error details for consistent
error handling throughout the application.

Exception Hierarchy:
    ReportError (base)
    ├── TemplateError
    │   ├── TemplateNotFoundError
    │   ├── MalformedContainerError
    │   ├── SheetNotFoundError
    │   └── WorkbookUpdateError
    ├── EmptyResultError
    ├── ValidationError
    ├── DataSourceError
    ├── StorageError
    └── ConfigurationError

Error Codes:
    All errors have a unique error code (e.g., "E1001") that can be used
    for programmatic error handling and documentation. Collaborator errors
    (data source, storage) carry the specific failure reason as their code,
    so callers can branch on ``error_code`` instead of message text.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used in the application.

    Error codes are grouped by category:
    - E1xxx: Template/workbook errors
    - E2xxx: Request and result errors
    - E50xx: Data source errors
    - E51xx: Storage errors
    - E9xxx: Internal/unexpected errors
    """

    # Template errors (E1xxx)
    TEMPLATE_NOT_FOUND = "E1001"
    MALFORMED_CONTAINER = "E1002"
    SHEET_NOT_FOUND = "E1003"
    WORKBOOK_UPDATE_FAILED = "E1004"

    # Request/result errors (E2xxx)
    EMPTY_RESULT = "E2001"
    INVALID_REQUEST = "E2002"

    # Data source errors (E50xx)
    DATA_SOURCE_ERROR = "E5001"
    DATA_SOURCE_UNAVAILABLE = "E5002"
    DATA_SOURCE_AUTH_FAILED = "E5003"
    DATA_SOURCE_QUERY_INVALID = "E5004"
    DATA_SOURCE_INVALID_RESULT = "E5005"

    # Storage errors (E51xx)
    STORAGE_ERROR = "E5101"
    STORAGE_UNAVAILABLE = "E5102"
    STORAGE_AUTH_FAILED = "E5103"
    STORAGE_BUCKET_NOT_FOUND = "E5104"
    STORAGE_ACCESS_DENIED = "E5105"
    STORAGE_UNSUPPORTED_FEATURE = "E5106"
    STORAGE_BAD_RESPONSE = "E5107"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"
    CONFIGURATION_ERROR = "E9002"


class HTTPStatusMixin:
    """Mixin that provides HTTP status code for exceptions.

    Subclasses should set the `http_status` class attribute.
    """

    http_status: int = 500

    def get_http_status(self) -> int:
        """Get the HTTP status code for this exception.

        Returns:
            HTTP status code appropriate for this error.
        """
        return self.http_status


class ReportError(Exception, HTTPStatusMixin):
    """Base exception for all inventory report errors.

    Attributes:
        message: Human-readable error message.
        error_code: Unique error code from ErrorCode enum.
        details: Optional dictionary with additional error details.
        http_status: HTTP status code for API responses (default 500).
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Error code from ErrorCode enum.
            details: Optional additional details about the error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for API responses.

        Returns:
            Dictionary with error information.
        """
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# Template Errors (E1xxx)
# =============================================================================


class TemplateError(ReportError):
    """Base class for template and workbook errors.

    Template errors are configuration or container defects, never transient,
    so they map to a server error and are not retried.
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.WORKBOOK_UPDATE_FAILED,
        template_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if template_path:
            details["template_path"] = template_path
        super().__init__(message, error_code, details)
        self.template_path = template_path


class TemplateNotFoundError(TemplateError):
    """Raised when the configured template path is not a readable file."""

    def __init__(
        self,
        template_path: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = message or f"Template file not found: {template_path}"
        super().__init__(
            message=message,
            error_code=ErrorCode.TEMPLATE_NOT_FOUND,
            template_path=template_path,
            details=details,
        )


class MalformedContainerError(TemplateError):
    """Raised when template bytes do not parse as an OpenXML workbook."""

    def __init__(
        self,
        message: str = "Template is not a valid .xlsx workbook",
        template_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.MALFORMED_CONTAINER,
            template_path=template_path,
            details=details,
        )


class SheetNotFoundError(TemplateError):
    """Raised when the target worksheet is absent from the workbook."""

    def __init__(
        self,
        sheet_name: str,
        available_sheets: list[str] | None = None,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["sheet_name"] = sheet_name
        if available_sheets is not None:
            details["available_sheets"] = available_sheets
        message = message or f"Worksheet '{sheet_name}' not found in the template"
        super().__init__(
            message=message,
            error_code=ErrorCode.SHEET_NOT_FOUND,
            details=details,
        )
        self.sheet_name = sheet_name
        self.available_sheets = available_sheets or []


class WorkbookUpdateError(TemplateError):
    """Raised when clearing, loading, or saving the workbook fails unexpectedly."""

    def __init__(
        self,
        message: str,
        sheet_name: str | None = None,
        stage: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if sheet_name:
            details["sheet_name"] = sheet_name
        if stage:
            details["stage"] = stage
        super().__init__(
            message=message,
            error_code=ErrorCode.WORKBOOK_UPDATE_FAILED,
            details=details,
        )
        self.stage = stage


# =============================================================================
# Request/Result Errors (E2xxx)
# =============================================================================


class EmptyResultError(ReportError):
    """Raised when the report query returned no rows."""

    http_status: int = 400

    def __init__(
        self,
        message: str = "No data found for the specified query",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.EMPTY_RESULT,
            details=details,
        )


class ValidationError(ReportError):
    """General validation error for request input."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with validation details.

        Args:
            message: Main error message.
            field: Field that failed validation.
            errors: List of validation errors.
            details: Additional details.
        """
        details = details or {}
        if field:
            details["field"] = field
        if errors:
            details["validation_errors"] = errors
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_REQUEST,
            details=details,
        )


# =============================================================================
# External Service Errors (E5xxx)
# =============================================================================


class DataSourceError(ReportError):
    """Raised when the report query cannot be executed or read.

    The error code carries the failure reason (authentication, invalid
    query, unavailable server, ...). The connection string is never included.
    """

    http_status: int = 502

    def __init__(
        self,
        message: str,
        reason: ErrorCode = ErrorCode.DATA_SOURCE_ERROR,
        sqlstate: str | None = None,
        hint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with driver information.

        Args:
            message: Error message.
            reason: Specific data source error code.
            sqlstate: SQLSTATE reported by the database, if any.
            hint: Remediation hint for operators.
            details: Additional details.
        """
        details = details or {}
        if sqlstate:
            details["sqlstate"] = sqlstate
        if hint:
            details["hint"] = hint
        super().__init__(message, reason, details)
        self.reason = reason
        self.sqlstate = sqlstate
        self.hint = hint


class StorageError(ReportError):
    """Raised when the generated report cannot be uploaded or linked."""

    http_status: int = 502

    def __init__(
        self,
        message: str,
        reason: ErrorCode = ErrorCode.STORAGE_ERROR,
        file_name: str | None = None,
        bucket: str | None = None,
        provider_code: str | None = None,
        hint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with upload context.

        Args:
            message: Error message.
            reason: Specific storage error code.
            file_name: Object name being uploaded.
            bucket: Target bucket.
            provider_code: Error code or status reported by the provider.
            hint: Remediation hint for operators.
            details: Additional details.
        """
        details = details or {}
        if file_name:
            details["file_name"] = file_name
        if bucket:
            details["bucket"] = bucket
        if provider_code:
            details["provider_code"] = provider_code
        if hint:
            details["hint"] = hint
        super().__init__(message, reason, details)
        self.reason = reason
        self.file_name = file_name
        self.bucket = bucket
        self.provider_code = provider_code
        self.hint = hint


# =============================================================================
# Internal Errors (E9xxx)
# =============================================================================


class ConfigurationError(ReportError):
    """Raised when a required setting is missing or inconsistent."""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if setting:
            details["setting"] = setting
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            details=details,
        )
        self.setting = setting
