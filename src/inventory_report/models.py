"""Pydantic models for API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field

from inventory_report.utils.exceptions import ErrorCode


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: str
    version: str
    template_file: str
    sheet_name: str


class ReportRequest(BaseModel):
    """Body of POST /api/report/generate."""

    query: str | None = Field(
        default=None,
        description="SQL query to run; the configured default query is used when omitted",
    )


class ErrorDetail(BaseModel):
    """Error detail model for API error responses.

    This model provides structured error responses with:
    - Human-readable error message
    - Machine-readable error code
    - Optional additional details for troubleshooting
    - Optional request ID for correlation
    """

    detail: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code (e.g., 'E1003')",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details for troubleshooting",
    )
    request_id: str | None = Field(
        default=None,
        description="Request ID for error correlation",
    )

    @classmethod
    def from_error_code(
        cls,
        error_code: ErrorCode,
        detail: str,
        details: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> "ErrorDetail":
        """Create an ErrorDetail from an ErrorCode enum value.

        Args:
            error_code: The error code enum.
            detail: Human-readable error message.
            details: Optional additional details.
            request_id: Optional request ID.

        Returns:
            ErrorDetail instance.
        """
        return cls(
            detail=detail,
            error_code=error_code.value,
            details=details,
            request_id=request_id,
        )
