"""Tests for the API request and response models."""

from inventory_report.models import ErrorDetail, ReportRequest
from inventory_report.utils.exceptions import ErrorCode


class TestErrorDetail:
    def test_from_error_code_uses_code_value(self) -> None:
        error = ErrorDetail.from_error_code(
            ErrorCode.SHEET_NOT_FOUND,
            "Worksheet 'Data' not found in the template",
            details={"sheet_name": "Data"},
            request_id="req-1",
        )

        assert error.error_code == "E1003"
        assert error.detail == "Worksheet 'Data' not found in the template"
        assert error.details == {"sheet_name": "Data"}
        assert error.request_id == "req-1"

    def test_optional_fields_dropped_from_body(self) -> None:
        error = ErrorDetail.from_error_code(ErrorCode.INTERNAL_ERROR, "boom")

        assert error.model_dump(exclude_none=True) == {
            "detail": "boom",
            "error_code": "E9001",
        }


class TestReportRequest:
    def test_query_is_optional(self) -> None:
        assert ReportRequest().query is None
        assert ReportRequest(query="SELECT 1").query == "SELECT 1"
