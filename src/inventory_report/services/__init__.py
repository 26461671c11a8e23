"""Services for inventory report generation."""

from inventory_report.services.report_service import GeneratedReport, ReportService
from inventory_report.services.sheet_replacer import SheetDataReplacer

__all__ = ["GeneratedReport", "ReportService", "SheetDataReplacer"]
