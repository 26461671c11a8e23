"""Report orchestration: query, fill the template, and deliver the workbook."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from inventory_report.services.price_adjuster import PriceAdjuster, PriceColumns
from inventory_report.services.sheet_replacer import SheetDataReplacer
from inventory_report.services.workbook_adapter import XLSX_CONTENT_TYPE
from inventory_report.tabular import TabularResult
from inventory_report.utils.exceptions import (
    ConfigurationError,
    EmptyResultError,
    MalformedContainerError,
    TemplateNotFoundError,
)
from inventory_report.utils.logging import get_logger, timed_operation

if TYPE_CHECKING:
    from inventory_report.config import Settings
    from inventory_report.services.query_service import PostgresQueryService
    from inventory_report.services.storage import StorageBackend

logger = get_logger(__name__)


@dataclass(frozen=True)
class GeneratedReport:
    """A finished workbook ready to stream or upload."""

    content: bytes
    file_name: str
    content_type: str = XLSX_CONTENT_TYPE
    row_count: int = 0
    column_count: int = 0

    @property
    def size_bytes(self) -> int:
        return len(self.content)


class ReportService:
    """Produce inventory reports from the configured template and query.

    Each call works on its own copy of the template read from disk, so
    concurrent requests never share a workbook.
    """

    def __init__(
        self,
        settings: Settings,
        query_service: PostgresQueryService,
        storage: StorageBackend | None = None,
        replacer: SheetDataReplacer | None = None,
    ) -> None:
        self.settings = settings
        self.query_service = query_service
        self.storage = storage
        self.replacer = replacer or SheetDataReplacer()
        self.price_adjuster = PriceAdjuster(
            PriceColumns(
                sku=settings.price_sku_column,
                unit_cost=settings.price_unit_cost_column,
                value=settings.price_value_column,
                qty=settings.price_qty_column,
            )
        )

    def load_template(self) -> bytes:
        """Read the template file.

        Raises:
            TemplateNotFoundError: If the path is missing, not a file, or
                cannot be read.
        """
        path = self.settings.template_file
        if not path.is_file():
            raise TemplateNotFoundError(str(path))
        try:
            return path.read_bytes()
        except OSError as e:
            raise TemplateNotFoundError(
                str(path),
                message=f"Template file could not be read: {path}: {e.strerror or e}",
            ) from e

    def fetch(self, query: str | None = None) -> TabularResult:
        """Run the report query, falling back to the default when blank."""
        if query and query.strip():
            sql = query.strip()
        else:
            logger.info("Using default inventory query")
            sql = self.settings.default_query

        table = self.query_service.execute(sql)

        if self.settings.price_lookup_query and not table.is_empty:
            prices = self.query_service.fetch_price_lookup(
                self.settings.price_lookup_query
            )
            table = self.price_adjuster.apply(table, prices).table

        return table

    def build(self, table: TabularResult) -> GeneratedReport:
        """Fill a fresh copy of the template with ``table``."""
        template = self.load_template()
        try:
            content = self.replacer.replace_bytes(
                template, self.settings.sheet_name, table
            )
        except MalformedContainerError as e:
            raise MalformedContainerError(
                message=e.message,
                template_path=self.settings.template_path,
                details=e.details,
            ) from e

        report = GeneratedReport(
            content=content,
            file_name=self.report_file_name(),
            row_count=table.row_count,
            column_count=table.column_count,
        )
        logger.info(
            "Report generated",
            file_name=report.file_name,
            rows=report.row_count,
            size_bytes=report.size_bytes,
        )
        return report

    def generate(self, query: str | None = None) -> GeneratedReport:
        """Fetch data, apply the empty-result policy and build the workbook.

        Raises:
            EmptyResultError: If the query returns no rows and the policy is
                ``reject``.
        """
        with timed_operation(logger, "generate_report") as metrics:
            table = self.fetch(query)
            if table.is_empty:
                if self.settings.empty_result_policy == "reject":
                    logger.warning("Query returned no rows; rejecting request")
                    raise EmptyResultError()
                logger.warning(
                    "Query returned no rows; generating report with a cleared data region"
                )

            report = self.build(table)
            metrics.rows_written = report.row_count
            metrics.bytes_written = report.size_bytes
        return report

    def publish(self, report: GeneratedReport) -> str:
        """Upload the report and return the URL clients are redirected to."""
        if self.storage is None:
            raise ConfigurationError(
                "No storage backend is configured for redirect delivery",
                setting="storage_backend",
            )
        url = self.storage.upload(report.content, report.file_name, report.content_type)
        logger.info(
            "Report uploaded",
            file_name=report.file_name,
            storage=self.storage.name,
        )
        return url

    def report_file_name(self, now: datetime | None = None) -> str:
        stamp = (now or datetime.now(UTC)).strftime("%Y%m%d_%H%M%S")
        return f"{self.settings.report_file_prefix}_{stamp}.xlsx"
