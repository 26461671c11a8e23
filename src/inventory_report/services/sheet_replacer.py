"""Replace the data region of one worksheet while preserving the template.

The whole used range of the target sheet is cleared (values and formulas
only) before the new table is written at A1. Clearing by the sheet's own
used range, rather than by the size of the incoming table, guarantees that
rows left over from a previous, larger dataset do not survive. Charts, pivot
caches, defined names and styles are separate workbook parts and are never
touched.
"""

from __future__ import annotations

from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from inventory_report.services import workbook_adapter
from inventory_report.services.workbook_adapter import SheetRange
from inventory_report.tabular import TabularResult
from inventory_report.utils.exceptions import ReportError, WorkbookUpdateError
from inventory_report.utils.logging import LogContext, get_logger, timed_operation

logger = get_logger(__name__)

ANCHOR_ROW = 1
ANCHOR_COL = 1


class SheetDataReplacer:
    """Swap the tabular content of one sheet inside a workbook."""

    def replace_bytes(
        self, template_bytes: bytes, sheet_name: str, table: TabularResult
    ) -> bytes:
        """Open a fresh in-memory copy of the template and replace its data."""
        workbook = workbook_adapter.open_workbook(template_bytes)
        try:
            return self.replace(workbook, sheet_name, table)
        finally:
            workbook.close()

    def replace(
        self, workbook: Workbook, sheet_name: str, table: TabularResult
    ) -> bytes:
        """Clear the sheet's used range, load ``table`` at A1 and serialize.

        Args:
            workbook: In-memory workbook owned by the caller.
            sheet_name: Exact name of the worksheet to rewrite.
            table: Rows to load; an empty table only clears the sheet.

        Returns:
            The serialized ``.xlsx`` bytes.

        Raises:
            SheetNotFoundError: If the sheet does not exist.
            WorkbookUpdateError: If clearing, loading, recalculating or
                serializing fails for any other reason.
        """
        sheet = workbook_adapter.find_sheet(workbook, sheet_name)

        stage = "clear"
        with LogContext(sheet=sheet_name), timed_operation(
            logger, "replace_sheet_data"
        ) as metrics:
            try:
                region = workbook_adapter.used_range(sheet)
                if region is not None:
                    metrics.cells_cleared = workbook_adapter.clear_range(sheet, region)
                    logger.info(
                        "Cleared used range",
                        range=region.coord,
                        cells_cleared=metrics.cells_cleared,
                    )

                stage = "load"
                if table.is_empty:
                    logger.warning("No data to load into worksheet")
                else:
                    metrics.rows_written = self._load(sheet, table)
                    logger.info(
                        "Loaded data into worksheet",
                        rows=table.row_count,
                        columns=table.column_count,
                    )

                stage = "recalculate"
                workbook_adapter.recalculate(workbook)

                stage = "serialize"
                payload = workbook_adapter.serialize(workbook)
                metrics.bytes_written = len(payload)
            except ReportError:
                raise
            except Exception as e:
                logger.error(
                    "Workbook update failed",
                    exc_info=True,
                    stage=stage,
                    error_type=type(e).__name__,
                )
                raise WorkbookUpdateError(
                    message=f"Failed to {stage} worksheet '{sheet_name}': {e}",
                    sheet_name=sheet_name,
                    stage=stage,
                ) from e

        return payload

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _load(sheet: Worksheet, table: TabularResult) -> int:
        """Write the header row and data rows starting at the anchor."""
        footprint = SheetRange(
            min_row=ANCHOR_ROW,
            max_row=ANCHOR_ROW + table.row_count,
            min_col=ANCHOR_COL,
            max_col=ANCHOR_COL + table.column_count - 1,
        )
        released = workbook_adapter.unmerge_overlapping(sheet, footprint)
        if released:
            logger.warning(
                "Unmerged ranges overlapping the data region",
                ranges=",".join(released),
            )

        for offset, name in enumerate(table.column_names):
            workbook_adapter.set_cell_value(sheet, ANCHOR_ROW, ANCHOR_COL + offset, name)

        for row_offset, row in enumerate(table.rows, start=1):
            for col_offset, value in enumerate(row):
                workbook_adapter.set_cell_value(
                    sheet, ANCHOR_ROW + row_offset, ANCHOR_COL + col_offset, value
                )

        return table.row_count
