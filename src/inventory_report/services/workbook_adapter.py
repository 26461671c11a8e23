"""openpyxl-backed adapter between workbook bytes and an editable document.

The replacement engine only talks to the functions in this module, so the
spreadsheet library stays behind one boundary. Everything here works on an
in-memory workbook opened from bytes; nothing touches the template on disk.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from io import BytesIO
from typing import Any
from uuid import UUID
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE, Cell, MergedCell
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from inventory_report.utils.exceptions import (
    MalformedContainerError,
    SheetNotFoundError,
)
from inventory_report.utils.logging import get_logger

logger = get_logger(__name__)

XLSX_CONTENT_TYPE = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
)


@dataclass(frozen=True)
class SheetRange:
    """Inclusive rectangular cell range using 1-based row/column indexes."""

    min_row: int
    max_row: int
    min_col: int
    max_col: int

    @property
    def coord(self) -> str:
        """Excel-style reference such as ``A1:D50``."""
        return (
            f"{get_column_letter(self.min_col)}{self.min_row}:"
            f"{get_column_letter(self.max_col)}{self.max_row}"
        )

    @property
    def row_count(self) -> int:
        return self.max_row - self.min_row + 1

    @property
    def column_count(self) -> int:
        return self.max_col - self.min_col + 1

    def __contains__(self, position: object) -> bool:
        if not isinstance(position, tuple) or len(position) != 2:
            return False
        row, col = position
        return (
            self.min_row <= row <= self.max_row
            and self.min_col <= col <= self.max_col
        )

    def intersects(self, other: SheetRange) -> bool:
        return not (
            other.max_row < self.min_row
            or other.min_row > self.max_row
            or other.max_col < self.min_col
            or other.min_col > self.max_col
        )


def open_workbook(data: bytes) -> Workbook:
    """Parse ``.xlsx`` bytes into an in-memory workbook.

    Raises:
        MalformedContainerError: If the bytes are not a readable workbook.
    """
    try:
        return load_workbook(
            filename=BytesIO(data),
            read_only=False,
            data_only=False,
            keep_links=True,
            rich_text=True,
        )
    except (
        InvalidFileException,
        BadZipFile,
        KeyError,
        ValueError,
        TypeError,
        SyntaxError,
        OSError,
    ) as e:
        raise MalformedContainerError(
            message=f"Template is not a valid .xlsx workbook: {e}",
            details={"error_type": type(e).__name__, "size_bytes": len(data)},
        ) from e


def find_sheet(workbook: Workbook, name: str) -> Worksheet:
    """Look up a worksheet by exact, case-sensitive name.

    Raises:
        SheetNotFoundError: If no worksheet carries that name. Chartsheets
            are not data sheets and are treated as absent.
    """
    for sheet in workbook.worksheets:
        if sheet.title == name:
            return sheet
    raise SheetNotFoundError(sheet_name=name, available_sheets=workbook.sheetnames)


def used_range(sheet: Worksheet) -> SheetRange | None:
    """Bounding box of every stored cell, or None for a sheet with no cells.

    Stored cells include cells that only carry a style, so the range can
    extend past the data block (e.g. formatted cells under a chart anchor).
    """
    # openpyxl reports A1:A1 for an empty sheet; the cell map tells them apart
    if not sheet._cells:
        return None
    return SheetRange(
        min_row=sheet.min_row,
        max_row=sheet.max_row,
        min_col=sheet.min_column,
        max_col=sheet.max_column,
    )


def get_cell_value(sheet: Worksheet, row: int, col: int) -> Any:
    return sheet.cell(row=row, column=col).value


def clear_cell(sheet: Worksheet, row: int, col: int) -> bool:
    """Remove the value and formula of a cell, leaving its style intact.

    Returns:
        True if the cell held a value or formula that was removed.
    """
    cell = sheet.cell(row=row, column=col)
    return _clear(cell)


def _clear(cell: Cell | MergedCell) -> bool:
    # Covered cells of a merged range never hold a value
    if isinstance(cell, MergedCell) or cell.value is None:
        return False
    # Formulas (plain, array, data-table) live in .value in openpyxl
    cell.value = None
    return True


def clear_range(sheet: Worksheet, cell_range: SheetRange) -> int:
    """Clear every cell in ``cell_range`` row by row.

    Returns:
        Number of cells that held a value or formula.
    """
    cleared = 0
    for row in sheet.iter_rows(
        min_row=cell_range.min_row,
        max_row=cell_range.max_row,
        min_col=cell_range.min_col,
        max_col=cell_range.max_col,
    ):
        for cell in row:
            if _clear(cell):
                cleared += 1
    return cleared


def set_cell_value(sheet: Worksheet, row: int, col: int, value: Any) -> Cell:
    """Write a query value into a cell as data, never as a formula."""
    cell = sheet.cell(row=row, column=col)
    if isinstance(cell, MergedCell):
        unmerge_overlapping(sheet, SheetRange(row, row, col, col))
        cell = sheet.cell(row=row, column=col)

    converted = to_cell_value(value)
    cell.value = converted
    if isinstance(converted, str) and converted.startswith("="):
        cell.data_type = "s"
    return cell


def unmerge_overlapping(sheet: Worksheet, cell_range: SheetRange) -> list[str]:
    """Unmerge merged ranges that intersect ``cell_range``.

    Returns:
        References of the ranges that were unmerged.
    """
    released: list[str] = []
    for merged in list(sheet.merged_cells.ranges):
        bounds = SheetRange(
            min_row=merged.min_row,
            max_row=merged.max_row,
            min_col=merged.min_col,
            max_col=merged.max_col,
        )
        if bounds.intersects(cell_range):
            coord = merged.coord
            sheet.unmerge_cells(coord)
            released.append(coord)
    return released


def to_cell_value(value: Any) -> Any:
    """Convert a driver value into something openpyxl can store."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        if _is_finite(value):
            return value
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(UTC).replace(tzinfo=None)
        return value
    if isinstance(value, time):
        return value.replace(tzinfo=None) if value.tzinfo is not None else value
    if isinstance(value, (date, timedelta)):
        return value
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (dict, list, tuple)):
        return ILLEGAL_CHARACTERS_RE.sub(
            "", json.dumps(value, default=str, separators=(",", ":"))
        )
    return ILLEGAL_CHARACTERS_RE.sub("", str(value))


def _is_finite(value: int | float | Decimal) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, float):
        return math.isfinite(value)
    return True


def recalculate(workbook: Workbook) -> None:
    """Make dependent formulas, charts and pivots reflect the new data.

    openpyxl has no calculation engine, so the workbook is flagged for a full
    recalculation when opened and each pivot cache is flagged for refresh.
    """
    workbook.calculation.calcMode = "auto"
    workbook.calculation.fullCalcOnLoad = True

    pivots = 0
    for sheet in workbook.worksheets:
        for pivot in getattr(sheet, "_pivots", []):
            pivot.cache.refreshOnLoad = True
            pivots += 1
    if pivots:
        logger.debug("Pivot caches flagged for refresh", pivot_tables=pivots)


def serialize(workbook: Workbook) -> bytes:
    """Write the workbook back to ``.xlsx`` bytes."""
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
