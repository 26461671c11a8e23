"""Rewrite unit cost and value columns from goods average prices."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from inventory_report.tabular import TabularResult
from inventory_report.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PriceColumns:
    """Names of the columns the adjustment reads and writes."""

    sku: str = "Item"
    unit_cost: str = "Standard Unit Cost"
    value: str = "Standard Value"
    qty: str = "Qty"


@dataclass
class PriceAdjustmentResult:
    table: TabularResult
    updated_rows: int
    applied: bool


class PriceAdjuster:
    """Apply average prices keyed by SKU to report rows.

    For every row whose SKU has an average price, the unit cost becomes that
    price. When the quantity is present and non-zero, the value becomes
    ``price * qty``. Only those rows count as updated.
    """

    def __init__(self, columns: PriceColumns | None = None) -> None:
        self.columns = columns or PriceColumns()

    def apply(
        self, table: TabularResult, prices: dict[str, Decimal]
    ) -> PriceAdjustmentResult:
        cols = self.columns
        if not prices or not table.has_columns(
            cols.sku, cols.unit_cost, cols.value, cols.qty
        ):
            logger.warning(
                "Skipping goods price update: missing required columns or no goods data available",
                prices=len(prices),
            )
            return PriceAdjustmentResult(table=table, updated_rows=0, applied=False)

        sku_idx = table.column_index(cols.sku)
        cost_idx = table.column_index(cols.unit_cost)
        value_idx = table.column_index(cols.value)
        qty_idx = table.column_index(cols.qty)

        updated = 0
        rows: list[list[Any]] = []
        for source in table.rows:
            row = list(source)
            sku = row[sku_idx]
            key = str(sku).strip() if sku is not None else ""
            price = prices.get(key) if key else None
            if price is not None:
                row[cost_idx] = price
                qty = _to_decimal(row[qty_idx])
                if qty is not None and qty.is_finite() and qty != 0:
                    row[value_idx] = price * qty
                    updated += 1
            rows.append(row)

        logger.info("Updated rows with goods average prices", count=updated)
        return PriceAdjustmentResult(
            table=table.with_rows(rows), updated_rows=updated, applied=True
        )


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps float4 quantities from picking up binary noise
        return Decimal(str(value))
    except InvalidOperation:
        return None
