"""PostgreSQL query collaborator returning tabular results."""

from __future__ import annotations

import time
from collections.abc import Iterable
from contextlib import closing
from decimal import Decimal, InvalidOperation
from typing import Any

import psycopg2

from inventory_report.tabular import ColumnDescriptor, ColumnType, TabularResult
from inventory_report.utils.exceptions import (
    ConfigurationError,
    DataSourceError,
    ErrorCode,
)
from inventory_report.utils.logging import get_logger

logger = get_logger(__name__)

# Built-in PostgreSQL type OIDs (pg_type.oid) reported in cursor.description
_TYPE_OIDS: dict[int, ColumnType] = {
    16: ColumnType.BOOLEAN,
    17: ColumnType.BINARY,
    18: ColumnType.STRING,
    19: ColumnType.STRING,
    20: ColumnType.INTEGER,
    21: ColumnType.INTEGER,
    23: ColumnType.INTEGER,
    25: ColumnType.STRING,
    26: ColumnType.INTEGER,
    114: ColumnType.JSON,
    700: ColumnType.FLOAT,
    701: ColumnType.FLOAT,
    790: ColumnType.STRING,
    1042: ColumnType.STRING,
    1043: ColumnType.STRING,
    1082: ColumnType.DATE,
    1083: ColumnType.TIME,
    1114: ColumnType.DATETIME,
    1184: ColumnType.DATETIME,
    1186: ColumnType.INTERVAL,
    1266: ColumnType.TIME,
    1700: ColumnType.DECIMAL,
    2950: ColumnType.UUID,
    3802: ColumnType.JSON,
}


def column_type_for_oid(type_code: Any) -> ColumnType:
    return _TYPE_OIDS.get(type_code, ColumnType.UNKNOWN)


def unique_column_names(names: Iterable[str]) -> list[str]:
    """Suffix repeated column names so each header is distinct.

    ``SELECT a.id, b.id`` yields ``id`` and ``id1``. Names compare
    case-insensitively, and a generated name never collides with a name the
    query already returned.
    """
    original = list(names)
    taken = {name.casefold() for name in original}
    seen: set[str] = set()
    result: list[str] = []
    for name in original:
        key = name.casefold()
        if key in seen:
            suffix = 1
            while f"{key}{suffix}" in taken:
                suffix += 1
            name = f"{name}{suffix}"
            key = name.casefold()
            taken.add(key)
        seen.add(key)
        result.append(name)
    return result


class PostgresQueryService:
    """Run report queries against PostgreSQL with psycopg2.

    A connection is opened per call and always closed afterwards, so the
    service holds no state shared between requests. The transaction is never
    committed.
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    def execute(self, query: str) -> TabularResult:
        """Execute ``query`` and return its result set.

        Raises:
            ConfigurationError: If no connection string is configured.
            DataSourceError: If the query fails or returns no result set.
        """
        if not self._dsn:
            raise ConfigurationError(
                "PostgreSQL connection string is not configured",
                setting="database_url",
            )

        logger.info("Executing query to fetch report data")
        start = time.perf_counter()
        try:
            with closing(psycopg2.connect(self._dsn)) as conn:
                with conn.cursor() as cur:
                    cur.execute(query)
                    if cur.description is None:
                        raise DataSourceError(
                            "Query did not return a result set",
                            reason=ErrorCode.DATA_SOURCE_INVALID_RESULT,
                            hint="Use a SELECT statement (or RETURNING clause).",
                        )
                    names = unique_column_names(col.name for col in cur.description)
                    columns = tuple(
                        ColumnDescriptor(name, column_type_for_oid(col.type_code))
                        for name, col in zip(names, cur.description, strict=True)
                    )
                    rows = cur.fetchall()
            result = TabularResult(columns=columns, rows=tuple(rows))
        except DataSourceError as e:
            self._log_failure(start, e)
            raise
        except psycopg2.Error as e:
            error = translate_driver_error(e)
            self._log_failure(start, error)
            raise error from e
        except ValueError as e:
            error = DataSourceError(
                f"Query result cannot be used as a report table: {e}",
                reason=ErrorCode.DATA_SOURCE_INVALID_RESULT,
                hint="Check that every row matches the column list.",
            )
            self._log_failure(start, error)
            raise error from e

        logger.log_call(
            "postgresql",
            "execute",
            time.perf_counter() - start,
            rows=result.row_count,
            columns=result.column_count,
        )
        return result

    def fetch_price_lookup(self, query: str) -> dict[str, Decimal]:
        """Run a (sku, average_price) query and index prices by SKU.

        Rows with a null SKU or price, or a price that is not numeric, are
        skipped.
        """
        result = self.execute(query)
        if result.column_count < 2:
            raise DataSourceError(
                "Price lookup query must return (sku, average_price) columns",
                reason=ErrorCode.DATA_SOURCE_INVALID_RESULT,
            )

        prices: dict[str, Decimal] = {}
        skipped = 0
        for row in result.rows:
            sku, price = row[0], row[1]
            if sku is None or price is None:
                skipped += 1
                continue
            try:
                prices[str(sku).strip()] = Decimal(str(price))
            except InvalidOperation:
                skipped += 1

        logger.info("Fetched goods average prices", skus=len(prices), skipped=skipped)
        return prices

    @staticmethod
    def _log_failure(start: float, error: DataSourceError) -> None:
        logger.log_call(
            "postgresql",
            "execute",
            time.perf_counter() - start,
            success=False,
            error_message=error.message,
            error_code=error.error_code.value,
        )


def translate_driver_error(error: psycopg2.Error) -> DataSourceError:
    """Map a psycopg2 error to a DataSourceError using its SQLSTATE."""
    sqlstate = getattr(error, "pgcode", None)
    detail = (getattr(error, "pgerror", None) or str(error)).strip()
    message = f"Error fetching data from PostgreSQL: {detail}"

    if sqlstate and sqlstate.startswith("28"):
        return DataSourceError(
            message,
            reason=ErrorCode.DATA_SOURCE_AUTH_FAILED,
            sqlstate=sqlstate,
            hint="Check the database user and password in IRS_DATABASE_URL.",
        )
    if sqlstate and sqlstate.startswith("42"):
        return DataSourceError(
            message,
            reason=ErrorCode.DATA_SOURCE_QUERY_INVALID,
            sqlstate=sqlstate,
            hint="Check the SQL text and the tables and columns it references.",
        )
    if sqlstate is None and isinstance(error, psycopg2.OperationalError):
        return DataSourceError(
            message,
            reason=ErrorCode.DATA_SOURCE_UNAVAILABLE,
            hint="Check that the database host is reachable and accepts connections.",
        )
    return DataSourceError(message, sqlstate=sqlstate)
