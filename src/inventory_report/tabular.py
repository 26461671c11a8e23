"""Dataclasses representing a query result set."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ColumnType(str, Enum):
    """Inferred type of a result column."""

    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    INTERVAL = "interval"
    UUID = "uuid"
    JSON = "json"
    BINARY = "binary"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ColumnDescriptor:
    """Name and inferred type of a single result column."""

    name: str
    type: ColumnType = ColumnType.UNKNOWN


@dataclass(frozen=True)
class TabularResult:
    """Ordered columns and rows returned by a query.

    Every row is a tuple with exactly one value per column, positionally
    aligned with ``columns``. Values may be ``None``.
    """

    columns: tuple[ColumnDescriptor, ...]
    rows: tuple[tuple[Any, ...], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        columns = tuple(self.columns)
        rows = tuple(tuple(row) for row in self.rows)

        names = [column.name for column in columns]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate column names: {', '.join(duplicates)}")

        width = len(columns)
        for index, row in enumerate(rows):
            if len(row) != width:
                raise ValueError(
                    f"Row {index} has {len(row)} values, expected {width}"
                )

        object.__setattr__(self, "columns", columns)
        object.__setattr__(self, "rows", rows)

    @classmethod
    def from_records(
        cls,
        column_names: Sequence[str],
        rows: Iterable[Sequence[Any]],
        column_types: Sequence[ColumnType] | None = None,
    ) -> TabularResult:
        """Build a result from plain column names and row sequences."""
        types = list(column_types) if column_types is not None else []
        columns = tuple(
            ColumnDescriptor(name, types[i] if i < len(types) else ColumnType.UNKNOWN)
            for i, name in enumerate(column_names)
        )
        return cls(columns=columns, rows=tuple(tuple(row) for row in rows))

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def column_index(self, name: str) -> int:
        """Return the position of a column, raising KeyError when absent."""
        for index, column in enumerate(self.columns):
            if column.name == name:
                return index
        raise KeyError(name)

    def has_columns(self, *names: str) -> bool:
        present = set(self.column_names)
        return all(name in present for name in names)

    def with_rows(self, rows: Iterable[Sequence[Any]]) -> TabularResult:
        """Return a copy with the same columns and new rows."""
        return TabularResult(
            columns=self.columns, rows=tuple(tuple(row) for row in rows)
        )
