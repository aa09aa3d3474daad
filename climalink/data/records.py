"""Tabular in-memory model: rows, tables and datasets."""
from __future__ import annotations

import weakref
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence

from .metadata import Metadata


class FieldType(Enum):
    """Semantic type of a field, independent of any storage backend."""

    DECIMAL = "decimal"
    INTEGER = "integer"
    DATE = "date"
    TEXT = "text"

    @property
    def python_type(self) -> type:
        return _PYTHON_TYPES[self]

    def accepts(self, value: Any) -> bool:
        """Return ``True`` when *value* is a valid instance of this type."""

        if self is FieldType.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        if self is FieldType.DECIMAL:
            return isinstance(value, (Decimal, int)) and not isinstance(value, bool)
        return isinstance(value, self.python_type)


_PYTHON_TYPES = {
    FieldType.DECIMAL: Decimal,
    FieldType.INTEGER: int,
    FieldType.DATE: date,
    FieldType.TEXT: str,
}


class Row:
    """An append-only sequence of values belonging to one table."""

    __slots__ = ("_values", "_version", "_parent")

    def __init__(self, parent: "Table", values: Iterable[Any] = ()) -> None:
        self._values: List[Any] = list(values)
        self._version = 1
        self._parent = weakref.ref(parent)

    @property
    def parent(self) -> Optional["Table"]:
        """The owning table, or ``None`` once it has been discarded."""

        return self._parent()

    @property
    def values(self) -> List[Any]:
        return self._values

    @property
    def version(self) -> int:
        return self._version

    def increment_version(self) -> None:
        self._version += 1

    def decrement_version(self) -> None:
        self._version -= 1

    def add_value(self, value: Any) -> None:
        self._values.append(value)

    def get_value(self, index: int) -> Any:
        return self._values[index]

    def set_value(self, index: int, value: Any) -> None:
        self._values[index] = value

    def __len__(self) -> int:
        return len(self._values)

    def __str__(self) -> str:
        parent = self.parent
        names = parent.field_names if parent is not None else []
        parts = []
        for index, value in enumerate(self._values):
            name = names[index] if index < len(names) else f"field{index}"
            rendered = value.isoformat() if isinstance(value, date) else value
            parts.append(f"{name} = {rendered}")
        return ", ".join(parts)

    def __repr__(self) -> str:
        return f"Row({self._values!r}, version={self._version})"


class Table:
    """A record holder: rows sharing one schema, plus metadata."""

    __slots__ = ("_parent", "metadata", "_field_names", "_field_types", "_records", "__weakref__")

    def __init__(self, parent: Optional["TabulatedDataset"] = None) -> None:
        self._parent = weakref.ref(parent) if parent is not None else None
        self.metadata = Metadata()
        self._field_names: List[str] = []
        self._field_types: List[FieldType] = []
        self._records: List[Row] = []

    @property
    def parent(self) -> Optional["TabulatedDataset"]:
        """The owning dataset, or ``None`` when detached."""

        return self._parent() if self._parent is not None else None

    @property
    def field_names(self) -> List[str]:
        return list(self._field_names)

    @property
    def field_types(self) -> List[FieldType]:
        return list(self._field_types)

    def set_fields(self, names: Sequence[str], types: Sequence[FieldType]) -> None:
        """Set the schema; *names* and *types* must be the same length."""

        if len(names) != len(types):
            raise ValueError(
                f"Number of field names ({len(names)}) does not match "
                f"number of field types ({len(types)})"
            )
        self._field_names = list(names)
        self._field_types = list(types)

    def new_row(self, values: Iterable[Any] = ()) -> Row:
        """Create a row owned by this table without storing it."""

        return Row(self, values)

    @property
    def records(self) -> List[Row]:
        return self._records

    def add_record(self, record: Row) -> None:
        self._records.append(record)

    def add_records(self, records: Iterable[Row]) -> None:
        self._records.extend(records)

    def get_record(self, index: int) -> Row:
        return self._records[index]

    def clear_records(self) -> None:
        """Drop every row so the memory can be reclaimed."""

        self._records = []

    def __len__(self) -> int:
        return len(self._records)


class TabulatedDataset:
    """A dataset made of one or more tables, in processing order."""

    __slots__ = ("metadata", "_record_holders", "estimated_record_count", "__weakref__")

    def __init__(self) -> None:
        self.metadata = Metadata()
        self._record_holders: List[Table] = []
        # Progress reporting only; never used to detect completion.
        self.estimated_record_count = 0

    @property
    def record_holders(self) -> List[Table]:
        return self._record_holders

    def new_record_holder(self) -> Table:
        """Create, attach and return an empty table."""

        table = Table(self)
        self._record_holders.append(table)
        return table

    def add_record_holder(self, table: Table) -> None:
        self._record_holders.append(table)

    def get_record_holder(self, index: int) -> Table:
        return self._record_holders[index]

    def index_of(self, table: Table) -> int:
        """Return the position of *table*, compared by identity, or ``-1``."""

        for index, holder in enumerate(self._record_holders):
            if holder is table:
                return index
        return -1

    def clear_records(self) -> None:
        for table in self._record_holders:
            table.clear_records()

    @property
    def record_count(self) -> int:
        return sum(len(table) for table in self._record_holders)
