"""Data model shared by the introspection, statement and result layers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class SqlType(Enum):
    """Semantic column types understood by the value coercer."""

    INTEGER = "INTEGER"
    DECIMAL = "DECIMAL"
    TEXT = "TEXT"
    DATE = "DATE"
    DATETIME = "DATETIME"
    BOOLEAN = "BOOLEAN"
    OTHER = "OTHER"


class StatementKind(Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    OTHER_WRITE = "OTHER_WRITE"

    @property
    def returns_rows(self) -> bool:
        return self is StatementKind.SELECT


@dataclass(frozen=True)
class ColumnMetadata:
    name: str
    sql_type: SqlType
    native_type: str = ""
    nullable: bool = True
    is_primary_key: bool = False
    is_auto_generated: bool = False

    @property
    def required(self) -> bool:
        """True when a value must be supplied on insert."""
        return not self.nullable and not self.is_auto_generated


@dataclass(frozen=True)
class TableMetadata:
    name: str
    columns: Tuple[ColumnMetadata, ...]
    primary_key: Optional[str] = None

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]

    def column(self, name: str) -> Optional[ColumnMetadata]:
        for col in self.columns:
            if col.name == name:
                return col
        # Drivers disagree on identifier case, fall back to a folded match
        folded = name.lower()
        for col in self.columns:
            if col.name.lower() == folded:
                return col
        return None

    @property
    def primary_key_column(self) -> Optional[ColumnMetadata]:
        if self.primary_key is None:
            return None
        return self.column(self.primary_key)


class Record:
    """Immutable row snapshot keyed by column name, ordered by projection.

    Duplicate labels are kept positionally; lookup by name returns the
    first matching column.
    """

    __slots__ = ("_columns", "_values")

    def __init__(self, columns, values):
        columns = tuple(columns)
        values = tuple(values)
        if len(columns) != len(values):
            raise ValueError(
                f"Record has {len(columns)} columns but {len(values)} values"
            )
        object.__setattr__(self, "_columns", columns)
        object.__setattr__(self, "_values", values)

    def __setattr__(self, name, value):
        raise AttributeError("Record is immutable")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        return cls(data.keys(), data.values())

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    @property
    def values(self) -> Tuple[Any, ...]:
        return self._values

    def _index(self, name):
        try:
            return self._columns.index(name)
        except ValueError:
            raise KeyError(name) from None

    def __getitem__(self, key):
        if isinstance(key, int):
            return self._values[key]
        return self._values[self._index(key)]

    def get(self, name, default=None):
        try:
            return self[name]
        except KeyError:
            return default

    def __contains__(self, name) -> bool:
        return name in self._columns

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def keys(self) -> Tuple[str, ...]:
        return self._columns

    def items(self) -> List[Tuple[str, Any]]:
        return list(zip(self._columns, self._values))

    def as_dict(self) -> Dict[str, Any]:
        """Column name to value. Later duplicates never shadow the first."""
        result = {}
        for name, value in zip(self._columns, self._values):
            result.setdefault(name, value)
        return result

    def __eq__(self, other):
        if not isinstance(other, Record):
            return NotImplemented
        return self._columns == other._columns and self._values == other._values

    def __hash__(self):
        return hash((self._columns, self._values))

    def __repr__(self):
        pairs = ", ".join(f"{k}={v!r}" for k, v in self.items())
        return f"Record({pairs})"


@dataclass(frozen=True)
class ResultColumn:
    name: str
    sql_type: SqlType = SqlType.OTHER


@dataclass(frozen=True)
class ResultSetView:
    columns: Tuple[ResultColumn, ...]
    rows: Tuple[Record, ...] = ()

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [row.as_dict() for row in self.rows]

    def scalar(self):
        """First column of the first row, or None for an empty result."""
        if not self.rows or not self.columns:
            return None
        return self.rows[0][0]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.rows)


@dataclass(frozen=True)
class StatementPlan:
    sql: str
    params: Tuple[Any, ...] = ()
    kind: StatementKind = StatementKind.OTHER_WRITE


@dataclass(frozen=True)
class TableListing:
    tables: List[str] = field(default_factory=list)
    excluded: Dict[str, str] = field(default_factory=dict)
