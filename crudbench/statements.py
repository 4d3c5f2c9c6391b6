"""Build parameterized statements from table metadata.

Every value travels as a bound parameter; only identifiers taken from
introspected metadata are written into the SQL text, and those are quoted
by the adapter. ``classify`` is a textual heuristic for free-form SQL, not
a parser.
"""

import re
from typing import Any, Dict, Optional, Sequence, Union

from .errors import (
    EmptyStatement,
    NoColumnsToInsert,
    NoColumnsToUpdate,
    NoPrimaryKey,
    UnknownColumn,
)
from .models import StatementKind, StatementPlan, TableMetadata

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$#]*(\.[A-Za-z_][A-Za-z0-9_$#]*)?$")


def normalize_sql(raw_sql: Optional[str]) -> str:
    """Strip surrounding whitespace and trailing semicolons."""
    sql_stripped = (raw_sql or "").strip()
    while sql_stripped.endswith(';'):
        sql_stripped = sql_stripped[:-1].strip()
    return sql_stripped


def classify(raw_sql: Optional[str]) -> StatementKind:
    """SELECT if the text starts with SELECT (any case), else OTHER_WRITE.

    A ``WITH ... SELECT`` or ``SHOW`` statement is therefore reported as a
    write; callers wanting rows from those should wrap them in a SELECT.
    """
    sql_stripped = normalize_sql(raw_sql)
    if not sql_stripped:
        raise EmptyStatement()
    if sql_stripped[:6].upper() == "SELECT":
        return StatementKind.SELECT
    return StatementKind.OTHER_WRITE


def _resolve(meta: TableMetadata, values: Dict[str, Any]):
    """Match value keys to table columns, keeping the table's column order."""
    resolved = {}
    for name, value in values.items():
        col = meta.column(name)
        if col is None:
            raise UnknownColumn(meta.name, name)
        resolved[col.name] = value
    return [(col, resolved[col.name]) for col in meta.columns if col.name in resolved]


def _require_primary_key(meta: TableMetadata):
    pk_col = meta.primary_key_column
    if pk_col is None:
        raise NoPrimaryKey(meta.name)
    return pk_col


def build_insert(meta: TableMetadata, values: Dict[str, Any], adapter) -> StatementPlan:
    """INSERT of the given columns. A generated key without a value is left out."""
    pairs = [
        (col, value) for col, value in _resolve(meta, values)
        if not (col.is_primary_key and col.is_auto_generated and value is None)
    ]
    if not pairs:
        raise NoColumnsToInsert(meta.name)

    column_list = ", ".join(adapter.quote_identifier(col.name) for col, _ in pairs)
    sql = (f"INSERT INTO {adapter.table_ref(meta.name)} ({column_list}) "
           f"VALUES ({adapter.placeholders(len(pairs))})")
    return StatementPlan(sql, tuple(value for _, value in pairs), StatementKind.INSERT)


def build_update(meta: TableMetadata, pk_value: Any, values: Dict[str, Any],
                 adapter) -> StatementPlan:
    """UPDATE keyed by the primary key. The key itself is never SET."""
    pk_col = _require_primary_key(meta)
    pairs = [(col, value) for col, value in _resolve(meta, values) if col.name != pk_col.name]
    if not pairs:
        raise NoColumnsToUpdate(meta.name)

    set_parts = [f"{adapter.quote_identifier(col.name)} = {adapter.placeholder}"
                 for col, _ in pairs]
    sql = (f"UPDATE {adapter.table_ref(meta.name)} SET {', '.join(set_parts)} "
           f"WHERE {adapter.quote_identifier(pk_col.name)} = {adapter.placeholder}")
    params = tuple(value for _, value in pairs) + (pk_value,)
    return StatementPlan(sql, params, StatementKind.UPDATE)


def build_delete(meta: TableMetadata, pk_value: Any, adapter) -> StatementPlan:
    pk_col = _require_primary_key(meta)
    sql = (f"DELETE FROM {adapter.table_ref(meta.name)} "
           f"WHERE {adapter.quote_identifier(pk_col.name)} = {adapter.placeholder}")
    return StatementPlan(sql, (pk_value,), StatementKind.DELETE)


def _table_name(table: Union[TableMetadata, str]) -> str:
    return table.name if isinstance(table, TableMetadata) else table


def build_select_all(table: Union[TableMetadata, str], adapter,
                     limit: Optional[int] = None, offset: int = 0) -> StatementPlan:
    """Read a whole table, optionally one page of it.

    Pages are ordered by the primary key when the metadata names one.
    """
    sql = f"SELECT * FROM {adapter.table_ref(_table_name(table))}"
    if isinstance(table, TableMetadata) and table.primary_key_column is not None:
        sql += f" ORDER BY {adapter.quote_identifier(table.primary_key_column.name)}"
    if limit is not None:
        sql = adapter.add_pagination(sql, limit, offset)
    return StatementPlan(sql, (), StatementKind.SELECT)


def build_count(table: Union[TableMetadata, str], adapter) -> StatementPlan:
    sql = f"SELECT COUNT(*) FROM {adapter.table_ref(_table_name(table))}"
    return StatementPlan(sql, (), StatementKind.SELECT)


def build_probe(table: str, adapter) -> StatementPlan:
    """Zero-row projection used to check that a table can be read."""
    sql = f"SELECT * FROM {adapter.table_ref(table)} WHERE 1 = 0"
    return StatementPlan(sql, (), StatementKind.SELECT)


def build_function_call(name: str, params: Sequence[Any], adapter) -> StatementPlan:
    """``SELECT name(?, ...) AS result`` with every argument bound."""
    if not _IDENTIFIER_RE.match(name or ""):
        raise ValueError(f"Not a valid function name: {name!r}")
    sql = f"SELECT {name}({adapter.placeholders(len(params))}) AS result"
    return StatementPlan(sql, tuple(params), StatementKind.SELECT)


def build_raw(raw_sql: str) -> StatementPlan:
    """Wrap free-form SQL as a plan. No parameters, no injection protection."""
    return StatementPlan(normalize_sql(raw_sql), (), classify(raw_sql))
