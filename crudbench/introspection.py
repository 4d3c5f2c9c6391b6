"""Discover tables and their structure from database metadata."""

import logging
import re
from typing import List

from .errors import ExecutionFailed, MetadataUnavailable, TableNotFound
from .models import ColumnMetadata, SqlType, TableListing, TableMetadata
from .statements import build_probe

logger = logging.getLogger(__name__)

# Internal tables are recognised by name prefix
SYSTEM_TABLE_PREFIXES = ("sys_", "information_schema")

# First match wins, so the narrower patterns come first
_TYPE_RULES = [
    (re.compile(r"bool|\bbit\b|^tinyint\(1\)"), SqlType.BOOLEAN),
    (re.compile(r"interval|point"), SqlType.OTHER),
    (re.compile(r"int"), SqlType.INTEGER),
    (re.compile(r"timestamp|datetime"), SqlType.DATETIME),
    (re.compile(r"date"), SqlType.DATE),
    (re.compile(r"decimal|numeric|float|double|real|money"), SqlType.DECIMAL),
    (re.compile(r"char|text|clob|string"), SqlType.TEXT),
]


def map_native_type(type_name: str) -> SqlType:
    """Map a database type name such as ``varchar(50)`` to a SqlType."""
    name = (type_name or "").strip().lower()
    for pattern, sql_type in _TYPE_RULES:
        if pattern.search(name):
            return sql_type
    return SqlType.OTHER


def _decode(value):
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return value


def is_system_table(name: str) -> bool:
    lowered = name.lower()
    return any(lowered.startswith(prefix) for prefix in SYSTEM_TABLE_PREFIXES)


def scan_tables(session) -> TableListing:
    """List readable user tables, recording the ones that could not be read."""
    adapter = session.adapter
    try:
        catalog = session.query(adapter.get_tables_query())
    except ExecutionFailed as e:
        raise MetadataUnavailable(f"Error loading tables: {e.message}") from e

    tables = []
    excluded = {}
    for row in catalog.rows:
        name = _decode(row[1])
        if is_system_table(name):
            continue
        probe = build_probe(name, adapter)
        try:
            session.query(probe.sql, probe.params)
        except ExecutionFailed as e:
            logger.warning("Skipping inaccessible table %s: %s", name, e.message)
            excluded[name] = e.message
            continue
        tables.append(name)
    return TableListing(tables=tables, excluded=excluded)


def list_tables(session) -> List[str]:
    return scan_tables(session).tables


def describe_table(session, table: str) -> TableMetadata:
    """Read column and key metadata for one table.

    Raises:
        TableNotFound: the catalog knows no columns for ``table``.
        MetadataUnavailable: the catalog itself could not be queried.
    """
    adapter = session.adapter
    columns_sql, columns_params = adapter.get_columns_query(table)
    pk_sql, pk_params = adapter.get_primary_key_query(table)
    try:
        column_rows = session.query(columns_sql, columns_params).rows
        key_rows = session.query(pk_sql, pk_params).rows
    except ExecutionFailed as e:
        raise MetadataUnavailable(f"Error loading table structure: {e.message}") from e

    if not column_rows:
        raise TableNotFound(table)

    key_columns = [_decode(row[0]) for row in key_rows]
    primary_key = None
    if len(key_columns) == 1:
        primary_key = key_columns[0]
    elif len(key_columns) > 1:
        logger.warning("Table %s has a composite primary key (%s); keyed edits are disabled",
                       table, ", ".join(key_columns))

    columns = []
    for row in column_rows:
        name, type_name, nullable, auto = adapter.column_from_row(row.values)
        is_pk = name == primary_key
        columns.append(ColumnMetadata(
            name=name,
            sql_type=map_native_type(type_name),
            native_type=type_name,
            nullable=nullable,
            is_primary_key=is_pk,
            is_auto_generated=is_pk and auto,
        ))
    return TableMetadata(name=table, columns=tuple(columns), primary_key=primary_key)
