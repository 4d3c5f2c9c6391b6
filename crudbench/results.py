"""Turn DB-API cursors into ResultSetViews, and write views to files."""

import csv
import json
from pathlib import Path
from typing import Any, List, Optional, Sequence

from .adapters import PYTHON_TYPE_MAP
from .coercion import render
from .errors import ExportError
from .models import Record, ResultColumn, ResultSetView, SqlType


def infer_sql_type(values: Sequence[Any]) -> SqlType:
    """Pick a SqlType from the first non-null value of a column."""
    for value in values:
        if value is None:
            continue
        for py_type in type(value).__mro__:
            if py_type in PYTHON_TYPE_MAP:
                return PYTHON_TYPE_MAP[py_type]
        return SqlType.OTHER
    return SqlType.OTHER


def materialize(cursor, adapter=None) -> ResultSetView:
    """Copy every row of an executed cursor into a ResultSetView.

    Column order and labels follow ``cursor.description`` exactly,
    duplicates included.
    """
    description = cursor.description or []
    names = [col[0] for col in description]
    rows = [tuple(row) for row in cursor.fetchall()]

    columns = []
    for index, col in enumerate(description):
        sql_type = SqlType.OTHER
        if adapter is not None:
            sql_type = adapter.sql_type_from_code(col[1])
        if sql_type is SqlType.OTHER:
            sql_type = infer_sql_type([row[index] for row in rows])
        columns.append(ResultColumn(names[index], sql_type))

    return ResultSetView(
        columns=tuple(columns),
        rows=tuple(Record(names, row) for row in rows),
    )


def _rendered_rows(view: ResultSetView) -> List[List[str]]:
    types = [col.sql_type for col in view.columns]
    return [
        [render(value, sql_type) for value, sql_type in zip(row.values, types)]
        for row in view.rows
    ]


def export_csv(view: ResultSetView, filename) -> Path:
    path = Path(filename)
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(view.column_names)
        writer.writerows(_rendered_rows(view))
    return path


def export_json(view: ResultSetView, filename) -> Path:
    path = Path(filename)
    headers = view.column_names
    data = [dict(zip(headers, row)) for row in _rendered_rows(view)]
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
    return path


def export_xlsx(view: ResultSetView, filename) -> Path:
    try:
        import openpyxl
    except ImportError:
        raise ExportError(
            "openpyxl module not installed.\nInstall with: pip install crudbench[xlsx]"
        )
    path = Path(filename)
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(view.column_names)
    for row in _rendered_rows(view):
        ws.append(row)
    wb.save(path)
    return path


EXPORTERS = {
    'csv': export_csv,
    'json': export_json,
    'xlsx': export_xlsx,
}


def export(view: ResultSetView, filename, format: Optional[str] = None) -> Path:
    """Export results to file. Format defaults to the file extension."""
    path = Path(filename)
    fmt = (format or path.suffix.lstrip('.')).lower()
    exporter = EXPORTERS.get(fmt)
    if exporter is None:
        raise ExportError(f"Unsupported export format: {fmt or '(none)'}")
    if not path.name.endswith(f".{fmt}"):
        path = path.with_name(f"{path.name}.{fmt}")
    try:
        return exporter(view, path)
    except OSError as e:
        raise ExportError(f"Failed to export: {e}") from e
