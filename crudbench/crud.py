"""Table-level create/read/update/delete over one session."""

import logging
from typing import Any, Dict, List, Optional

from .coercion import parse, parse_record
from .errors import NoPrimaryKey
from .introspection import describe_table, list_tables
from .models import ResultSetView, TableMetadata
from .statements import build_count, build_delete, build_insert, build_select_all, build_update

logger = logging.getLogger(__name__)


class CrudFacade:
    """Edit table rows through introspected metadata.

    Every write coerces all supplied fields first, so a bad value aborts
    before any SQL is sent. Rows are never cached: call ``load_all_rows``
    again after a write to see its effect.
    """

    def __init__(self, session):
        self.session = session

    @property
    def adapter(self):
        return self.session.adapter

    def list_tables(self) -> List[str]:
        return list_tables(self.session)

    def load_structure(self, table: str) -> TableMetadata:
        return describe_table(self.session, table)

    def load_all_rows(self, table: str) -> ResultSetView:
        meta = self.load_structure(table)
        return self.session.run(build_select_all(meta, self.adapter))

    def load_page(self, table: str, limit: int, offset: int = 0) -> ResultSetView:
        meta = self.load_structure(table)
        return self.session.run(build_select_all(meta, self.adapter, limit, offset))

    def count_rows(self, table: str) -> int:
        return self.session.run(build_count(table, self.adapter)).scalar()

    def create(self, table: str, field_values: Dict[str, Optional[str]]) -> int:
        meta = self.load_structure(table)
        values = parse_record(meta, field_values)
        plan = build_insert(meta, values, self.adapter)
        count = self.session.run(plan)
        logger.debug("Inserted %d row(s) into %s", count, table)
        return count

    def update(self, table: str, pk_value: Any, field_values: Dict[str, Optional[str]]) -> int:
        meta = self.load_structure(table)
        pk_col = meta.primary_key_column
        if pk_col is None:
            raise NoPrimaryKey(table)
        values = parse_record(meta, field_values)
        plan = build_update(meta, self._key(pk_col, pk_value), values, self.adapter)
        count = self.session.run(plan)
        logger.debug("Updated %d row(s) in %s", count, table)
        return count

    def delete(self, table: str, pk_value: Any) -> int:
        """Delete by key. Deleting a row that is already gone returns 0."""
        meta = self.load_structure(table)
        pk_col = meta.primary_key_column
        if pk_col is None:
            raise NoPrimaryKey(table)
        plan = build_delete(meta, self._key(pk_col, pk_value), self.adapter)
        count = self.session.run(plan)
        logger.debug("Deleted %d row(s) from %s", count, table)
        return count

    @staticmethod
    def _key(pk_col, pk_value):
        # Keys typed into an edit field arrive as text
        if isinstance(pk_value, str):
            return parse(pk_value, pk_col.sql_type, nullable=False, field=pk_col.name)
        return pk_value
