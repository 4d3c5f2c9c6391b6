"""Ad-hoc SQL: single statements, scripts, saved queries and query files.

SQL given to this module runs verbatim and is not protected against
injection. Only ``call_function`` binds its arguments.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Tuple

from .database import _get_db
from .errors import ExecutionFailed
from .statements import build_function_call, build_raw, normalize_sql

logger = logging.getLogger(__name__)


def split_statements(text: str) -> List[str]:
    """Split SQL text into statements, respecting string literals and -- comments."""
    statements = []
    current = []
    in_string = False
    i = 0

    while i < len(text):
        char = text[i]

        if char == "'" and not in_string:
            in_string = True
            current.append(char)
        elif char == "'" and in_string:
            # Check for escaped quote
            if i + 1 < len(text) and text[i + 1] == "'":
                current.append("''")
                i += 1
            else:
                in_string = False
                current.append(char)
        elif char == '-' and not in_string and text.startswith('--', i):
            # Line comment runs to end of line; quotes inside it don't count
            end = text.find('\n', i)
            end = len(text) if end == -1 else end
            current.append(text[i:end])
            i = end
            continue
        elif char == ';' and not in_string:
            current.append(char)
            statements.append(''.join(current))
            current = []
        else:
            current.append(char)

        i += 1

    if current:
        statements.append(''.join(current))

    return statements


def _split_title(chunk: str) -> Tuple[Optional[str], str]:
    """Separate leading ``-- comment`` lines from the statement they head."""
    title = None
    lines = chunk.strip().splitlines()
    while lines and (not lines[0].strip() or lines[0].lstrip().startswith('--')):
        line = lines.pop(0).strip()
        if title is None and line.startswith('--'):
            title = line.lstrip('-').strip() or None
    return title, normalize_sql('\n'.join(lines))


def _script_statements(text: str) -> List[Tuple[Optional[str], str]]:
    pairs = []
    for chunk in split_statements(text):
        title, sql = _split_title(chunk)
        if sql:
            pairs.append((title, sql))
    return pairs


def read_query_script(path) -> List[Tuple[str, str]]:
    """Read a .sql file as (title, statement) pairs.

    A statement's title is the first ``-- comment`` line above it;
    untitled statements are named after the file and their position.
    """
    path = Path(path)
    pairs = []
    for index, (title, sql) in enumerate(_script_statements(path.read_text(encoding='utf-8')), 1):
        pairs.append((title or f"{path.stem} {index}", sql))
    return pairs


def load_query_file(path) -> str:
    return Path(path).read_text(encoding='utf-8')


def save_query_file(sql: str, path) -> Path:
    path = Path(path)
    if not path.suffix:
        path = path.with_suffix('.sql')
    path.write_text(sql, encoding='utf-8')
    return path


@dataclass(frozen=True)
class ScriptStep:
    """Outcome of one statement of a script."""
    index: int
    sql: str
    result: Any
    duration: float


class QueryFacade:
    """Run free-form SQL against a session.

    When given a store and a connection name, every execution is
    recorded in the store's query log.
    """

    def __init__(self, session, store=None, connection_name: Optional[str] = None):
        self.session = session
        self.store = store
        self.connection_name = connection_name

    @property
    def db_type(self) -> str:
        return self.session.adapter.db_type

    def execute(self, raw_sql: str):
        """Run one statement: a ResultSetView for SELECT, else the affected-row count."""
        plan = build_raw(raw_sql)
        start = time.time()
        try:
            result = self.session.run(plan)
        except ExecutionFailed as e:
            self._log(plan.sql, time.time() - start, None, "error", e.message)
            raise
        duration = time.time() - start
        row_count = result if isinstance(result, int) else result.row_count
        self._log(plan.sql, duration, row_count, "success")
        logger.debug("%s statement finished in %.3fs", plan.kind.name, duration)
        return result

    def execute_saved(self, name: str):
        """Run a query saved in the local store under ``name``."""
        store = self.store if self.store is not None else _get_db()
        saved = store.get_saved_query(name, self.db_type)
        return self.execute(saved["sql"])

    def call_function(self, name: str, *params):
        """Call a stored function and return its single result value."""
        plan = build_function_call(name, params, self.session.adapter)
        return self.session.run(plan).scalar()

    def execute_script(self, text: str) -> List[ScriptStep]:
        """Run statements in order, stopping at (and re-raising) the first failure."""
        steps = []
        for index, (_, sql) in enumerate(_script_statements(text), 1):
            start = time.time()
            result = self.execute(sql)
            steps.append(ScriptStep(index, sql, result, time.time() - start))
        logger.info("Script completed: %d statement(s)", len(steps))
        return steps

    def import_script(self, path) -> int:
        """Save each statement of a .sql file as a named query."""
        store = self.store if self.store is not None else _get_db()
        count = 0
        for title, sql in read_query_script(path):
            store.save_query(title, sql, self.connection_name, self.db_type)
            count += 1
        return count

    def _log(self, sql, duration, row_count, status, error_message=None):
        if self.store is None or not self.connection_name:
            return
        try:
            self.store.log_query(self.connection_name, sql, duration=duration,
                                 row_count=row_count, status=status,
                                 error_message=error_message)
        except Exception as e:
            logger.warning("Could not record query in log: %s", e)
