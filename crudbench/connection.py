"""Connection provider: one live session, shared by the facades."""

import logging
import threading
import time
from typing import Any, Optional, Sequence, Union

from .adapters import connect_from_info, get_adapter
from .config import ConnectionTarget
from .errors import ConnectionFailed, ExecutionFailed, NotConnected, QueryTimeout
from .models import ResultSetView, StatementPlan
from .results import materialize

logger = logging.getLogger(__name__)


class Session:
    """A live DB-API connection plus the adapter that speaks its dialect.

    Statements are serialized by a lock, so at most one is in flight per
    session even when a background refresh overlaps a user edit.
    """

    def __init__(self, adapter, conn, target: Optional[ConnectionTarget] = None,
                 query_timeout: Optional[float] = None):
        self.adapter = adapter
        self.target = target
        self.query_timeout = query_timeout
        self.server_version = None
        self._conn = conn
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def connection(self):
        if self._conn is None:
            raise NotConnected("Session is closed")
        return self._conn

    def _execute(self, cursor, sql, params):
        self.adapter.begin_statement(self._conn, self.query_timeout)
        if params:
            cursor.execute(sql, tuple(params))
        else:
            # Drivers using %s would otherwise try to format a literal '%'
            cursor.execute(sql)

    def _fail(self, exc, sql):
        try:
            self._conn.rollback()
        except Exception as rollback_error:
            logger.warning("Rollback failed after error: %s", rollback_error)
        message = str(exc)
        logger.error("Statement failed: %s", message)
        if self.adapter.is_timeout_error(exc):
            return QueryTimeout(message, sql=sql, timeout=self.query_timeout)
        return ExecutionFailed(message, sql=sql)

    def query(self, sql: str, params: Sequence[Any] = ()) -> ResultSetView:
        """Run a row-returning statement and materialize every row."""
        with self._lock:
            conn = self.connection
            start = time.time()
            cursor = conn.cursor()
            try:
                self._execute(cursor, sql, params)
                view = materialize(cursor, self.adapter)
                # Ends the read snapshot so later reads see committed writes
                conn.commit()
            except Exception as e:
                raise self._fail(e, sql) from e
            finally:
                cursor.close()
            logger.debug("Query returned %d row(s) in %.3fs", view.row_count,
                         time.time() - start)
            return view

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement, commit, and return the affected row count."""
        with self._lock:
            conn = self.connection
            start = time.time()
            cursor = conn.cursor()
            try:
                self._execute(cursor, sql, params)
                rc = cursor.rowcount if cursor.rowcount >= 0 else 0
                conn.commit()
            except Exception as e:
                raise self._fail(e, sql) from e
            finally:
                cursor.close()
            logger.debug("Statement affected %d row(s) in %.3fs", rc, time.time() - start)
            return rc

    def run(self, plan: StatementPlan) -> Union[ResultSetView, int]:
        """Execute a plan once: rows for SELECT, affected count otherwise."""
        if plan.kind.returns_rows:
            return self.query(plan.sql, plan.params)
        return self.execute(plan.sql, plan.params)

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            conn, self._conn = self._conn, None
            conn.close()


class ConnectionProvider:
    """Owns the single live session. ``connect`` replaces any previous one."""

    def __init__(self):
        self._session: Optional[Session] = None

    def connect(self, target: Union[ConnectionTarget, str]) -> Session:
        if isinstance(target, str):
            target = ConnectionTarget.from_url(target)
        self.disconnect()

        adapter = get_adapter(target.db_type)
        if not adapter.is_available():
            raise ConnectionFailed(
                f"{adapter.display_name} driver is not installed. {adapter.install_hint}"
            )
        try:
            conn = connect_from_info(adapter, target.to_info())
        except Exception as e:
            logger.error("Failed to connect to %s: %s", target.describe(), e)
            raise ConnectionFailed(f"Connection error: {e}") from e

        session = Session(adapter, conn, target, target.query_timeout)
        try:
            if target.query_timeout and not adapter.apply_timeout(conn, target.query_timeout):
                logger.warning("%s does not support query timeouts; ignoring %ss",
                               adapter.display_name, target.query_timeout)
                session.query_timeout = None
            session.server_version = adapter.get_version(conn)
            conn.rollback()
        except Exception as e:
            conn.close()
            raise ConnectionFailed(f"Connection error: {e}") from e

        self._session = session
        logger.info("Database connection established: %s (version %s)",
                    target.describe(), session.server_version or "unknown")
        return session

    def current_session(self) -> Session:
        if self._session is None or self._session.closed:
            raise NotConnected()
        return self._session

    @property
    def connected(self) -> bool:
        return self._session is not None and not self._session.closed

    def disconnect(self) -> None:
        """Close the live session, if any. Safe to call repeatedly."""
        session, self._session = self._session, None
        if session is None or session.closed:
            return
        try:
            session.close()
        finally:
            logger.info("Database connection closed")


_provider = None


def get_provider() -> ConnectionProvider:
    """The process-wide provider."""
    global _provider
    if _provider is None:
        _provider = ConnectionProvider()
    return _provider
