"""SQLite database for storing connections, saved queries, settings and the query log."""

import json
import sqlite3
from pathlib import Path

from .config import app_home
from .errors import SavedQueryNotFound


class Database:
    def __init__(self, db_path=None):
        if db_path is None:
            home = app_home()
            home.mkdir(parents=True, exist_ok=True)
            db_path = home / "crudbench.db"
        self.db_path = db_path
        self._init_db()

    def _get_conn(self):
        return sqlite3.connect(self.db_path)

    def _init_db(self):
        with self._get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS connections (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    db_type TEXT NOT NULL DEFAULT 'mysql',
                    host TEXT,
                    port INTEGER,
                    database TEXT,
                    user TEXT,
                    password TEXT,
                    query_timeout REAL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS saved_queries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    sql TEXT NOT NULL,
                    connection_name TEXT,
                    db_type TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS query_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    connection_name TEXT,
                    sql TEXT NOT NULL,
                    executed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    duration REAL,
                    row_count INTEGER,
                    status TEXT NOT NULL,
                    error_message TEXT
                )
            """)
            conn.commit()

    # Connection methods
    def get_connections(self):
        with self._get_conn() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT id, name, db_type, host, port, database, user, query_timeout "
                "FROM connections ORDER BY name"
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_connection(self, name):
        with self._get_conn() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT id, name, db_type, host, port, database, user, password, query_timeout "
                "FROM connections WHERE name = ?",
                (name,)
            )
            row = cursor.fetchone()
            return dict(row) if row else None

    def save_connection(self, name, db_type, host, port, database, user, password,
                        query_timeout=None, conn_id=None):
        with self._get_conn() as conn:
            if conn_id:
                # Update existing connection
                conn.execute(
                    """UPDATE connections SET name = ?, db_type = ?, host = ?, port = ?,
                       database = ?, user = ?, password = ?, query_timeout = ? WHERE id = ?""",
                    (name, db_type, host, port, database, user, password, query_timeout, conn_id)
                )
            else:
                conn.execute(
                    """INSERT INTO connections
                       (name, db_type, host, port, database, user, password, query_timeout)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (name, db_type, host, port, database, user, password, query_timeout)
                )
            conn.commit()

    def delete_connection(self, conn_id):
        with self._get_conn() as conn:
            conn.execute("DELETE FROM connections WHERE id = ?", (conn_id,))
            conn.commit()

    # Saved query methods
    def get_saved_queries(self, db_type=None):
        with self._get_conn() as conn:
            conn.row_factory = sqlite3.Row
            if db_type:
                cursor = conn.execute(
                    "SELECT id, name, sql, connection_name, db_type FROM saved_queries "
                    "WHERE db_type = ? OR db_type IS NULL ORDER BY name",
                    (db_type,)
                )
            else:
                cursor = conn.execute(
                    "SELECT id, name, sql, connection_name, db_type FROM saved_queries ORDER BY name"
                )
            return [dict(row) for row in cursor.fetchall()]

    def get_saved_query(self, name, db_type=None):
        """Most recently saved query with this name (for db_type, or untyped)."""
        with self._get_conn() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT id, name, sql, connection_name, db_type FROM saved_queries "
                "WHERE name = ? AND (? IS NULL OR db_type = ? OR db_type IS NULL) "
                "ORDER BY id DESC LIMIT 1",
                (name, db_type, db_type)
            )
            row = cursor.fetchone()
        if row is None:
            raise SavedQueryNotFound(name)
        return dict(row)

    def save_query(self, name, sql, connection_name=None, db_type=None):
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO saved_queries (name, sql, connection_name, db_type)
                   VALUES (?, ?, ?, ?)""",
                (name, sql, connection_name, db_type)
            )
            conn.commit()

    def delete_query(self, query_id):
        with self._get_conn() as conn:
            conn.execute("DELETE FROM saved_queries WHERE id = ?", (query_id,))
            conn.commit()

    def export_queries(self, path, db_type=None):
        """Export queries to a JSON file. Returns the number written."""
        queries = self.get_saved_queries(db_type)
        export_data = [
            {"name": q["name"], "sql": q["sql"], "db_type": q.get("db_type")}
            for q in queries
        ]
        with open(path, 'w') as f:
            json.dump(export_data, f, indent=2)
        return len(export_data)

    def import_queries(self, path, db_type=None):
        """Import queries from a JSON file. Returns the number imported."""
        with open(path, 'r') as f:
            data = json.load(f)
        count = 0
        for entry in data:
            entry_type = entry.get("db_type")
            if db_type and entry_type and entry_type != db_type:
                continue
            self.save_query(entry["name"], entry["sql"], None, entry_type or db_type)
            count += 1
        return count

    # Settings methods
    def get_setting(self, key, default=None):
        with self._get_conn() as conn:
            cursor = conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else default

    def set_setting(self, key, value):
        with self._get_conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, value)
            )
            conn.commit()

    # Query log methods
    def log_query(self, connection_name, sql, duration=None, row_count=None,
                  status="success", error_message=None):
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO query_log
                   (connection_name, sql, duration, row_count, status, error_message)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (connection_name, sql, duration, row_count, status, error_message)
            )
            conn.commit()

    def get_query_log(self, limit=100, connection_name=None):
        with self._get_conn() as conn:
            conn.row_factory = sqlite3.Row
            if connection_name:
                cursor = conn.execute(
                    "SELECT * FROM query_log WHERE connection_name = ? ORDER BY id DESC LIMIT ?",
                    (connection_name, limit)
                )
            else:
                cursor = conn.execute(
                    "SELECT * FROM query_log ORDER BY id DESC LIMIT ?", (limit,)
                )
            return [dict(row) for row in cursor.fetchall()]

    def clear_query_log(self):
        with self._get_conn() as conn:
            conn.execute("DELETE FROM query_log")
            conn.commit()


_db = None


def _get_db():
    global _db
    if _db is None:
        _db = Database()
    return _db


def get_setting(key, default=None):
    return _get_db().get_setting(key, default)


def set_setting(key, value):
    _get_db().set_setting(key, value)


def get_connections():
    return _get_db().get_connections()


def get_connection(name):
    return _get_db().get_connection(name)
