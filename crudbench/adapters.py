"""Database adapters for different database types."""

import datetime
import os
import re
import time
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from pathlib import Path

from .coercion import FALSE_TOKENS, TRUE_TOKENS
from .errors import UnknownDatabaseType
from .models import SqlType


def _setup_ibm_db_environment():
    """Set up environment variables for ibm_db if clidriver is installed."""
    if os.environ.get("IBM_DB_HOME"):
        return  # Already configured

    # Check common install locations
    clidriver_paths = [
        Path.home() / "db2drivers" / "clidriver",
        Path("/opt/ibm/db2/clidriver"),
        Path("/opt/clidriver"),
    ]

    for cli_path in clidriver_paths:
        if (cli_path / "lib").exists():
            os.environ["IBM_DB_HOME"] = str(cli_path)
            lib_path = os.environ.get("LD_LIBRARY_PATH", "")
            os.environ["LD_LIBRARY_PATH"] = f"{cli_path}/lib:{lib_path}"
            break


# Set up ibm_db environment before any imports
_setup_ibm_db_environment()


# Python types reported as cursor type codes (pyodbc) or held in result values
PYTHON_TYPE_MAP = {
    bool: SqlType.BOOLEAN,
    int: SqlType.INTEGER,
    float: SqlType.DECIMAL,
    Decimal: SqlType.DECIMAL,
    str: SqlType.TEXT,
    datetime.datetime: SqlType.DATETIME,
    datetime.date: SqlType.DATE,
}


def _text(value):
    """Catalog values come back as bytes from some driver versions."""
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return value


def _flag(value):
    """Interpret the many spellings catalogs use for yes/no columns."""
    value = _text(value)
    if isinstance(value, str):
        return value.strip().upper() in ("YES", "Y", "1", "TRUE", "AUTO")
    return bool(value)


class DBAdapter(ABC):
    """Base class for database adapters."""

    db_type = "base"
    display_name = "Base"
    required_module = None  # Module name to import for this adapter
    install_hint = None  # pip install hint for missing dependency
    placeholder = "?"  # DB-API paramstyle marker for bound values
    identifier_quote = '"'

    @classmethod
    def is_available(cls):
        """Check if the required module for this adapter is installed."""
        if cls.required_module is None:
            return True
        try:
            __import__(cls.required_module)
            return True
        except ImportError:
            return False

    @abstractmethod
    def connect(self, host, user, password, port=None, database=None):
        """Connect to the database and return a connection object."""
        pass

    def get_version_query(self):
        """Get the SQL to retrieve database version."""
        return "SELECT VERSION()"

    def get_version(self, conn):
        """Get the database version string, or None if it can't be read."""
        try:
            cursor = conn.cursor()
            cursor.execute(self.get_version_query())
            row = cursor.fetchone()
            cursor.close()
            if row:
                return str(row[0])
        except Exception:
            pass
        return None

    # ── SQL text helpers ──────────────────────────────────────

    def quote_identifier(self, name):
        """Quote a single identifier, doubling any embedded quote."""
        q = self.identifier_quote
        return f"{q}{name.replace(q, q + q)}{q}"

    def split_table_name(self, table):
        """Split ``schema.table`` into its parts. Schema is None if absent."""
        if '.' in table:
            schema, tbl = table.split('.', 1)
            return schema, tbl
        return None, table

    def table_ref(self, table):
        """Quoted, optionally schema-qualified reference to a table."""
        schema, tbl = self.split_table_name(table)
        if schema:
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(tbl)}"
        return self.quote_identifier(tbl)

    def placeholders(self, count):
        return ", ".join([self.placeholder] * count)

    def add_pagination(self, sql, limit, offset=0):
        """Add pagination to a SQL statement. Default uses LIMIT/OFFSET."""
        sql_stripped = sql.strip()
        while sql_stripped.endswith(';'):
            sql_stripped = sql_stripped[:-1].strip()

        if offset > 0:
            return f"{sql_stripped} LIMIT {int(limit)} OFFSET {int(offset)}"
        return f"{sql_stripped} LIMIT {int(limit)}"

    # ── Catalog queries ───────────────────────────────────────

    @abstractmethod
    def get_tables_query(self):
        """Get SQL listing base tables as (schema, table_name, table_type)."""
        pass

    @abstractmethod
    def get_columns_query(self, table):
        """Get (sql, params) listing a table's columns in ordinal order.

        Each row is (column_name, type_name, nullable, auto_generated).
        """
        pass

    @abstractmethod
    def get_primary_key_query(self, table):
        """Get (sql, params) listing a table's primary key columns in key order."""
        pass

    def column_from_row(self, row):
        """Normalize one row of the columns query to (name, type, nullable, auto)."""
        name, type_name, nullable, auto = row[:4]
        return _text(name), _text(type_name) or "", _flag(nullable), _flag(auto)

    # ── Type codes ────────────────────────────────────────────

    def sql_type_from_code(self, type_code):
        """Map a cursor.description type code to a SqlType.

        Default handles drivers that report Python types (pyodbc).
        """
        if isinstance(type_code, type):
            return PYTHON_TYPE_MAP.get(type_code, SqlType.OTHER)
        return SqlType.OTHER

    # ── Timeouts ──────────────────────────────────────────────

    def apply_timeout(self, conn, seconds):
        """Install a per-connection statement timeout. Returns False if unsupported."""
        return False

    def begin_statement(self, conn, seconds):
        """Hook run before every statement on a session."""
        pass

    def is_timeout_error(self, exc):
        return False


class IBMiAdapter(DBAdapter):
    """Adapter for IBM i (AS/400) via ODBC."""

    db_type = "ibmi"
    display_name = "IBM i"
    required_module = "pyodbc"
    install_hint = "pip install crudbench[ibmi]"

    def connect(self, host, user, password, port=None, database=None):
        import pyodbc
        conn_str = (
            f"DRIVER={{IBM i Access ODBC Driver}};"
            f"SYSTEM={host};"
            f"UID={user};"
            f"PWD={password};"
        )
        if database:
            conn_str += f"DBQ={database};"
        return pyodbc.connect(conn_str)

    def get_version_query(self):
        """Get the SQL to retrieve IBM i version."""
        return "SELECT OS_VERSION || '.' || OS_RELEASE FROM SYSIBMADM.ENV_SYS_INFO"

    def add_pagination(self, sql, limit, offset=0):
        """IBM i uses OFFSET/FETCH syntax."""
        sql_stripped = sql.strip()
        while sql_stripped.endswith(';'):
            sql_stripped = sql_stripped[:-1].strip()

        if offset > 0:
            return f"{sql_stripped} OFFSET {int(offset)} ROWS FETCH FIRST {int(limit)} ROWS ONLY"
        return f"{sql_stripped} FETCH FIRST {int(limit)} ROWS ONLY"

    def _schema_condition(self, schema):
        if schema:
            return "TABLE_SCHEMA = ?", [schema.upper()]
        return "TABLE_SCHEMA = CURRENT SCHEMA", []

    def get_tables_query(self):
        """Get tables from IBM i - returns schema, table_name, table_type."""
        return """
            SELECT TABLE_SCHEMA, TABLE_NAME, TABLE_TYPE
            FROM QSYS2.SYSTABLES
            WHERE TABLE_SCHEMA = CURRENT SCHEMA AND TABLE_TYPE IN ('T', 'P')
            ORDER BY TABLE_NAME
        """

    def get_columns_query(self, table):
        schema, tbl = self.split_table_name(table)
        condition, params = self._schema_condition(schema)
        sql = f"""
            SELECT COLUMN_NAME, DATA_TYPE, IS_NULLABLE, IS_IDENTITY
            FROM QSYS2.SYSCOLUMNS
            WHERE {condition} AND TABLE_NAME = ?
            ORDER BY ORDINAL_POSITION
        """
        return sql, params + [tbl.upper()]

    def get_primary_key_query(self, table):
        schema, tbl = self.split_table_name(table)
        condition, params = self._schema_condition(schema)
        condition = condition.replace("TABLE_SCHEMA", "k.TABLE_SCHEMA")
        sql = f"""
            SELECT k.COLUMN_NAME
            FROM QSYS2.SYSKEYCST k
            JOIN QSYS2.SYSCST c
              ON c.CONSTRAINT_SCHEMA = k.CONSTRAINT_SCHEMA
             AND c.CONSTRAINT_NAME = k.CONSTRAINT_NAME
            WHERE c.CONSTRAINT_TYPE = 'PRIMARY KEY'
              AND {condition} AND k.TABLE_NAME = ?
            ORDER BY k.ORDINAL_POSITION
        """
        return sql, params + [tbl.upper()]

    def apply_timeout(self, conn, seconds):
        conn.timeout = int(seconds)
        return True

    def is_timeout_error(self, exc):
        # pyodbc carries the SQLSTATE as the first argument
        return bool(exc.args) and exc.args[0] == "HYT00"


class IBMiDBAdapter(IBMiAdapter):
    """Adapter for IBM i (AS/400) via ibm_db (native CLI driver)."""

    db_type = "ibmi_db"
    display_name = "IBM i (ibm_db)"
    required_module = "ibm_db"
    install_hint = "pip install crudbench[ibmi-db]"

    def connect(self, host, user, password, port=None, database=None):
        import ibm_db_dbi

        # DATABASE can be *LOCAL or the RDB name
        db_name = database if database else "*LOCAL"
        port_num = port if port else 446

        conn_str = (
            f"DATABASE={db_name};"
            f"HOSTNAME={host};"
            f"PORT={port_num};"
            f"PROTOCOL=TCPIP;"
            f"UID={user};"
            f"PWD={password};"
        )

        # ibm_db_dbi provides DB-API 2.0 compliant interface
        return ibm_db_dbi.connect(conn_str, "", "")

    def sql_type_from_code(self, type_code):
        # ibm_db_dbi reports DBAPITypeObject sets; values decide instead
        return SqlType.OTHER

    def apply_timeout(self, conn, seconds):
        return False

    def is_timeout_error(self, exc):
        return "SQL0666" in str(exc)


class MySQLAdapter(DBAdapter):
    """Adapter for MySQL."""

    db_type = "mysql"
    display_name = "MySQL"
    required_module = "mysql.connector"
    install_hint = "pip install crudbench[mysql]"
    placeholder = "%s"
    identifier_quote = "`"

    def connect(self, host, user, password, port=None, database=None):
        import mysql.connector
        config = {
            'host': host,
            'user': user,
            'password': password,
            'database': database or '',
        }
        if port:
            config['port'] = int(port)
        return mysql.connector.connect(**config)

    def _schema_condition(self, schema):
        if schema:
            return "TABLE_SCHEMA = %s", [schema]
        return "TABLE_SCHEMA = DATABASE()", []

    def get_tables_query(self):
        """Get tables from MySQL - returns schema, table_name, table_type."""
        return """
            SELECT TABLE_SCHEMA, TABLE_NAME, TABLE_TYPE
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_SCHEMA = DATABASE() AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
        """

    def get_columns_query(self, table):
        schema, tbl = self.split_table_name(table)
        condition, params = self._schema_condition(schema)
        # COLUMN_TYPE keeps the display width, so tinyint(1) stays recognisable
        sql = f"""
            SELECT COLUMN_NAME, COLUMN_TYPE, IS_NULLABLE, EXTRA
            FROM INFORMATION_SCHEMA.COLUMNS
            WHERE {condition} AND TABLE_NAME = %s
            ORDER BY ORDINAL_POSITION
        """
        return sql, params + [tbl]

    def column_from_row(self, row):
        name, type_name, nullable, extra = row[:4]
        extra = (_text(extra) or "").lower()
        return _text(name), _text(type_name) or "", _flag(nullable), "auto_increment" in extra

    def get_primary_key_query(self, table):
        schema, tbl = self.split_table_name(table)
        condition, params = self._schema_condition(schema)
        sql = f"""
            SELECT COLUMN_NAME
            FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE
            WHERE {condition} AND TABLE_NAME = %s AND CONSTRAINT_NAME = 'PRIMARY'
            ORDER BY ORDINAL_POSITION
        """
        return sql, params + [tbl]

    def sql_type_from_code(self, type_code):
        """Map mysql-connector FieldType constants."""
        try:
            from mysql.connector import FieldType
        except ImportError:
            return super().sql_type_from_code(type_code)
        groups = {
            SqlType.INTEGER: {FieldType.TINY, FieldType.SHORT, FieldType.LONG,
                              FieldType.LONGLONG, FieldType.INT24, FieldType.YEAR},
            SqlType.DECIMAL: {FieldType.FLOAT, FieldType.DOUBLE,
                              FieldType.DECIMAL, FieldType.NEWDECIMAL},
            SqlType.DATE: {FieldType.DATE, FieldType.NEWDATE},
            SqlType.DATETIME: {FieldType.DATETIME, FieldType.TIMESTAMP},
            SqlType.TEXT: {FieldType.VARCHAR, FieldType.VAR_STRING, FieldType.STRING},
            SqlType.BOOLEAN: {FieldType.BIT},
        }
        for sql_type, codes in groups.items():
            if type_code in codes:
                return sql_type
        return super().sql_type_from_code(type_code)

    def apply_timeout(self, conn, seconds):
        cursor = conn.cursor()
        try:
            cursor.execute("SET SESSION MAX_EXECUTION_TIME = %s", (int(seconds * 1000),))
        finally:
            cursor.close()
        return True

    def is_timeout_error(self, exc):
        # ER_QUERY_TIMEOUT
        return getattr(exc, "errno", None) == 3024


class PostgreSQLAdapter(DBAdapter):
    """Adapter for PostgreSQL."""

    db_type = "postgresql"
    display_name = "PostgreSQL"
    required_module = "psycopg2"
    install_hint = "pip install crudbench[postgresql]"
    placeholder = "%s"

    # Common OIDs, see pg_type
    OID_MAP = {
        16: SqlType.BOOLEAN,
        20: SqlType.INTEGER, 21: SqlType.INTEGER, 23: SqlType.INTEGER,
        700: SqlType.DECIMAL, 701: SqlType.DECIMAL, 790: SqlType.DECIMAL,
        1700: SqlType.DECIMAL,
        18: SqlType.TEXT, 19: SqlType.TEXT, 25: SqlType.TEXT,
        1042: SqlType.TEXT, 1043: SqlType.TEXT,
        1082: SqlType.DATE,
        1114: SqlType.DATETIME, 1184: SqlType.DATETIME,
    }

    def connect(self, host, user, password, port=None, database=None):
        import psycopg2
        return psycopg2.connect(
            host=host,
            user=user,
            password=password,
            dbname=database or 'postgres',
            port=port or 5432
        )

    def get_version_query(self):
        return "SELECT version()"

    def get_version(self, conn):
        version_str = super().get_version(conn)
        if version_str and 'PostgreSQL' in version_str:
            parts = version_str.split()
            for i, p in enumerate(parts):
                if p == 'PostgreSQL' and i + 1 < len(parts):
                    return parts[i + 1].rstrip(',')
        return version_str[:30] if version_str else None

    def _schema_condition(self, schema, prefix=""):
        if schema:
            return f"{prefix}table_schema = %s", [schema]
        return f"{prefix}table_schema = current_schema()", []

    def get_tables_query(self):
        """Get tables from PostgreSQL - returns schema, table_name, table_type."""
        return """
            SELECT table_schema, table_name, table_type
            FROM information_schema.tables
            WHERE table_schema = current_schema() AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """

    def get_columns_query(self, table):
        schema, tbl = self.split_table_name(table)
        condition, params = self._schema_condition(schema)
        sql = f"""
            SELECT column_name, data_type, is_nullable,
                   CASE WHEN is_identity = 'YES'
                          OR column_default LIKE 'nextval(%%'
                        THEN 'YES' ELSE 'NO' END
            FROM information_schema.columns
            WHERE {condition} AND table_name = %s
            ORDER BY ordinal_position
        """
        return sql, params + [tbl]

    def get_primary_key_query(self, table):
        schema, tbl = self.split_table_name(table)
        condition, params = self._schema_condition(schema, prefix="tc.")
        sql = f"""
            SELECT kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON kcu.constraint_name = tc.constraint_name
             AND kcu.table_schema = tc.table_schema
             AND kcu.table_name = tc.table_name
            WHERE tc.constraint_type = 'PRIMARY KEY'
              AND {condition} AND tc.table_name = %s
            ORDER BY kcu.ordinal_position
        """
        return sql, params + [tbl]

    def sql_type_from_code(self, type_code):
        """psycopg2 uses OIDs for type_code."""
        if isinstance(type_code, int):
            return self.OID_MAP.get(type_code, SqlType.OTHER)
        return super().sql_type_from_code(type_code)

    def apply_timeout(self, conn, seconds):
        cursor = conn.cursor()
        try:
            cursor.execute("SET statement_timeout = %s", (int(seconds * 1000),))
        finally:
            cursor.close()
        conn.commit()
        return True

    def is_timeout_error(self, exc):
        # query_canceled
        return getattr(exc, "pgcode", None) == "57014"


# SQLite keeps whatever text was stored. Cells that are not an exact literal
# of the declared type come back as the stored text, unconverted.
_SQLITE_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_SQLITE_DATETIME_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(\.\d{3}|\.\d{6})?([+-]\d{2}:\d{2})?$"
)


def _convert_date(raw):
    text = raw.decode()
    if not _SQLITE_DATE_RE.match(text):
        return text
    try:
        return datetime.date.fromisoformat(text)
    except ValueError:
        return text


def _convert_datetime(raw):
    text = raw.decode()
    if not _SQLITE_DATETIME_RE.match(text):
        return text
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError:
        return text


def _convert_decimal(raw):
    text = raw.decode()
    try:
        return Decimal(text)
    except InvalidOperation:
        return text


def _convert_boolean(raw):
    text = raw.decode()
    token = text.strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    return text


class SQLiteAdapter(DBAdapter):
    """Adapter for SQLite files via the standard library driver."""

    db_type = "sqlite"
    display_name = "SQLite"

    _registered = False

    @classmethod
    def _register_types(cls):
        import sqlite3
        if cls._registered:
            return
        sqlite3.register_adapter(datetime.date, lambda v: v.isoformat())
        sqlite3.register_adapter(datetime.datetime, lambda v: v.isoformat(" "))
        sqlite3.register_adapter(Decimal, str)
        # Converters are keyed on the first word of the declared column type
        sqlite3.register_converter("DATE", _convert_date)
        sqlite3.register_converter("DATETIME", _convert_datetime)
        sqlite3.register_converter("TIMESTAMP", _convert_datetime)
        sqlite3.register_converter("DECIMAL", _convert_decimal)
        sqlite3.register_converter("NUMERIC", _convert_decimal)
        sqlite3.register_converter("BOOLEAN", _convert_boolean)
        sqlite3.register_converter("BOOL", _convert_boolean)
        cls._registered = True

    def connect(self, host, user, password, port=None, database=None):
        import sqlite3
        self._register_types()
        # Sessions serialize their own statements, so cross-thread use is safe
        return sqlite3.connect(
            database or ":memory:",
            detect_types=sqlite3.PARSE_DECLTYPES,
            check_same_thread=False,
        )

    def get_version_query(self):
        return "SELECT sqlite_version()"

    def split_table_name(self, table):
        return None, table

    def get_tables_query(self):
        return r"""
            SELECT 'main', name, type
            FROM sqlite_master
            WHERE type = 'table' AND name NOT LIKE 'sqlite\_%' ESCAPE '\'
            ORDER BY name
        """

    def get_columns_query(self, table):
        # Only a lone INTEGER PRIMARY KEY aliases the rowid and is generated
        sql = """
            SELECT name, type, "notnull" = 0,
                   pk = 1 AND upper(type) = 'INTEGER'
                   AND (SELECT COUNT(*) FROM pragma_table_info(?) WHERE pk > 0) = 1
            FROM pragma_table_info(?)
            ORDER BY cid
        """
        return sql, [table, table]

    def get_primary_key_query(self, table):
        return "SELECT name FROM pragma_table_info(?) WHERE pk > 0 ORDER BY pk", [table]

    def begin_statement(self, conn, seconds):
        if not seconds:
            conn.set_progress_handler(None, 0)
            return
        deadline = time.monotonic() + seconds
        conn.set_progress_handler(lambda: time.monotonic() > deadline, 1000)

    def apply_timeout(self, conn, seconds):
        return True

    def is_timeout_error(self, exc):
        import sqlite3
        return isinstance(exc, sqlite3.OperationalError) and "interrupted" in str(exc)


# Registry of available adapters
ADAPTERS = {
    'ibmi': IBMiAdapter,
    'ibmi_db': IBMiDBAdapter,
    'mysql': MySQLAdapter,
    'postgresql': PostgreSQLAdapter,
    'sqlite': SQLiteAdapter,
}

# URL schemes accepted in connection strings
ADAPTER_ALIASES = {
    'postgres': 'postgresql',
    'mariadb': 'mysql',
    'sqlite3': 'sqlite',
}


def get_adapter(db_type):
    """Get an adapter instance by type."""
    db_type = ADAPTER_ALIASES.get(db_type, db_type)
    adapter_class = ADAPTERS.get(db_type)
    if adapter_class:
        return adapter_class()
    raise UnknownDatabaseType(db_type)


def connect_from_info(adapter, conn_info):
    """Open a DB-API connection from a saved connection dict."""
    return adapter.connect(
        conn_info.get('host'),
        conn_info.get('user'),
        conn_info.get('password'),
        port=conn_info.get('port'),
        database=conn_info.get('database'),
    )


def get_adapter_choices(include_unavailable=False):
    """Get list of (db_type, display_name).

    Args:
        include_unavailable: If True, include all adapters. If False, only include
                           adapters whose required modules are installed.
    """
    if include_unavailable:
        return [(key, cls.display_name) for key, cls in ADAPTERS.items()]
    return [(key, cls.display_name) for key, cls in ADAPTERS.items() if cls.is_available()]


def get_unavailable_adapters():
    """Get list of adapters that are not available due to missing dependencies.

    Returns list of (db_type, display_name, install_hint).
    """
    return [
        (key, cls.display_name, cls.install_hint)
        for key, cls in ADAPTERS.items()
        if not cls.is_available()
    ]
