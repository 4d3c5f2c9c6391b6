import datetime
from decimal import Decimal

import pytest

from crudbench.adapters import (
    ADAPTERS,
    IBMiAdapter,
    IBMiDBAdapter,
    MySQLAdapter,
    PostgreSQLAdapter,
    SQLiteAdapter,
    get_adapter,
    get_adapter_choices,
    get_unavailable_adapters,
)
from crudbench.errors import UnknownDatabaseType
from crudbench.models import SqlType


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn

    def execute(self, sql, params=None):
        if self.conn.fail:
            raise RuntimeError("boom")
        self.conn.executed.append((sql, params))

    def fetchone(self):
        return self.conn.row

    def close(self):
        pass


class FakeConnection:
    def __init__(self, row=None, fail=False):
        self.row = row
        self.fail = fail
        self.executed = []
        self.commits = 0
        self.timeout = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1


class DriverError(Exception):
    def __init__(self, message, errno=None, pgcode=None):
        super().__init__(message)
        self.errno = errno
        self.pgcode = pgcode


def test_get_adapter_by_type_and_alias():
    assert isinstance(get_adapter("mysql"), MySQLAdapter)
    assert isinstance(get_adapter("mariadb"), MySQLAdapter)
    assert isinstance(get_adapter("postgres"), PostgreSQLAdapter)
    assert isinstance(get_adapter("sqlite3"), SQLiteAdapter)


def test_get_adapter_unknown_type():
    with pytest.raises(UnknownDatabaseType):
        get_adapter("oracle")


def test_adapter_choices():
    choices = get_adapter_choices(include_unavailable=True)
    assert [key for key, _ in choices] == list(ADAPTERS)
    assert ("sqlite", "SQLite") in get_adapter_choices()
    unavailable = {key for key, _, _ in get_unavailable_adapters()}
    assert "sqlite" not in unavailable


def test_install_hints_name_the_extra():
    assert MySQLAdapter.install_hint == "pip install crudbench[mysql]"
    assert IBMiDBAdapter.install_hint == "pip install crudbench[ibmi-db]"


@pytest.mark.parametrize("code,expected", [
    (int, SqlType.INTEGER),
    (Decimal, SqlType.DECIMAL),
    (str, SqlType.TEXT),
    (datetime.date, SqlType.DATE),
    (datetime.datetime, SqlType.DATETIME),
    (bool, SqlType.BOOLEAN),
    (bytearray, SqlType.OTHER),
    (None, SqlType.OTHER),
])
def test_python_type_codes(code, expected):
    assert IBMiAdapter().sql_type_from_code(code) is expected


@pytest.mark.parametrize("oid,expected", [
    (23, SqlType.INTEGER),
    (1700, SqlType.DECIMAL),
    (1043, SqlType.TEXT),
    (1082, SqlType.DATE),
    (1184, SqlType.DATETIME),
    (16, SqlType.BOOLEAN),
    (2950, SqlType.OTHER),
])
def test_postgresql_oids(oid, expected):
    assert PostgreSQLAdapter().sql_type_from_code(oid) is expected


def test_ibm_db_leaves_types_to_values():
    assert IBMiDBAdapter().sql_type_from_code(int) is SqlType.OTHER


def test_mysql_field_types():
    connector = pytest.importorskip("mysql.connector")
    adapter = MySQLAdapter()
    assert adapter.sql_type_from_code(connector.FieldType.LONG) is SqlType.INTEGER
    assert adapter.sql_type_from_code(connector.FieldType.NEWDECIMAL) is SqlType.DECIMAL
    assert adapter.sql_type_from_code(connector.FieldType.VAR_STRING) is SqlType.TEXT


def test_mysql_column_row():
    row = (b"card_id", "int(11)", "NO", "auto_increment")
    assert MySQLAdapter().column_from_row(row) == ("card_id", "int(11)", False, True)


def test_default_column_row():
    assert IBMiAdapter().column_from_row(("NAME", "VARCHAR", "Y", "NO")) == ("NAME", "VARCHAR", True, False)


def test_ibmi_catalog_queries_upper_case_names():
    sql, params = IBMiAdapter().get_columns_query("mylib.card")
    assert "QSYS2.SYSCOLUMNS" in sql
    assert params == ["MYLIB", "CARD"]
    sql, params = IBMiAdapter().get_primary_key_query("card")
    assert "CURRENT SCHEMA" in sql
    assert params == ["CARD"]


def test_mysql_catalog_queries_use_current_database():
    sql, params = MySQLAdapter().get_columns_query("Card")
    assert "DATABASE()" in sql
    assert params == ["Card"]


def test_postgresql_catalog_query_escapes_percent():
    sql, _ = PostgreSQLAdapter().get_columns_query("card")
    assert "nextval(%%" in sql


def test_mysql_timeout_uses_session_variable():
    conn = FakeConnection()
    assert MySQLAdapter().apply_timeout(conn, 2.5)
    assert conn.executed == [("SET SESSION MAX_EXECUTION_TIME = %s", (2500,))]


def test_postgresql_timeout_uses_statement_timeout():
    conn = FakeConnection()
    assert PostgreSQLAdapter().apply_timeout(conn, 3)
    assert conn.executed == [("SET statement_timeout = %s", (3000,))]
    assert conn.commits == 1


def test_ibmi_timeout_uses_connection_attribute():
    conn = FakeConnection()
    assert IBMiAdapter().apply_timeout(conn, 4.7)
    assert conn.timeout == 4


def test_ibm_db_has_no_timeout():
    assert not IBMiDBAdapter().apply_timeout(FakeConnection(), 5)


def test_timeout_errors_are_recognised():
    assert MySQLAdapter().is_timeout_error(DriverError("timeout", errno=3024))
    assert not MySQLAdapter().is_timeout_error(DriverError("dup", errno=1062))
    assert PostgreSQLAdapter().is_timeout_error(DriverError("canceling", pgcode="57014"))
    assert IBMiAdapter().is_timeout_error(Exception("HYT00", "[HYT00] Timeout expired"))
    assert IBMiDBAdapter().is_timeout_error(Exception("SQL0666 limit exceeded"))
    assert not SQLiteAdapter().is_timeout_error(ValueError("interrupted"))


def test_get_version_returns_none_on_failure():
    assert MySQLAdapter().get_version(FakeConnection(fail=True)) is None


def test_postgresql_version_is_parsed():
    conn = FakeConnection(row=("PostgreSQL 15.3 on x86_64-pc-linux-gnu, compiled by gcc",))
    assert PostgreSQLAdapter().get_version(conn) == "15.3"


def test_pagination_strips_semicolons():
    assert SQLiteAdapter().add_pagination("SELECT 1;", 10) == "SELECT 1 LIMIT 10"


def test_sqlite_round_trips_typed_values(tmp_path):
    conn = SQLiteAdapter().connect(None, None, None, database=str(tmp_path / "t.db"))
    try:
        conn.execute("CREATE TABLE t (d DATE, ts DATETIME, amount DECIMAL(8, 2), flag BOOLEAN)")
        values = (datetime.date(2024, 1, 2), datetime.datetime(2024, 1, 2, 3, 4, 5),
                  Decimal("12.34"), True)
        conn.execute("INSERT INTO t VALUES (?, ?, ?, ?)", values)
        assert conn.execute("SELECT * FROM t").fetchone() == values
    finally:
        conn.close()


def test_sqlite_keeps_inexact_cells_as_text(tmp_path):
    conn = SQLiteAdapter().connect(None, None, None, database=str(tmp_path / "t.db"))
    try:
        conn.execute("CREATE TABLE t (d DATE, ts DATETIME, amount DECIMAL(8, 2), flag BOOLEAN)")
        conn.execute("INSERT INTO t VALUES ('2024-01-02 10:30:00', '2024-01-02', 'n/a', 'maybe')")
        conn.execute("INSERT INTO t VALUES ('unknown', 'later', '1.5', 'no')")
        rows = conn.execute("SELECT * FROM t").fetchall()
    finally:
        conn.close()
    assert rows[0] == ("2024-01-02 10:30:00", "2024-01-02", "n/a", "maybe")
    assert rows[1] == ("unknown", "later", Decimal("1.5"), False)


def test_sqlite_reads_offset_datetimes(tmp_path):
    conn = SQLiteAdapter().connect(None, None, None, database=str(tmp_path / "t.db"))
    try:
        conn.execute("CREATE TABLE t (ts DATETIME)")
        conn.execute("INSERT INTO t VALUES ('2024-05-01 12:30:00+05:00')")
        (value,) = conn.execute("SELECT ts FROM t").fetchone()
    finally:
        conn.close()
    assert value == datetime.datetime(2024, 5, 1, 12, 30,
                                      tzinfo=datetime.timezone(datetime.timedelta(hours=5)))
