import pytest

import crudbench.database
from crudbench.database import Database
from crudbench.errors import SavedQueryNotFound


def test_default_location_follows_home(tmp_path):
    db = crudbench.database._get_db()
    assert db.db_path == tmp_path / "home" / "crudbench.db"
    assert crudbench.database._get_db() is db


def test_connections(store):
    store.save_connection("local", "sqlite", None, None, "/tmp/cards.db", None, None)
    store.save_connection("prod", "mysql", "db.example.com", 3306, "cards", "app", "s3cret",
                          query_timeout=30)

    listed = store.get_connections()
    assert [c["name"] for c in listed] == ["local", "prod"]
    assert "password" not in listed[1]

    prod = store.get_connection("prod")
    assert prod["password"] == "s3cret"
    assert prod["query_timeout"] == 30

    store.save_connection("production", "mysql", "db2.example.com", 3307, "cards", "app",
                          "s3cret", conn_id=prod["id"])
    assert store.get_connection("prod") is None
    assert store.get_connection("production")["port"] == 3307

    store.delete_connection(prod["id"])
    assert [c["name"] for c in store.get_connections()] == ["local"]


def test_saved_queries(store):
    store.save_query("totals", "SELECT SUM(amount) FROM \"Transaction\"", None, "sqlite")
    store.save_query("any db", "SELECT 1")
    store.save_query("pg", "SELECT now()", None, "postgresql")

    assert [q["name"] for q in store.get_saved_queries("sqlite")] == ["any db", "totals"]
    assert len(store.get_saved_queries()) == 3

    assert store.get_saved_query("pg")["sql"] == "SELECT now()"
    with pytest.raises(SavedQueryNotFound):
        store.get_saved_query("pg", "sqlite")

    store.delete_query(store.get_saved_query("totals")["id"])
    with pytest.raises(SavedQueryNotFound):
        store.get_saved_query("totals")


def test_latest_saved_query_wins(store):
    store.save_query("report", "SELECT 1", None, "sqlite")
    store.save_query("report", "SELECT 2", None, "sqlite")
    assert store.get_saved_query("report", "sqlite")["sql"] == "SELECT 2"


def test_export_and_import_queries(store, tmp_path):
    store.save_query("a", "SELECT 1", None, "sqlite")
    store.save_query("b", "SELECT 2", None, "mysql")
    path = tmp_path / "queries.json"
    assert store.export_queries(path) == 2

    other = Database(tmp_path / "other.db")
    assert other.import_queries(path, db_type="sqlite") == 1
    assert [q["name"] for q in other.get_saved_queries()] == ["a"]


def test_settings(store):
    assert store.get_setting("page_size", "1000") == "1000"
    store.set_setting("page_size", "250")
    store.set_setting("page_size", "500")
    assert store.get_setting("page_size") == "500"


def test_module_settings_helpers():
    crudbench.database.set_setting("theme", "dark")
    assert crudbench.database.get_setting("theme") == "dark"
    assert crudbench.database.get_connections() == []
    assert crudbench.database.get_connection("none") is None


def test_query_log(store):
    store.log_query("local", "SELECT 1", duration=0.01, row_count=1)
    store.log_query("prod", "SELECT x", status="error", error_message="no such column: x")

    log = store.get_query_log()
    assert [entry["sql"] for entry in log] == ["SELECT x", "SELECT 1"]
    assert log[0]["error_message"] == "no such column: x"
    assert [e["sql"] for e in store.get_query_log(connection_name="local")] == ["SELECT 1"]
    assert len(store.get_query_log(limit=1)) == 1

    store.clear_query_log()
    assert store.get_query_log() == []
