import crudbench.database
from crudbench.__main__ import main


def test_help(capsys):
    assert main(["--help"]) == 0
    assert "Usage: crudbench" in capsys.readouterr().out


def test_tables(db_url, capsys):
    assert main(["--url", db_url, "tables"]) == 0
    assert capsys.readouterr().out.split() == ["Card", "CardHolders", "CardLimits", "Transaction"]


def test_describe(db_url, capsys):
    assert main(["--url", db_url, "describe", "CardHolders"]) == 0
    out = capsys.readouterr().out
    assert out.splitlines()[0].split() == ["column", "type", "native", "nullable", "key"]
    assert "auto pk" in out
    assert "BOOLEAN" in out


def test_rows(db_url, capsys):
    assert main(["--url", db_url, "rows", "CardHolders"]) == 0
    out = capsys.readouterr().out
    assert "ada@example.com" in out
    assert "2023-06-01" in out
    assert "(2 row(s))" in out


def test_query_and_write(db_url, capsys):
    assert main(["--url", db_url, "query", "DELETE FROM Card WHERE card_id = 3"]) == 0
    assert "1 row(s) affected" in capsys.readouterr().out
    assert main(["--url", db_url, "query", "SELECT COUNT(*) AS n FROM Card"]) == 0
    assert capsys.readouterr().out.splitlines()[2].strip() == "2"


def test_queries_are_logged_locally(db_url, capsys):
    main(["--url", db_url, "query", "SELECT 1"])
    log = crudbench.database._get_db().get_query_log()
    assert log[0]["sql"] == "SELECT 1"


def test_saved_queries(db_url, capsys):
    crudbench.database._get_db().save_query("holders", "SELECT name FROM CardHolders", None, "sqlite")
    assert main(["saved"]) == 0
    assert "holders" in capsys.readouterr().out
    assert main(["--url", db_url, "run-saved", "holders"]) == 0
    assert "Alan Turing" in capsys.readouterr().out


def test_saved_connection(db_path, capsys):
    crudbench.database._get_db().save_connection("cards", "sqlite", None, None, str(db_path),
                                                 None, None)
    assert main(["--connection", "cards", "rows", "Card"]) == 0
    assert "(3 row(s))" in capsys.readouterr().out


def test_url_from_environment(db_url, monkeypatch, capsys):
    monkeypatch.setenv("CRUDBENCH_URL", db_url)
    assert main(["tables"]) == 0
    assert "CardHolders" in capsys.readouterr().out


def test_engine_error_exits_1(db_url, capsys):
    assert main(["--url", db_url, "query", "SELECT * FROM NoSuchTable"]) == 1
    assert "Error: no such table" in capsys.readouterr().err


def test_missing_table_exits_1(db_url, capsys):
    assert main(["--url", db_url, "describe", "Nope"]) == 1
    assert "Table not found: Nope" in capsys.readouterr().err


def test_usage_errors_exit_2(db_url, capsys):
    assert main([]) == 2
    assert main(["frobnicate"]) == 2
    assert main(["--url", db_url, "describe"]) == 2
    assert main(["--url", db_url, "--connection", "x", "tables"]) == 2
    assert main(["--timeout", "soon", "tables"]) == 2
    assert main(["tables"]) == 2
    assert main(["--connection", "unknown", "tables"]) == 2
    assert "Error:" in capsys.readouterr().err


def test_invalid_environment_exits_1(monkeypatch, capsys):
    monkeypatch.setenv("CRUDBENCH_TIMEOUT", "soon")
    assert main(["saved"]) == 1
    assert "CRUDBENCH_TIMEOUT" in capsys.readouterr().err
