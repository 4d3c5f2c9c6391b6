import logging
import sqlite3

import pytest

import crudbench.connection
import crudbench.database
from crudbench.connection import ConnectionProvider
from crudbench.database import Database

SCHEMA = """
CREATE TABLE CardHolders (
    cardholder_id INTEGER PRIMARY KEY,
    name VARCHAR(100) NOT NULL,
    email TEXT CHECK (email LIKE '%@%'),
    joined DATE,
    active BOOLEAN NOT NULL DEFAULT 1
);

CREATE TABLE Card (
    card_id INTEGER PRIMARY KEY,
    cardholder_id INTEGER NOT NULL REFERENCES CardHolders (cardholder_id),
    card_type VARCHAR(20) NOT NULL,
    credit_limit DECIMAL(10, 2)
);

CREATE TABLE "Transaction" (
    transaction_id INTEGER PRIMARY KEY,
    card_id INTEGER NOT NULL,
    amount DECIMAL(10, 2) NOT NULL,
    posted_at DATETIME,
    status CHAR(1) DEFAULT 'P'
);

CREATE TABLE CardLimits (
    card_id INTEGER,
    period TEXT,
    amount DECIMAL(10, 2),
    PRIMARY KEY (card_id, period)
);

INSERT INTO CardHolders (cardholder_id, name, email, joined, active)
VALUES (1, 'Ada Lovelace', 'ada@example.com', '2023-01-15', 1),
       (2, 'Alan Turing', 'alan@example.com', '2023-06-01', 0);

INSERT INTO Card (card_id, cardholder_id, card_type, credit_limit)
VALUES (1, 1, 'VISA', 1000.5),
       (2, 1, 'AMEX', 2500),
       (3, 2, 'VISA', 750.25);

INSERT INTO "Transaction" (transaction_id, card_id, amount, posted_at, status)
VALUES (1, 1, 12.5, '2024-02-01 09:15:00', 'P'),
       (2, 3, 99.99, '2024-02-03 18:40:00', 'S');

INSERT INTO CardLimits (card_id, period, amount)
VALUES (1, '2024-01', 500);
"""


@pytest.fixture(autouse=True)
def isolated_app(tmp_path, monkeypatch):
    """Keep the local store and the process-wide provider out of the user's home."""
    monkeypatch.setenv("CRUDBENCH_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("CRUDBENCH_URL", raising=False)
    monkeypatch.delenv("CRUDBENCH_TIMEOUT", raising=False)
    monkeypatch.delenv("CRUDBENCH_LOG_LEVEL", raising=False)
    monkeypatch.setattr(crudbench.database, "_db", None)
    monkeypatch.setattr(crudbench.connection, "_provider", None)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "cards.db"
    conn = sqlite3.connect(path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def db_url(db_path):
    return f"sqlite://{db_path}"


@pytest.fixture
def provider():
    provider = ConnectionProvider()
    yield provider
    provider.disconnect()


@pytest.fixture
def session(provider, db_url):
    return provider.connect(db_url)


@pytest.fixture
def store(tmp_path):
    return Database(tmp_path / "store.db")
