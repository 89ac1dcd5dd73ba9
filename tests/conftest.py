"""
Shared fixtures for SQLBot tests.

Builds a small Sakila-shaped SQLite database so that no download,
network access or LLM is required.
"""

import sqlite3
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from sqlbot.adapters import SQLiteAdapter
from sqlbot.configs import SQLBotConfig
from sqlbot.orchestrator import LLMResponse

SAKILA_DDL = """
CREATE TABLE language (
    language_id INTEGER PRIMARY KEY,
    name VARCHAR(20) NOT NULL
);
CREATE TABLE film (
    film_id INTEGER PRIMARY KEY,
    title VARCHAR(255) NOT NULL,
    rating VARCHAR(10),
    rental_rate DECIMAL(4,2),
    language_id INTEGER NOT NULL REFERENCES language(language_id)
);
CREATE TABLE actor (
    actor_id INTEGER PRIMARY KEY,
    first_name VARCHAR(45) NOT NULL,
    last_name VARCHAR(45) NOT NULL
);
CREATE TABLE film_actor (
    actor_id INTEGER NOT NULL REFERENCES actor(actor_id),
    film_id INTEGER NOT NULL REFERENCES film(film_id),
    PRIMARY KEY (actor_id, film_id)
);
CREATE TABLE customer (
    customer_id INTEGER PRIMARY KEY,
    first_name VARCHAR(45) NOT NULL,
    last_name VARCHAR(45) NOT NULL,
    active INTEGER DEFAULT 1
);
CREATE TABLE inventory (
    inventory_id INTEGER PRIMARY KEY,
    film_id INTEGER NOT NULL REFERENCES film(film_id)
);
CREATE TABLE rental (
    rental_id INTEGER PRIMARY KEY,
    inventory_id INTEGER NOT NULL REFERENCES inventory(inventory_id),
    customer_id INTEGER NOT NULL REFERENCES customer(customer_id),
    return_date TEXT
);
CREATE TABLE payment (
    payment_id INTEGER PRIMARY KEY,
    customer_id INTEGER NOT NULL REFERENCES customer(customer_id),
    rental_id INTEGER REFERENCES rental(rental_id),
    amount DECIMAL(5,2) NOT NULL
);
"""

SAKILA_ROWS = """
INSERT INTO language VALUES (1, 'English'), (2, 'Italian');
INSERT INTO film VALUES
    (1, 'ACADEMY DINOSAUR', 'PG', 0.99, 1),
    (2, 'ACE GOLDFINGER', 'G', 4.99, 1),
    (3, 'ADAPTATION HOLES', 'NC-17', 2.99, 1),
    (4, 'DROP ZONE', 'PG', 2.99, 2);
INSERT INTO actor VALUES (1, 'PENELOPE', 'GUINESS'), (2, 'NICK', 'WAHLBERG');
INSERT INTO film_actor VALUES (1, 1), (1, 3), (2, 2);
INSERT INTO customer VALUES (1, 'MARY', 'SMITH', 1), (2, 'PATRICIA', 'JOHNSON', 0);
INSERT INTO inventory VALUES (1, 1), (2, 2), (3, 4);
INSERT INTO rental VALUES (1, 1, 1, '2005-05-26'), (2, 2, 1, NULL), (3, 3, 2, '2005-06-01');
INSERT INTO payment VALUES (1, 1, 1, 2.99), (2, 1, 2, 0.99), (3, 2, 3, 5.99);
"""


def build_sakila_db(path: Path) -> Path:
    """Create the test database at ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(SAKILA_DDL)
        conn.executescript(SAKILA_ROWS)
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def sakila_db(tmp_path):
    """Path to a small Sakila-shaped SQLite database."""
    return build_sakila_db(tmp_path / "sakila.db")


@pytest.fixture
def adapter(sakila_db):
    """Connected read-only adapter over ``sakila_db``."""
    db = SQLiteAdapter(str(sakila_db), read_only=True, timeout_seconds=5)
    db.connect()
    yield db
    db.disconnect()


@pytest.fixture
def config():
    """Default configuration with small limits."""
    cfg = SQLBotConfig()
    cfg.database.default_limit = 10
    cfg.database.max_result_rows = 50
    return cfg


@pytest.fixture
def make_llm():
    """Factory for a mock LLM that returns ``replies`` in order."""
    def _make(*replies):
        llm = MagicMock()
        llm.generate.side_effect = [LLMResponse(content=r, model="mock/model") for r in replies]
        return llm
    return _make


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Run in an empty working directory with an empty home and no SQLBot env vars."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for key in ("SQLBOT_PROFILE", "SQLBOT_TARGET", "DBT_PROFILES_DIR", "SQLBOT_LLM_MODEL",
                "SQLBOT_FALLBACK_MODEL", "SQLBOT_READ_ONLY", "SQLBOT_PREVIEW_MODE",
                "SQLBOT_DEFAULT_LIMIT", "SQLBOT_MAX_RESULT_ROWS", "SQLBOT_MAX_RETRIES",
                "SQLBOT_SAKILA_URL", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    return work
