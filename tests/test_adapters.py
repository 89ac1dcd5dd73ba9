"""Tests for database adapters (SQLite against a local file; Postgres without a server)."""
from unittest.mock import MagicMock

import pytest

from sqlbot.adapters import (
    ConnectionConfig,
    ConnectionError,
    DatabaseType,
    PostgresAdapter,
    QueryExecutionError,
    SQLiteAdapter,
    create_adapter,
    quote_identifier,
    unique_column_names,
)


def test_quote_identifier():
    assert quote_identifier("film") == '"film"'
    assert quote_identifier('odd"name') == '"odd""name"'


def test_unique_column_names():
    assert unique_column_names(["id", "title"]) == ["id", "title"]
    assert unique_column_names(["a", "a", "a"]) == ["a", "a_2", "a_3"]
    assert unique_column_names(["a", "a", "a_2"]) == ["a", "a_3", "a_2"]


class TestSQLiteAdapter:

    def test_fetch_returns_columns_and_dict_rows(self, adapter):
        columns, rows, truncated = adapter.fetch("SELECT film_id, title FROM film ORDER BY film_id")
        assert columns == ["film_id", "title"]
        assert rows[0] == {"film_id": 1, "title": "ACADEMY DINOSAUR"}
        assert len(rows) == 4
        assert truncated is False

    def test_fetch_truncates_at_max_rows(self, adapter):
        columns, rows, truncated = adapter.fetch("SELECT title FROM film ORDER BY film_id", max_rows=2)
        assert [r["title"] for r in rows] == ["ACADEMY DINOSAUR", "ACE GOLDFINGER"]
        assert truncated is True

    def test_fetch_exact_max_rows_is_not_truncated(self, adapter):
        _, rows, truncated = adapter.fetch("SELECT title FROM film", max_rows=4)
        assert len(rows) == 4
        assert truncated is False

    def test_parameterized_query(self, adapter):
        rows = adapter.execute("SELECT title FROM film WHERE rating = ?", ("PG",))
        assert {r["title"] for r in rows} == {"ACADEMY DINOSAUR", "DROP ZONE"}

    def test_bad_sql_raises_query_error(self, adapter):
        with pytest.raises(QueryExecutionError, match="no such table"):
            adapter.fetch("SELECT * FROM films")

    def test_read_only_session_rejects_writes(self, adapter):
        with pytest.raises(QueryExecutionError, match="readonly"):
            adapter.fetch("DELETE FROM film")
        assert adapter.execute("SELECT COUNT(*) AS n FROM film")[0]["n"] == 4

    def test_writable_session_commits(self, sakila_db):
        with SQLiteAdapter(str(sakila_db), read_only=False) as db:
            columns, rows, _ = db.fetch("INSERT INTO actor VALUES (3, 'ED', 'CHASE')")
            assert columns == [] and rows == []
        with SQLiteAdapter(str(sakila_db)) as db:
            assert db.execute("SELECT COUNT(*) AS n FROM actor")[0]["n"] == 3

    def test_writable_returning_is_committed(self, sakila_db):
        with SQLiteAdapter(str(sakila_db), read_only=False) as db:
            columns, rows, _ = db.fetch("INSERT INTO actor VALUES (3, 'ED', 'CHASE') RETURNING actor_id")
            assert columns == ["actor_id"]
            assert rows == [{"actor_id": 3}]
        with SQLiteAdapter(str(sakila_db)) as db:
            assert db.execute("SELECT COUNT(*) AS n FROM actor")[0]["n"] == 3

    def test_duplicate_column_names_are_kept_apart(self, adapter):
        columns, rows, _ = adapter.fetch(
            "SELECT a.first_name, c.first_name FROM actor a, customer c "
            "WHERE a.actor_id = 1 AND c.customer_id = 1"
        )
        assert columns == ["first_name", "first_name_2"]
        assert rows == [{"first_name": "PENELOPE", "first_name_2": "MARY"}]

    def test_missing_file(self, tmp_path):
        db = SQLiteAdapter(str(tmp_path / "missing.db"))
        with pytest.raises(ConnectionError, match="sqlbot setup sakila"):
            db.connect()
        assert not db.is_connected

    def test_get_schema(self, adapter):
        schema = adapter.get_schema()
        names = [t["name"] for t in schema["tables"]]
        assert names == sorted(names)
        assert {"film", "actor", "customer", "rental", "payment", "inventory"} <= set(names)
        assert schema["table_count"] == len(names)
        assert {
            "from_table": "rental",
            "from_column": "customer_id",
            "to_table": "customer",
            "to_column": "customer_id",
        } in schema["relationships"]

    def test_get_table_info(self, adapter):
        info = adapter.get_table_info("film_actor")
        assert info["primary_keys"] == ["actor_id", "film_id"]
        assert info["row_count"] == 3
        assert {fk["references_table"] for fk in info["foreign_keys"]} == {"actor", "film"}
        title = next(c for c in adapter.get_table_info("film")["columns"] if c["name"] == "title")
        assert title["nullable"] is False
        assert title["type"] == "VARCHAR(255)"

    def test_sample_data(self, adapter):
        assert len(adapter.get_sample_data("film", limit=2)) == 2

    def test_dialect(self, adapter):
        assert adapter.dialect == "SQLite"


class TestFactory:

    def test_create_sqlite(self, sakila_db):
        db = create_adapter(ConnectionConfig(DatabaseType.SQLITE, file_path=str(sakila_db)))
        try:
            assert isinstance(db, SQLiteAdapter)
            assert db.is_connected
            assert db.read_only
        finally:
            db.disconnect()

    def test_create_without_connecting(self, tmp_path):
        db = create_adapter(
            ConnectionConfig(DatabaseType.SQLITE, file_path=str(tmp_path / "later.db")),
            connect=False,
        )
        assert not db.is_connected

    def test_sqlite_requires_path(self):
        with pytest.raises(ValueError, match="file_path"):
            create_adapter(ConnectionConfig(DatabaseType.SQLITE))

    def test_create_postgres_without_connecting(self):
        db = create_adapter(
            ConnectionConfig(DatabaseType.POSTGRES, host="db.example.com", database="dvdrental", user="bot"),
            read_only=True,
            timeout_seconds=10,
            connect=False,
        )
        assert isinstance(db, PostgresAdapter)
        assert db.dialect == "PostgreSQL"
        assert db.config.port == 5432
        assert db.schema_name == "public"
        assert "bot@db.example.com:5432/dvdrental" in db.config.describe()

    def test_postgres_requires_host(self):
        with pytest.raises(ValueError, match="host"):
            create_adapter(ConnectionConfig(DatabaseType.POSTGRES), connect=False)


class TestPostgresFetch:
    """fetch() against a mocked psycopg2 connection."""

    @pytest.fixture
    def pg(self):
        pytest.importorskip("psycopg2")
        db = PostgresAdapter(host="db.example.com", database="dvdrental", user="bot")
        db._connection = MagicMock(autocommit=False)
        cursor = db._connection.cursor.return_value.__enter__.return_value
        return db, cursor

    def test_duplicate_column_names_are_kept_apart(self, pg):
        db, cursor = pg
        cursor.description = [("first_name",), ("first_name",)]
        cursor.fetchall.return_value = [("PENELOPE", "MARY")]

        columns, rows, truncated = db.fetch("SELECT a.first_name, c.first_name FROM actor a, customer c")

        assert columns == ["first_name", "first_name_2"]
        assert rows == [{"first_name": "PENELOPE", "first_name_2": "MARY"}]
        assert truncated is False

    def test_writable_session_commits_returning(self, pg):
        db, cursor = pg
        db.read_only = False
        cursor.description = [("actor_id",)]
        cursor.fetchall.return_value = [(201,)]

        _, rows, _ = db.fetch("INSERT INTO actor (first_name, last_name) VALUES ('ED', 'CHASE') RETURNING actor_id")

        assert rows == [{"actor_id": 201}]
        db._connection.commit.assert_called_once()

    def test_read_only_session_does_not_commit(self, pg):
        db, cursor = pg
        cursor.description = [("n",)]
        cursor.fetchall.return_value = [(4,)]

        db.fetch("SELECT COUNT(*) AS n FROM film")

        db._connection.commit.assert_not_called()

    def test_failure_rolls_back(self, pg):
        import psycopg2

        db, cursor = pg
        db.read_only = False
        cursor.execute.side_effect = psycopg2.Error("relation \"films\" does not exist")

        with pytest.raises(QueryExecutionError, match="PostgreSQL query failed"):
            db.fetch("SELECT * FROM films")

        db._connection.rollback.assert_called_once()
        db._connection.commit.assert_not_called()
