"""
SQLite Database Adapter.

Implements DatabaseAdapter interface for SQLite databases.
Used for the Sakila sample database and other file-based profiles.
"""

import time
import sqlite3
from typing import List, Dict, Any, Optional, Tuple
from pathlib import Path

from .database_adapter import (
    DatabaseAdapter,
    ConnectionConfig,
    DatabaseType,
    ConnectionError,
    QueryExecutionError,
    quote_identifier,
    unique_column_names,
)


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite implementation of DatabaseAdapter.

    Features:
    - File-based database (no server required)
    - Read-only connections (``mode=ro`` URI) unless dangerous mode is on
    - Per-statement timeout via a progress handler
    - Full schema introspection with foreign key detection
    """

    def __init__(self, file_path: str, read_only: bool = True, timeout_seconds: Optional[float] = None):
        """
        Initialize SQLite adapter.

        Args:
            file_path: Path to SQLite database file
            read_only: Open the file read-only
            timeout_seconds: Abort statements running longer than this
        """
        config = ConnectionConfig(
            db_type=DatabaseType.SQLITE,
            file_path=file_path
        )
        super().__init__(config, read_only=read_only)
        self.timeout_seconds = timeout_seconds
        self._connection: Optional[sqlite3.Connection] = None
        self._deadline: Optional[float] = None

    def connect(self) -> None:
        """Establish connection to SQLite database."""
        file_path = self.config.file_path

        if not file_path:
            raise ConnectionError("No file path specified for SQLite database")

        path = Path(file_path)
        if not path.exists():
            raise ConnectionError(
                f"Database file not found: {file_path}\n"
                "   Run 'sqlbot setup sakila' to download the Sakila database."
            )

        try:
            if self.read_only:
                uri = path.resolve().as_uri() + "?mode=ro"
                self._connection = sqlite3.connect(uri, uri=True)
            else:
                self._connection = sqlite3.connect(str(path))
            self._connection.row_factory = sqlite3.Row
            if self.timeout_seconds:
                self._connection.set_progress_handler(self._check_deadline, 10000)
            self._connected = True
        except sqlite3.Error as e:
            raise ConnectionError(f"Failed to connect to SQLite: {e}")

    def _check_deadline(self) -> int:
        # Non-zero return interrupts the running statement
        if self._deadline is not None and time.monotonic() > self._deadline:
            return 1
        return 0

    def disconnect(self) -> None:
        """Close SQLite connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
        self._connected = False

    def fetch(
        self,
        sql: str,
        params: Optional[tuple] = None,
        max_rows: Optional[int] = None,
    ) -> Tuple[List[str], List[Dict[str, Any]], bool]:
        """Execute SQL and return (columns, rows, truncated)."""
        if not self._connection:
            self.connect()

        if self.timeout_seconds:
            self._deadline = time.monotonic() + self.timeout_seconds
        try:
            cursor = self._connection.cursor()
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)

            columns: List[str] = []
            raw_rows: list = []
            truncated = False
            if cursor.description:
                columns = unique_column_names([col[0] for col in cursor.description])
                if max_rows is None:
                    raw_rows = cursor.fetchall()
                else:
                    raw_rows = cursor.fetchmany(max_rows + 1)
                    truncated = len(raw_rows) > max_rows
                    raw_rows = raw_rows[:max_rows]
            cursor.close()

            # Writes with RETURNING also produce rows
            if not self.read_only and self._connection.in_transaction:
                self._connection.commit()

            return columns, [dict(zip(columns, row)) for row in raw_rows], truncated

        except sqlite3.OperationalError as e:
            if str(e) == "interrupted":
                raise QueryExecutionError(f"Query exceeded the {self.timeout_seconds}s timeout")
            raise QueryExecutionError(f"SQLite query failed: {e}")
        except sqlite3.Error as e:
            raise QueryExecutionError(f"SQLite query failed: {e}")
        finally:
            self._deadline = None

    def get_schema(self) -> Dict[str, Any]:
        """Get complete database schema."""
        table_rows = self.execute("""
            SELECT name FROM sqlite_master
            WHERE type='table' AND name NOT LIKE 'sqlite_%'
            ORDER BY name
        """)
        table_names = [row["name"] for row in table_rows]

        tables = [self.get_table_info(name) for name in table_names]

        relationships = []
        for table in tables:
            for fk in table["foreign_keys"]:
                relationships.append({
                    "from_table": table["name"],
                    "from_column": fk["column"],
                    "to_table": fk["references_table"],
                    "to_column": fk["references_column"]
                })

        return {
            "tables": tables,
            "relationships": relationships,
            "table_count": len(tables)
        }

    def get_table_info(self, table_name: str) -> Dict[str, Any]:
        """Get detailed information about a table."""
        quoted = quote_identifier(table_name)

        columns = []
        primary_keys = []
        for col in self.execute(f"PRAGMA table_info({quoted})"):
            columns.append({
                "name": col["name"],
                "type": col["type"],
                "nullable": not col["notnull"],
                "default": col["dflt_value"],
                "primary_key": bool(col["pk"])
            })
            if col["pk"]:
                primary_keys.append(col["name"])

        foreign_keys = []
        for fk in self.execute(f"PRAGMA foreign_key_list({quoted})"):
            foreign_keys.append({
                "column": fk["from"],
                "references_table": fk["table"],
                # NULL "to" means the parent's primary key
                "references_column": fk["to"] or "",
            })

        count_rows = self.execute(f"SELECT COUNT(*) AS row_count FROM {quoted}")
        row_count = count_rows[0]["row_count"] if count_rows else 0

        return {
            "name": table_name,
            "columns": columns,
            "primary_keys": primary_keys,
            "foreign_keys": foreign_keys,
            "row_count": row_count
        }

