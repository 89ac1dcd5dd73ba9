"""
Database Adapter Layer for SQLBot.

This module provides a unified interface for database operations,
allowing the system to work with the backends a dbt profile can point at
(SQLite for the bundled Sakila database, Postgres for server deployments).

Design Principles:
- The query engine NEVER accesses databases directly
- All database operations go through adapters
- Adapters handle read-only sessions, error translation, schema introspection
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass
from enum import Enum


class DatabaseType(str, Enum):
    """Supported database types."""
    SQLITE = "sqlite"
    POSTGRES = "postgres"


@dataclass
class ConnectionConfig:
    """Database connection configuration."""
    db_type: DatabaseType
    # SQLite
    file_path: Optional[str] = None
    # Postgres
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    schema: Optional[str] = None
    connection_string: Optional[str] = None

    def describe(self) -> str:
        """Short, password-free description for logs and the CLI banner."""
        if self.db_type == DatabaseType.SQLITE:
            return f"sqlite:{self.file_path}"
        if self.connection_string:
            return "postgres:<connection string>"
        return f"postgres://{self.user or ''}@{self.host}:{self.port}/{self.database}"


class DatabaseError(Exception):
    """Base exception for database operations."""
    pass


class ConnectionError(DatabaseError):
    """Failed to connect to database."""
    pass


class QueryExecutionError(DatabaseError):
    """Query execution failed."""
    pass


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    All database operations in the system MUST go through this interface.
    The query engine and tools should never use sqlite3/psycopg2 directly.
    """

    def __init__(self, config: ConnectionConfig, read_only: bool = True):
        self.config = config
        self.read_only = read_only
        self._connected = False

    @property
    def dialect(self) -> str:
        """SQL dialect name used in prompts."""
        return "SQLite" if self.config.db_type == DatabaseType.SQLITE else "PostgreSQL"

    @abstractmethod
    def connect(self) -> None:
        """Establish database connection."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close database connection."""
        pass

    @abstractmethod
    def fetch(
        self,
        sql: str,
        params: Optional[tuple] = None,
        max_rows: Optional[int] = None,
    ) -> Tuple[List[str], List[Dict[str, Any]], bool]:
        """
        Execute a SQL statement.

        Args:
            sql: SQL query string
            params: Optional query parameters (for parameterized queries)
            max_rows: Stop fetching after this many rows

        Returns:
            (column_names, rows, truncated) where rows are dicts keyed by
            column name and truncated is True if more rows were available
        """
        pass

    def execute(
        self,
        sql: str,
        params: Optional[tuple] = None,
        max_rows: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Execute a SQL query and return rows as a list of dicts."""
        _, rows, _ = self.fetch(sql, params, max_rows)
        return rows

    @abstractmethod
    def get_schema(self) -> Dict[str, Any]:
        """
        Get database schema information.

        Returns:
            Dictionary with:
            - tables: List of table info (see get_table_info)
            - relationships: List of foreign key relationships
        """
        pass

    @abstractmethod
    def get_table_info(self, table_name: str) -> Dict[str, Any]:
        """
        Get detailed info for a specific table.

        Returns:
            Dictionary with name, columns, primary keys, foreign keys, row_count
        """
        pass

    def get_sample_data(self, table_name: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Get sample rows from a table."""
        return self.execute(f"SELECT * FROM {quote_identifier(table_name)} LIMIT {int(limit)}")

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._connected

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()


def quote_identifier(name: str) -> str:
    """Quote a table/column identifier (ANSI double quotes)."""
    return '"' + name.replace('"', '""') + '"'


def unique_column_names(names: List[str]) -> List[str]:
    """
    Rename repeated result columns so rows can be keyed by name.

    ``a.first_name, c.first_name`` becomes ``first_name, first_name_2``.
    Suffixes skip names already present in the result.
    """
    taken = set(names)
    used = set()
    result = []
    for name in names:
        if name not in used:
            result.append(name)
            used.add(name)
            continue
        n = 2
        while f"{name}_{n}" in used or f"{name}_{n}" in taken:
            n += 1
        renamed = f"{name}_{n}"
        result.append(renamed)
        used.add(renamed)
    return result
