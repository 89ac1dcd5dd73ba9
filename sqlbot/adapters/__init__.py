"""
Adapters module for SQLBot.

Database adapters (SQLite, Postgres) behind a single interface.
"""

from .database_adapter import (
    DatabaseAdapter,
    DatabaseType,
    ConnectionConfig,
    DatabaseError,
    ConnectionError,
    QueryExecutionError,
    quote_identifier,
    unique_column_names,
)
from .sqlite_adapter import SQLiteAdapter
from .postgres_adapter import PostgresAdapter
from .factory import create_adapter

__all__ = [
    "DatabaseAdapter",
    "DatabaseType",
    "ConnectionConfig",
    "DatabaseError",
    "ConnectionError",
    "QueryExecutionError",
    "quote_identifier",
    "unique_column_names",
    "SQLiteAdapter",
    "PostgresAdapter",
    "create_adapter",
]
