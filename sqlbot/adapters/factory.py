"""
Database Adapter Factory.

Creates the appropriate database adapter from a resolved connection.
Provides a single entry point for adapter creation.
"""

import logging
from typing import Optional

from .database_adapter import DatabaseAdapter, DatabaseType, ConnectionConfig
from .sqlite_adapter import SQLiteAdapter
from .postgres_adapter import PostgresAdapter

logger = logging.getLogger(__name__)


def create_adapter(
    connection: ConnectionConfig,
    read_only: bool = True,
    timeout_seconds: Optional[float] = None,
    connect: bool = True,
) -> DatabaseAdapter:
    """
    Create a database adapter for the given connection.

    Args:
        connection: Resolved connection (usually from a dbt profile)
        read_only: Open a read-only session
        timeout_seconds: Per-statement timeout
        connect: Connect immediately (raises ConnectionError on failure)

    Returns:
        DatabaseAdapter instance

    Raises:
        ValueError: If required params are missing

    Examples:
        adapter = create_adapter(
            ConnectionConfig(DatabaseType.SQLITE, file_path="profiles/Sakila/data/sakila.db")
        )
    """
    if connection.db_type == DatabaseType.SQLITE:
        if not connection.file_path:
            raise ValueError("file_path is required for SQLite adapter")
        adapter = SQLiteAdapter(connection.file_path, read_only=read_only, timeout_seconds=timeout_seconds)

    elif connection.db_type == DatabaseType.POSTGRES:
        if not connection.connection_string and not connection.host:
            raise ValueError("connection_string or host is required for Postgres adapter")
        adapter = PostgresAdapter(
            connection_string=connection.connection_string,
            read_only=read_only,
            timeout_seconds=timeout_seconds,
            host=connection.host,
            port=connection.port,
            database=connection.database,
            user=connection.user,
            password=connection.password,
            schema=connection.schema,
        )

    else:
        raise ValueError(f"Unsupported database type: {connection.db_type}")

    if connect:
        adapter.connect()
        logger.info("Connected to %s (read_only=%s)", connection.describe(), read_only)
    return adapter
