"""
Schema introspection tools.

Builds a SchemaContext from whatever database the active profile points
at and renders it as compact prompt text or as a per-table description.
"""
import logging
from typing import Iterable, List, Optional

from sqlbot.adapters import DatabaseAdapter
from sqlbot.models import ColumnInfo, TableInfo, ForeignKeyRelation, SchemaContext

logger = logging.getLogger(__name__)


def build_schema_context(adapter: DatabaseAdapter) -> SchemaContext:
    """Introspect the database behind ``adapter`` into a SchemaContext."""
    raw = adapter.get_schema()

    relationships = [
        ForeignKeyRelation(
            from_table=rel["from_table"],
            from_column=rel["from_column"],
            to_table=rel["to_table"],
            to_column=rel["to_column"] or "",
        )
        for rel in raw.get("relationships", [])
    ]

    fk_lookup = {
        (rel.from_table, rel.from_column): f"{rel.to_table}.{rel.to_column}".rstrip(".")
        for rel in relationships
    }

    tables = []
    for table in raw.get("tables", []):
        columns = [
            ColumnInfo(
                name=col["name"],
                data_type=col.get("type") or "",
                nullable=col.get("nullable", True),
                primary_key=col.get("primary_key", col["name"] in table.get("primary_keys", [])),
                foreign_key=fk_lookup.get((table["name"], col["name"])),
            )
            for col in table.get("columns", [])
        ]
        tables.append(TableInfo(name=table["name"], columns=columns, row_count=table.get("row_count")))

    total_rows = sum(t.row_count or 0 for t in tables)
    summary = (
        f"{len(tables)} tables, {len(relationships)} foreign keys, {total_rows} rows in total"
    )
    logger.info("Schema introspected: %s", summary)
    return SchemaContext(tables=tables, relationships=relationships, summary=summary)


def _column_text(col: ColumnInfo) -> str:
    parts = [col.name]
    if col.data_type:
        parts.append(col.data_type)
    if col.primary_key:
        parts.append("PK")
    if col.foreign_key:
        parts.append(f"-> {col.foreign_key}")
    return " ".join(parts)


def schema_to_prompt_text(context: SchemaContext, tables: Optional[Iterable[str]] = None) -> str:
    """
    Render the schema as compact lines for an LLM prompt.

    Format::

        film(film_id INTEGER PK, title VARCHAR(255), language_id INTEGER -> language.language_id)  -- 1000 rows

    Args:
        context: Introspected schema
        tables: Only include these tables (case-insensitive); all if None
    """
    wanted = {t.lower() for t in tables} if tables is not None else None
    lines = []
    for table in context.tables:
        if wanted is not None and table.name.lower() not in wanted:
            continue
        cols = ", ".join(_column_text(c) for c in table.columns)
        line = f"{table.name}({cols})"
        if table.row_count is not None:
            line += f"  -- {table.row_count} rows"
        lines.append(line)
    return "\n".join(lines)


def describe_table(context: SchemaContext, name: str) -> Optional[List[List[str]]]:
    """
    Column rows for one table: [name, type, flags, references].

    Returns None if the table doesn't exist.
    """
    table = context.get_table(name)
    if table is None:
        return None
    rows = []
    for col in table.columns:
        flags = []
        if col.primary_key:
            flags.append("PK")
        if not col.nullable:
            flags.append("NOT NULL")
        rows.append([col.name, col.data_type, " ".join(flags), col.foreign_key or ""])
    return rows
