"""
Database tools module.

Contains tools for schema introspection and SQL safety validation.
"""

from .safety import (
    validate_sql,
    apply_row_limit,
    split_statements,
    statement_type,
    strip_sql_comments_and_literals,
    find_forbidden_keywords,
    has_top_level_limit,
)
from .schema_tools import (
    build_schema_context,
    schema_to_prompt_text,
    describe_table,
)

__all__ = [
    # Safety
    "validate_sql",
    "apply_row_limit",
    "split_statements",
    "statement_type",
    "strip_sql_comments_and_literals",
    "find_forbidden_keywords",
    "has_top_level_limit",
    # Schema
    "build_schema_context",
    "schema_to_prompt_text",
    "describe_table",
]
