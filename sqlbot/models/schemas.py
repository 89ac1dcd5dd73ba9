"""
Pydantic models for structured data flow through the query pipeline.
These models ensure type safety between the schema tools, the safety
validator, the database adapters and the CLI renderer.
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from enum import Enum


class ExecutionStatus(str, Enum):
    """Status of a processed query."""
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"
    BLOCKED = "blocked"      # Query blocked by safety validator
    CANCELLED = "cancelled"  # User declined in preview mode


# ============================================================
# Schema Models
# ============================================================

class ColumnInfo(BaseModel):
    """Information about a database column."""
    name: str = Field(description="Column name")
    data_type: str = Field(default="", description="SQL data type")
    nullable: bool = Field(default=True, description="Whether column allows NULL")
    primary_key: bool = Field(default=False, description="Whether column is primary key")
    foreign_key: Optional[str] = Field(default=None, description="Foreign key reference (table.column)")


class TableInfo(BaseModel):
    """Information about a database table."""
    name: str = Field(description="Table name")
    columns: List[ColumnInfo] = Field(default_factory=list, description="List of columns in the table")
    row_count: Optional[int] = Field(default=None, description="Row count at introspection time")

    @property
    def primary_keys(self) -> List[str]:
        return [c.name for c in self.columns if c.primary_key]


class ForeignKeyRelation(BaseModel):
    """Foreign key relationship between tables."""
    from_table: str = Field(description="Source table name")
    from_column: str = Field(description="Source column name")
    to_table: str = Field(description="Target table name")
    to_column: str = Field(description="Target column name")


class SchemaContext(BaseModel):
    """Complete database schema context."""
    tables: List[TableInfo] = Field(default_factory=list, description="All tables in the database")
    relationships: List[ForeignKeyRelation] = Field(default_factory=list, description="Foreign key relationships")
    summary: str = Field(default="", description="Human-readable schema summary")

    def get_table(self, name: str) -> Optional[TableInfo]:
        """Get table info by name (case-insensitive)."""
        for table in self.tables:
            if table.name.lower() == name.lower():
                return table
        return None

    def get_related_tables(self, table_name: str) -> List[str]:
        """Get all tables related to the given table via foreign keys."""
        related = set()
        for rel in self.relationships:
            if rel.from_table.lower() == table_name.lower():
                related.add(rel.to_table)
            elif rel.to_table.lower() == table_name.lower():
                related.add(rel.from_table)
        return sorted(related)

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]


# ============================================================
# Validation & Execution Models
# ============================================================

class ValidationResult(BaseModel):
    """Result of SQL safety validation."""
    is_valid: bool = Field(description="Whether SQL passed validation")
    errors: List[str] = Field(default_factory=list, description="List of validation errors")
    warnings: List[str] = Field(default_factory=list, description="List of warnings")
    is_read_only: bool = Field(default=True, description="Whether SQL is read-only")
    statement_type: Optional[str] = Field(default=None, description="Leading SQL keyword (SELECT, WITH, ...)")
    has_limit: bool = Field(default=False, description="Whether SQL has a top-level LIMIT clause")


class ExecutionResult(BaseModel):
    """Result of SQL execution."""
    sql: str = Field(description="The SQL that was executed")
    data: List[Dict[str, Any]] = Field(default_factory=list, description="Query results as list of dicts")
    column_names: List[str] = Field(default_factory=list, description="Column names in result")
    row_count: int = Field(default=0, description="Number of rows returned")
    truncated: bool = Field(default=False, description="Whether rows were cut at max_result_rows")
    error_message: Optional[str] = Field(default=None, description="Error message if failed")
    execution_time_ms: Optional[float] = Field(default=None, description="Query execution time in ms")

    @property
    def is_success(self) -> bool:
        return self.error_message is None


# ============================================================
# Response Models
# ============================================================

class ConversationTurn(BaseModel):
    """One answered question, kept as context for follow-up questions."""
    question: str
    sql: str
    row_count: int = 0


class QueryResponse(BaseModel):
    """Final response for one user question."""
    question: str = Field(description="Original user input")
    sql: Optional[str] = Field(default=None, description="The SQL that was (or would have been) executed")
    generated: bool = Field(default=False, description="Whether the SQL came from the LLM")
    status: ExecutionStatus = Field(description="Final status")
    result: Optional[ExecutionResult] = Field(default=None, description="Execution result, if executed")
    answer: str = Field(default="", description="Human-readable answer")
    correction_attempts: int = Field(default=0, description="Number of self-correction attempts")
    warnings: List[str] = Field(default_factory=list, description="Warnings to show the user")
    total_time_ms: Optional[float] = Field(default=None, description="Total processing time")

    @property
    def row_count(self) -> int:
        return self.result.row_count if self.result else 0
