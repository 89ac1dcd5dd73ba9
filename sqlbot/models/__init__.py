"""Models module initialization."""
from .schemas import (
    # Enums
    ExecutionStatus,
    # Schema models
    ColumnInfo,
    TableInfo,
    ForeignKeyRelation,
    SchemaContext,
    # Validation & execution models
    ValidationResult,
    ExecutionResult,
    # Response models
    ConversationTurn,
    QueryResponse,
)

__all__ = [
    "ExecutionStatus",
    "ColumnInfo",
    "TableInfo",
    "ForeignKeyRelation",
    "SchemaContext",
    "ValidationResult",
    "ExecutionResult",
    "ConversationTurn",
    "QueryResponse",
]
