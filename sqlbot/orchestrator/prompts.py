"""
Prompt construction for SQL generation.

Prompts are policy: they tell the model what it may produce. The same
rules are still enforced afterwards by ``tools.safety``.
"""
from typing import List, Optional

from sqlbot.models import ConversationTurn

SYSTEM_RULES = """You are SQLBot, a careful data analyst who answers questions by writing SQL.

Rules:
- Return exactly ONE {dialect} statement and nothing else (no markdown, no commentary).
- Read-only: SELECT or WITH ... SELECT only. Never modify data or schema.
- Use only tables and columns that appear in the schema.
- Name the columns you need instead of SELECT *.
- Include LIMIT {default_limit} unless the question asks for a specific number of rows or a single aggregate.
- Prefer explicit JOIN ... ON clauses and readable column aliases.
- If the question cannot be answered from this database, reply with
  NO_SQL: <one sentence explaining why>
"""


def build_system_prompt(dialect: str, default_limit: int) -> str:
    return SYSTEM_RULES.format(dialect=dialect, default_limit=default_limit)


def _history_block(history: List[ConversationTurn]) -> str:
    lines = []
    for i, turn in enumerate(history, 1):
        lines.append(f"{i}. Question: {turn.question}")
        lines.append(f"   SQL: {' '.join(turn.sql.split())}")
        lines.append(f"   Rows returned: {turn.row_count}")
    return "\n".join(lines)


def build_sql_prompt(
    question: str,
    schema_text: str,
    knowledge: str = "",
    history: Optional[List[ConversationTurn]] = None,
) -> str:
    """
    Build the SQL-generation prompt.

    Prompt structure:
      - Business knowledge (markdown knowledge files), if any
      - Schema block
      - Earlier questions in this session, if any
      - User question
      - "SQL:" completion cue
    """
    sections = []
    if knowledge:
        sections.append(f"BUSINESS KNOWLEDGE:\n{knowledge}")
    sections.append(f"SCHEMA:\n{schema_text}")
    if history:
        sections.append(
            "EARLIER QUESTIONS IN THIS SESSION (use them to resolve follow-ups like 'those' or 'same but'):\n"
            + _history_block(history)
        )
    sections.append(f"QUESTION:\n{question}")
    sections.append("SQL:")
    return "\n\n".join(sections)


def build_correction_prompt(
    question: str,
    schema_text: str,
    failed_sql: str,
    error: str,
    knowledge: str = "",
) -> str:
    """Prompt asking the model to fix SQL that failed to execute."""
    sections = []
    if knowledge:
        sections.append(f"BUSINESS KNOWLEDGE:\n{knowledge}")
    sections.append(f"SCHEMA:\n{schema_text}")
    sections.append(f"QUESTION:\n{question}")
    sections.append(f"PREVIOUS SQL:\n{failed_sql}")
    sections.append(f"DATABASE ERROR:\n{error}")
    sections.append(
        "The previous SQL failed. Fix it using only tables and columns from the schema.\n"
        "Return only the corrected SQL.\n\nSQL:"
    )
    return "\n\n".join(sections)
