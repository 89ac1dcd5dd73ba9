"""
SQL extraction from LLM responses.

PROBLEM
-------
Even when told to return only SQL, models wrap it in markdown fences,
prefix it with "SQL:" or add an explanation after it:

    Here is the query:
    ```sql
    SELECT title FROM film LIMIT 5;
    ```
    This lists five films.

SOLUTION
--------
Prefer the first fenced block; otherwise start at the first SQL verb and
stop at a semicolon, or at a blank line followed by prose.
"""
import re
from typing import List, Optional

SQL_VERBS = ("SELECT", "WITH", "VALUES", "EXPLAIN", "INSERT", "UPDATE", "DELETE",
             "CREATE", "DROP", "ALTER", "PRAGMA")

_FENCE_PATTERN = re.compile(r"```[ \t]*(?:postgresql|postgres|sqlite|sql)?[ \t]*\n?([\s\S]*?)```", re.IGNORECASE)
_VERB_PATTERN = re.compile(r"^\s*\(?\s*(" + "|".join(SQL_VERBS) + r")\b", re.IGNORECASE)
_LABEL_PATTERN = re.compile(r"^\s*(?:sql|query)\s*:\s*", re.IGNORECASE)
_NO_SQL_PATTERN = re.compile(r"^\s*NO_SQL\s*:?\s*", re.IGNORECASE)

# A line starting with one of these continues the statement after a blank line
_CONTINUATION_PATTERN = re.compile(
    r"^\s*(?:[),]|(?:FROM|WHERE|JOIN|INNER|LEFT|RIGHT|FULL|CROSS|NATURAL|ON|USING|GROUP|ORDER|"
    r"HAVING|LIMIT|OFFSET|FETCH|UNION|INTERSECT|EXCEPT|AND|OR|WINDOW|SELECT|SET|VALUES|"
    r"RETURNING|CASE|WHEN|THEN|ELSE|END)\b)",
    re.IGNORECASE,
)

# Raw input must look like a statement, not merely start with a verb
# ("Explain which films ..." is a question).
_SELECT_ITEM_END = r"(?:\s*[,()+\-*/|]|\s+AS\s|\s+FROM\s)"
_SQL_SHAPES = [
    re.compile(
        r"^SELECT\s+(?:DISTINCT\s+|ALL\s+)?"
        r"(?:(?:\*|'[^']*'|\d+(?:\.\d+)?)(?:\s*$|" + _SELECT_ITEM_END + r")"
        r"|[\w.\"`\[\]]+" + _SELECT_ITEM_END + r")",
        re.IGNORECASE,
    ),
    re.compile(r"^WITH\s+(?:RECURSIVE\s+)?[\w\"]+\s*(?:\([^)]*\)\s*)?AS\s+(?:NOT\s+)?(?:MATERIALIZED\s+)?\(",
               re.IGNORECASE),
    re.compile(r"^VALUES\s*\(", re.IGNORECASE),
    re.compile(r"^INSERT\s+(?:OR\s+\w+\s+)?INTO\s", re.IGNORECASE),
    re.compile(r"^UPDATE\s+[\w.\"]+\s+SET\s", re.IGNORECASE),
    re.compile(r"^DELETE\s+FROM\s+[\w.\"]+\s*(?:$|WHERE\b|RETURNING\b|USING\b)", re.IGNORECASE),
    re.compile(r"^(?:CREATE|DROP)\s+(?:OR\s+REPLACE\s+|TEMP\s+|TEMPORARY\s+|UNIQUE\s+)*"
               r"(?:TABLE|VIEW|INDEX|TRIGGER|SCHEMA)\s", re.IGNORECASE),
    re.compile(r"^ALTER\s+TABLE\s", re.IGNORECASE),
    re.compile(r"^PRAGMA\s+[\w.]+\s*(?:$|=|\()", re.IGNORECASE),
]
_EXPLAIN_PREFIX = re.compile(r"^EXPLAIN\s+(?:QUERY\s+PLAN\s+|ANALYZE\s+|VERBOSE\s+)*", re.IGNORECASE)


class SQLExtractionError(Exception):
    """Raised when no SQL statement can be extracted from LLM output."""
    pass


def _has_sql_shape(text: str) -> bool:
    text = text.strip().lstrip("(").strip()
    explain = _EXPLAIN_PREFIX.match(text)
    if explain:
        return _has_sql_shape(text[explain.end():])
    return any(shape.match(text) for shape in _SQL_SHAPES)


def looks_like_sql(text: str) -> bool:
    """
    True if user input is raw SQL rather than a natural-language question.

    Raw SQL either ends with a semicolon or starts like a statement
    (``SELECT title FROM``, ``WITH t AS (``, ``EXPLAIN SELECT``, ...).
    A leading verb alone is not enough: "Explain which films are rated PG"
    goes to the LLM.
    """
    stripped = (text or "").strip()
    if not stripped:
        return False
    return stripped.endswith(";") or _has_sql_shape(stripped)


def _first_sql_line(lines) -> Optional[int]:
    for i, line in enumerate(lines):
        if _VERB_PATTERN.match(_LABEL_PATTERN.sub("", line)):
            return i
    return None


def _statement_lines(lines: List[str]) -> List[str]:
    """Lines of the statement starting at lines[0]."""
    body: List[str] = []
    for i, line in enumerate(lines):
        if not line.strip():
            upcoming = next((nxt for nxt in lines[i + 1:] if nxt.strip()), None)
            if upcoming is None or not _CONTINUATION_PATTERN.match(upcoming):
                break
            continue
        body.append(line)
        if line.rstrip().endswith(";"):
            break
    return body


def extract_sql(text: str) -> str:
    """
    Extract one SQL statement from LLM output.

    Args:
        text: Raw model response

    Returns:
        SQL without fences, labels or trailing semicolons

    Raises:
        SQLExtractionError: If the text contains no SQL, or the model
            explicitly answered ``NO_SQL: <reason>``
    """
    if not text or not text.strip():
        raise SQLExtractionError("The model returned an empty response")

    text = text.strip()

    if _NO_SQL_PATTERN.match(text):
        reason = _NO_SQL_PATTERN.sub("", text, count=1).strip() or "no reason given"
        raise SQLExtractionError(f"The model could not answer with SQL: {reason}")

    fenced = _FENCE_PATTERN.search(text)
    if fenced and fenced.group(1).strip():
        candidate = fenced.group(1).strip()
    else:
        lines = text.splitlines()
        start = _first_sql_line(lines)
        if start is None:
            raise SQLExtractionError(f"No SQL found in model response: {text[:200]}")
        candidate = "\n".join(_statement_lines(lines[start:]))

    candidate = _LABEL_PATTERN.sub("", candidate, count=1).strip()
    candidate = candidate.rstrip().rstrip(";").rstrip()
    if not _VERB_PATTERN.match(candidate):
        raise SQLExtractionError(f"No SQL found in model response: {text[:200]}")
    return candidate
