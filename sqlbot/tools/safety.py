"""
SQL safety validation.

Every statement passes through ``validate_sql`` before it reaches a
database adapter. In read-only mode (the default) only a single
SELECT / WITH / VALUES / EXPLAIN statement is allowed and write, DDL and
permission keywords are rejected. Keywords are matched as whole words
after comments and quoted text have been blanked out, so a film titled
'DROP ZONE' or a column alias "deleted" does not trigger a false positive.

Dangerous mode (``read_only=False``) lets writes through with a warning.
The adapters also open read-only sessions, so this module is one of two
layers.
"""
import re
from typing import List

from sqlbot.configs import FORBIDDEN_KEYWORDS, READ_ONLY_STATEMENTS
from sqlbot.models import ValidationResult

# Keywords that are also SQL functions, e.g. SELECT REPLACE(title, 'a', 'b')
FUNCTION_KEYWORDS = {"REPLACE"}

LIMITABLE_STATEMENTS = {"SELECT", "WITH", "VALUES"}


# ============================================================
# LEXICAL HELPERS
# ============================================================

def _scan(sql: str):
    """
    Yield (char, kind) pairs where kind is "code", "literal" or "comment".

    Handles '...' strings (with '' escapes), "..." and `...` identifiers,
    -- line comments and /* block comments */.
    """
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]
        nxt = sql[i + 1] if i + 1 < n else ""

        if ch == "-" and nxt == "-":
            end = sql.find("\n", i)
            end = n if end == -1 else end
            for c in sql[i:end]:
                yield c, "comment"
            i = end
            continue

        if ch == "/" and nxt == "*":
            end = sql.find("*/", i + 2)
            end = n if end == -1 else end + 2
            for c in sql[i:end]:
                yield c, "comment"
            i = end
            continue

        if ch in ("'", '"', "`"):
            quote = ch
            yield ch, "literal"
            i += 1
            while i < n:
                c = sql[i]
                if c == quote:
                    # doubled quote is an escaped quote
                    if i + 1 < n and sql[i + 1] == quote:
                        yield c, "literal"
                        yield c, "literal"
                        i += 2
                        continue
                    yield c, "literal"
                    i += 1
                    break
                yield c, "literal"
                i += 1
            continue

        yield ch, "code"
        i += 1


def strip_sql_comments_and_literals(sql: str) -> str:
    """
    Blank out comments and the contents of quoted text.

    Quotes are kept, their contents become spaces, comments become spaces.
    The result has the same length as the input.
    """
    out = []
    for ch, kind in _scan(sql):
        if kind == "code":
            out.append(ch)
        elif kind == "literal" and ch in ("'", '"', "`"):
            out.append(ch)
        elif ch == "\n":
            out.append("\n")
        else:
            out.append(" ")
    return "".join(out)


def split_statements(sql: str) -> List[str]:
    """Split on semicolons outside quotes/comments; empty statements are dropped."""
    statements = []
    current = []
    for ch, kind in _scan(sql):
        if ch == ";" and kind == "code":
            statements.append("".join(current))
            current = []
        else:
            current.append(ch)
    statements.append("".join(current))

    return [s.strip() for s in statements if strip_sql_comments_and_literals(s).strip()]


def _top_level(cleaned: str) -> str:
    """Drop everything inside parentheses (subqueries, function args)."""
    depth = 0
    out = []
    for ch in cleaned:
        if ch == "(":
            depth += 1
            out.append(" ")
        elif ch == ")":
            depth = max(0, depth - 1)
            out.append(" ")
        else:
            out.append(ch if depth == 0 else " ")
    return "".join(out)


def statement_type(sql: str) -> str:
    """Leading keyword of the first statement, upper-cased ("" if none)."""
    cleaned = strip_sql_comments_and_literals(sql).lstrip(" \t\r\n(")
    match = re.match(r"[A-Za-z_]+", cleaned)
    return match.group(0).upper() if match else ""


def find_forbidden_keywords(sql: str) -> List[str]:
    """Forbidden keywords present as whole words outside comments and quotes."""
    cleaned = strip_sql_comments_and_literals(sql).upper()
    found = []
    for keyword in FORBIDDEN_KEYWORDS:
        for match in re.finditer(rf"\b{keyword}\b", cleaned):
            if keyword in FUNCTION_KEYWORDS and cleaned[match.end():].lstrip().startswith("("):
                continue
            found.append(keyword)
            break
    return found


def has_top_level_limit(sql: str) -> bool:
    top = _top_level(strip_sql_comments_and_literals(sql)).upper()
    return bool(re.search(r"\bLIMIT\s+\S", top) or re.search(r"\bFETCH\s+(FIRST|NEXT)\b", top))


def has_select_star(sql: str) -> bool:
    cleaned = strip_sql_comments_and_literals(sql).upper()
    return bool(re.search(r"\bSELECT\s+(DISTINCT\s+)?\*", cleaned))


# ============================================================
# VALIDATION
# ============================================================

def validate_sql(sql: str, read_only: bool = True) -> ValidationResult:
    """
    Validate a SQL statement before execution.

    Checks:
    - exactly one statement
    - read-only mode: leading keyword is SELECT, WITH, VALUES or EXPLAIN
    - read-only mode: no forbidden keywords (INSERT, UPDATE, DROP, ...)
    - SELECT * produces a warning

    Args:
        sql: The SQL to check
        read_only: False in dangerous mode (writes become warnings)

    Returns:
        ValidationResult with errors and warnings
    """
    errors: List[str] = []
    warnings: List[str] = []

    statements = split_statements(sql or "")
    if not statements:
        return ValidationResult(is_valid=False, errors=["SQL is empty"])
    if len(statements) > 1:
        errors.append(f"Only one statement is allowed per query (found {len(statements)})")

    stmt = statements[0]
    stmt_type = statement_type(stmt)
    forbidden = []
    for s in statements:
        for keyword in find_forbidden_keywords(s):
            if keyword not in forbidden:
                forbidden.append(keyword)

    is_read_only = stmt_type in READ_ONLY_STATEMENTS and not forbidden

    if read_only:
        if stmt_type not in READ_ONLY_STATEMENTS:
            errors.append(
                f"{stmt_type or 'Unknown'} statements are not allowed in read-only mode "
                f"(allowed: {', '.join(READ_ONLY_STATEMENTS)})"
            )
        for keyword in forbidden:
            errors.append(f"Forbidden keyword '{keyword}' detected - only read operations allowed")
    elif not is_read_only:
        warnings.append("This statement can modify the database (dangerous mode is on)")

    if has_select_star(stmt):
        warnings.append("SELECT * returns every column - consider naming the columns you need")

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        is_read_only=is_read_only,
        statement_type=stmt_type or None,
        has_limit=has_top_level_limit(stmt),
    )


def apply_row_limit(sql: str, limit: int) -> str:
    """
    Append ``LIMIT n`` to a read query that has no top-level LIMIT.

    Trailing semicolons are removed. The LIMIT goes on its own line so a
    trailing ``--`` comment can't swallow it.
    """
    statements = split_statements(sql)
    if len(statements) != 1:
        return sql
    stmt = statements[0]
    if statement_type(stmt) not in LIMITABLE_STATEMENTS or has_top_level_limit(stmt):
        return stmt
    return f"{stmt}\nLIMIT {int(limit)}"
