"""
Query engine: one user input in, one QueryResponse out.

PIPELINE:
=========
1. Raw SQL (starts with a SQL verb or ends with ';') is used as-is.
   Anything else is a question and goes to the LLM with the schema,
   the knowledge files and recent history.
2. Safety validation (read-only unless dangerous mode is on).
3. LIMIT is appended to read queries without one.
4. Preview mode asks ``confirm(sql)`` before executing (no callback, no execution).
5. Execution. If generated SQL fails, the error goes back to the LLM
   for up to ``max_retries`` corrections, each re-validated.
6. A deterministic answer summarises the result (no second LLM call).

Per-query failures become response statuses rather than exceptions so
an interactive session keeps running.
"""
import time
import logging
from typing import Callable, List, Optional

from sqlbot.adapters import DatabaseAdapter, DatabaseError
from sqlbot.configs import SQLBotConfig
from sqlbot.models import (
    ConversationTurn,
    ExecutionResult,
    ExecutionStatus,
    QueryResponse,
    SchemaContext,
)
from sqlbot.tools import apply_row_limit, build_schema_context, schema_to_prompt_text, validate_sql
from .llm_client import LLMClient, LLMError
from .prompts import build_correction_prompt, build_sql_prompt, build_system_prompt
from .sql_utils import SQLExtractionError, extract_sql, looks_like_sql

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]


class QueryEngine:
    """Turns questions or raw SQL into executed, validated results."""

    def __init__(
        self,
        config: SQLBotConfig,
        adapter: DatabaseAdapter,
        llm: Optional[LLMClient] = None,
        knowledge: str = "",
    ):
        self.config = config
        self.adapter = adapter
        self.llm = llm
        self.knowledge = knowledge
        self.history: List[ConversationTurn] = []
        self._schema: Optional[SchemaContext] = None

    # ------------------------------------------------------------------
    # session state
    # ------------------------------------------------------------------

    @property
    def read_only(self) -> bool:
        return self.config.database.read_only

    @property
    def preview_mode(self) -> bool:
        return self.config.database.preview_mode

    def set_dangerous(self, enabled: bool) -> None:
        """
        Toggle dangerous mode.

        Disables read-only validation and reopens the connection with a
        matching session mode.
        """
        self.config.database.read_only = not enabled
        if self.adapter.read_only != self.read_only:
            self.adapter.disconnect()
            self.adapter.read_only = self.read_only
            self.adapter.connect()
        logger.warning("Dangerous mode %s", "enabled" if enabled else "disabled")

    def set_preview(self, enabled: bool) -> None:
        self.config.database.preview_mode = enabled

    def reset_history(self) -> None:
        self.history = []

    @property
    def schema(self) -> SchemaContext:
        """Introspected schema (cached; call ``refresh_schema`` after DDL)."""
        if self._schema is None:
            self._schema = build_schema_context(self.adapter)
        return self._schema

    def refresh_schema(self) -> SchemaContext:
        self._schema = None
        return self.schema

    # ------------------------------------------------------------------
    # pipeline
    # ------------------------------------------------------------------

    def process(self, question: str, confirm: Optional[ConfirmCallback] = None) -> QueryResponse:
        """
        Run one user input through the pipeline.

        Args:
            question: Natural-language question or raw SQL
            confirm: Called with the final SQL in preview mode; return False to cancel.
                In preview mode a missing callback cancels every statement.

        Returns:
            QueryResponse (never raises for per-query failures)
        """
        start = time.perf_counter()
        response = self._process(question.strip(), confirm)
        response.total_time_ms = (time.perf_counter() - start) * 1000

        if response.status in (ExecutionStatus.SUCCESS, ExecutionStatus.EMPTY) and response.sql:
            self.history.append(
                ConversationTurn(question=response.question, sql=response.sql, row_count=response.row_count)
            )
            if self.config.history_turns:
                self.history = self.history[-self.config.history_turns:]
            else:
                self.history = []

        logger.info("Query finished: status=%s rows=%d time=%.0fms",
                    response.status.value, response.row_count, response.total_time_ms)
        return response

    def _process(self, question: str, confirm: Optional[ConfirmCallback]) -> QueryResponse:
        if not question:
            return QueryResponse(question=question, status=ExecutionStatus.ERROR, answer="Please enter a question or a SQL statement.")

        generated = not looks_like_sql(question)
        if generated:
            try:
                sql = self.generate_sql(question)
            except (LLMError, SQLExtractionError, DatabaseError) as e:
                logger.warning("SQL generation failed: %s", e)
                return QueryResponse(question=question, status=ExecutionStatus.ERROR, generated=True, answer=str(e))
        else:
            sql = question

        response = QueryResponse(question=question, sql=sql, generated=generated, status=ExecutionStatus.ERROR)

        attempts = 0
        while True:
            prepared = self._prepare(response, sql)
            if prepared is None:
                return response
            sql = prepared
            response.sql = sql

            if self.preview_mode and (confirm is None or not confirm(sql)):
                response.status = ExecutionStatus.CANCELLED
                response.answer = "Query cancelled."
                return response

            result = self.execute(sql)
            response.result = result
            if result.is_success:
                response.status = (
                    ExecutionStatus.EMPTY if result.column_names and not result.row_count else ExecutionStatus.SUCCESS
                )
                response.answer = summarize_result(result)
                if result.truncated:
                    response.warnings.append(
                        f"Showing the first {result.row_count} rows (max_result_rows={self.config.database.max_result_rows})"
                    )
                return response

            if not generated or attempts >= self.config.max_retries or self.llm is None:
                response.status = ExecutionStatus.ERROR
                response.answer = f"Query failed: {result.error_message}"
                return response

            attempts += 1
            response.correction_attempts = attempts
            logger.info("Self-correction attempt %d after error: %s", attempts, result.error_message)
            try:
                sql = self.correct_sql(question, sql, result.error_message or "")
            except (LLMError, SQLExtractionError) as e:
                response.status = ExecutionStatus.ERROR
                response.answer = f"Query failed: {result.error_message} (correction failed: {e})"
                return response

    def _prepare(self, response: QueryResponse, sql: str) -> Optional[str]:
        """Validate and apply LIMIT. Sets a BLOCKED status and returns None if unsafe."""
        validation = validate_sql(sql, read_only=self.read_only)
        for warning in validation.warnings:
            if warning not in response.warnings:
                response.warnings.append(warning)

        if not validation.is_valid:
            response.status = ExecutionStatus.BLOCKED
            response.answer = "Blocked: " + "; ".join(validation.errors)
            logger.warning("Blocked SQL: %s", "; ".join(validation.errors))
            return None

        if self.read_only or validation.is_read_only:
            return apply_row_limit(sql, self.config.database.default_limit)
        return sql

    # ------------------------------------------------------------------
    # building blocks
    # ------------------------------------------------------------------

    def _system_prompt(self) -> str:
        return build_system_prompt(self.adapter.dialect, self.config.database.default_limit)

    def generate_sql(self, question: str) -> str:
        """Ask the LLM for SQL answering ``question``."""
        if self.llm is None:
            raise LLMError("No LLM configured - enter SQL directly or configure llm.model")
        prompt = build_sql_prompt(
            question,
            schema_to_prompt_text(self.schema),
            knowledge=self.knowledge,
            history=self.history,
        )
        response = self.llm.generate(prompt, system=self._system_prompt())
        sql = extract_sql(response.content)
        logger.debug("Generated SQL: %s", sql)
        return sql

    def correct_sql(self, question: str, failed_sql: str, error: str) -> str:
        """Ask the LLM to fix SQL that failed with ``error``."""
        prompt = build_correction_prompt(
            question,
            schema_to_prompt_text(self.schema),
            failed_sql,
            error,
            knowledge=self.knowledge,
        )
        response = self.llm.generate(prompt, system=self._system_prompt())
        return extract_sql(response.content)

    def execute(self, sql: str) -> ExecutionResult:
        """Execute already-validated SQL; errors are captured in the result."""
        start = time.perf_counter()
        try:
            columns, rows, truncated = self.adapter.fetch(sql, max_rows=self.config.database.max_result_rows)
        except DatabaseError as e:
            return ExecutionResult(
                sql=sql,
                error_message=str(e),
                execution_time_ms=(time.perf_counter() - start) * 1000,
            )

        if not self.read_only and not columns:
            # Statement may have changed the schema
            self._schema = None

        return ExecutionResult(
            sql=sql,
            data=rows,
            column_names=columns,
            row_count=len(rows),
            truncated=truncated,
            execution_time_ms=(time.perf_counter() - start) * 1000,
        )


def summarize_result(result: ExecutionResult) -> str:
    """Deterministic one-line answer for an execution result."""
    if not result.column_names:
        return "Statement executed."
    if result.row_count == 0:
        return "The query returned no rows."
    if result.row_count == 1 and len(result.column_names) == 1:
        column = result.column_names[0]
        return f"{column}: {result.data[0][column]}"
    noun = "row" if result.row_count == 1 else "rows"
    more = "+" if result.truncated else ""
    return f"{result.row_count}{more} {noun} returned."
