"""
Query engine tests with a mocked LLM.

The database is the small Sakila-shaped fixture; no API key or network
is needed.
"""
from unittest.mock import MagicMock

import pytest

from sqlbot.adapters import SQLiteAdapter
from sqlbot.models import ExecutionResult, ExecutionStatus
from sqlbot.orchestrator import LLMError, QueryEngine, summarize_result


@pytest.fixture
def engine(config, adapter):
    return QueryEngine(config, adapter, knowledge="## sakila.md\n\nActive customers have active = 1.")


# =============================================================================
# RAW SQL
# =============================================================================

class TestRawSQL:

    def test_select_runs_with_default_limit(self, engine):
        response = engine.process("SELECT title FROM film ORDER BY film_id;")
        assert response.status == ExecutionStatus.SUCCESS
        assert response.generated is False
        assert response.sql == "SELECT title FROM film ORDER BY film_id\nLIMIT 10"
        assert response.row_count == 4
        assert response.answer == "4 rows returned."
        assert response.total_time_ms is not None

    def test_scalar_answer(self, engine):
        response = engine.process("SELECT COUNT(*) AS films FROM film;")
        assert response.answer == "films: 4"

    def test_empty_result(self, engine):
        response = engine.process("SELECT title FROM film WHERE rating = 'R';")
        assert response.status == ExecutionStatus.EMPTY
        assert response.answer == "The query returned no rows."

    def test_write_is_blocked(self, engine):
        response = engine.process("DELETE FROM film;")
        assert response.status == ExecutionStatus.BLOCKED
        assert response.answer.startswith("Blocked:")
        assert response.result is None
        assert engine.history == []

    def test_database_error_is_not_corrected(self, config, adapter, make_llm):
        llm = make_llm("SELECT 1")
        engine = QueryEngine(config, adapter, llm=llm)
        response = engine.process("SELECT nope FROM film;")
        assert response.status == ExecutionStatus.ERROR
        assert "no such column" in response.answer
        assert response.correction_attempts == 0
        llm.generate.assert_not_called()

    def test_truncated_result_warns(self, engine, config):
        config.database.max_result_rows = 2
        response = engine.process("SELECT title FROM film LIMIT 4;")
        assert response.status == ExecutionStatus.SUCCESS
        assert response.row_count == 2
        assert response.result.truncated is True
        assert response.answer == "2+ rows returned."
        assert any("first 2 rows" in w for w in response.warnings)

    def test_select_star_warning_is_passed_on(self, engine):
        response = engine.process("SELECT * FROM language;")
        assert response.status == ExecutionStatus.SUCCESS
        assert any("SELECT *" in w for w in response.warnings)

    def test_duplicate_column_names_survive(self, engine):
        response = engine.process(
            "SELECT a.first_name, c.first_name FROM actor a JOIN customer c ON c.customer_id = a.actor_id "
            "ORDER BY a.actor_id;"
        )
        assert response.status == ExecutionStatus.SUCCESS
        assert response.result.column_names == ["first_name", "first_name_2"]
        assert response.result.data[0] == {"first_name": "PENELOPE", "first_name_2": "MARY"}

    def test_empty_input(self, engine):
        response = engine.process("   ")
        assert response.status == ExecutionStatus.ERROR
        assert response.sql is None


# =============================================================================
# GENERATED SQL
# =============================================================================

class TestGeneratedSQL:

    def test_question_goes_to_llm(self, config, adapter, make_llm):
        llm = make_llm("```sql\nSELECT COUNT(*) AS pg_films FROM film WHERE rating = 'PG';\n```")
        engine = QueryEngine(config, adapter, llm=llm, knowledge="Ratings follow the MPAA scale.")

        response = engine.process("How many films are rated PG?")

        assert response.status == ExecutionStatus.SUCCESS
        assert response.generated is True
        assert response.answer == "pg_films: 2"
        prompt = llm.generate.call_args.args[0]
        system = llm.generate.call_args.kwargs["system"]
        assert "How many films are rated PG?" in prompt
        assert "film(film_id INTEGER PK" in prompt
        assert "Ratings follow the MPAA scale." in prompt
        assert "SQLite" in system
        assert "LIMIT 10" in system

    @pytest.mark.parametrize("question", [
        "Explain which films are rated PG",
        "Create a list of top customers",
        "Select the comedies",
    ])
    def test_verb_led_question_goes_to_llm(self, config, adapter, make_llm, question):
        llm = make_llm("SELECT title FROM film WHERE rating = 'PG';")
        engine = QueryEngine(config, adapter, llm=llm)

        response = engine.process(question)

        assert response.generated is True
        assert response.status == ExecutionStatus.SUCCESS
        llm.generate.assert_called_once()

    def test_no_llm_configured(self, engine):
        response = engine.process("How many films are there?")
        assert response.status == ExecutionStatus.ERROR
        assert "No LLM configured" in response.answer

    def test_model_declines(self, config, adapter, make_llm):
        engine = QueryEngine(config, adapter, llm=make_llm("NO_SQL: there is no weather table"))
        response = engine.process("What was the weather yesterday?")
        assert response.status == ExecutionStatus.ERROR
        assert "no weather table" in response.answer

    def test_llm_failure(self, config, adapter):
        llm = MagicMock()
        llm.generate.side_effect = LLMError("gemini/gemini-2.0-flash API error: boom")
        response = QueryEngine(config, adapter, llm=llm).process("List films")
        assert response.status == ExecutionStatus.ERROR
        assert "boom" in response.answer

    def test_generated_write_is_blocked(self, config, adapter, make_llm):
        engine = QueryEngine(config, adapter, llm=make_llm("DROP TABLE film"))
        response = engine.process("Remove the film table")
        assert response.status == ExecutionStatus.BLOCKED
        assert response.sql == "DROP TABLE film"
        assert adapter.execute("SELECT COUNT(*) AS n FROM film")[0]["n"] == 4

    def test_self_correction(self, config, adapter, make_llm):
        llm = make_llm(
            "SELECT name FROM films",
            "SELECT title FROM film WHERE film_id = 1",
        )
        engine = QueryEngine(config, adapter, llm=llm)

        response = engine.process("What is the first film called?")

        assert response.status == ExecutionStatus.SUCCESS
        assert response.correction_attempts == 1
        assert response.answer == "title: ACADEMY DINOSAUR"
        correction_prompt = llm.generate.call_args_list[1].args[0]
        assert "SELECT name FROM films" in correction_prompt
        assert "no such table: films" in correction_prompt

    def test_correction_attempts_are_bounded(self, config, adapter, make_llm):
        config.max_retries = 1
        llm = make_llm("SELECT a FROM nowhere", "SELECT b FROM nowhere", "SELECT title FROM film")
        response = QueryEngine(config, adapter, llm=llm).process("Show something")
        assert response.status == ExecutionStatus.ERROR
        assert response.correction_attempts == 1
        assert response.answer.startswith("Query failed:")
        assert llm.generate.call_count == 2

    def test_no_retries_configured(self, config, adapter, make_llm):
        config.max_retries = 0
        llm = make_llm("SELECT a FROM nowhere")
        response = QueryEngine(config, adapter, llm=llm).process("Show something")
        assert response.status == ExecutionStatus.ERROR
        assert llm.generate.call_count == 1

    def test_corrected_sql_is_validated_again(self, config, adapter, make_llm):
        llm = make_llm("SELECT a FROM nowhere", "DELETE FROM film")
        response = QueryEngine(config, adapter, llm=llm).process("Show something")
        assert response.status == ExecutionStatus.BLOCKED
        assert adapter.execute("SELECT COUNT(*) AS n FROM film")[0]["n"] == 4


# =============================================================================
# SESSION STATE
# =============================================================================

class TestSession:

    def test_history_is_passed_to_follow_up_questions(self, config, adapter, make_llm):
        llm = make_llm(
            "SELECT title FROM film WHERE rating = 'PG'",
            "SELECT COUNT(*) AS n FROM film WHERE rating = 'PG'",
        )
        engine = QueryEngine(config, adapter, llm=llm)
        engine.process("Which films are rated PG?")
        engine.process("How many of those are there?")

        follow_up_prompt = llm.generate.call_args_list[1].args[0]
        assert "Which films are rated PG?" in follow_up_prompt
        assert "Rows returned: 2" in follow_up_prompt
        assert [t.question for t in engine.history] == [
            "Which films are rated PG?",
            "How many of those are there?",
        ]

    def test_history_is_trimmed(self, engine, config):
        config.history_turns = 2
        for film_id in (1, 2, 3):
            engine.process(f"SELECT title FROM film WHERE film_id = {film_id};")
        assert len(engine.history) == 2
        assert "film_id = 3" in engine.history[-1].sql

    def test_reset_history(self, engine):
        engine.process("SELECT 1;")
        engine.reset_history()
        assert engine.history == []

    def test_preview_cancel(self, engine):
        engine.set_preview(True)
        seen = []

        def decline(sql):
            seen.append(sql)
            return False

        response = engine.process("SELECT title FROM film;", confirm=decline)
        assert response.status == ExecutionStatus.CANCELLED
        assert response.result is None
        assert seen == ["SELECT title FROM film\nLIMIT 10"]
        assert engine.history == []

    def test_preview_confirm(self, engine):
        engine.set_preview(True)
        response = engine.process("SELECT title FROM film;", confirm=lambda sql: True)
        assert response.status == ExecutionStatus.SUCCESS

    def test_preview_without_confirm_cancels(self, engine):
        engine.set_preview(True)
        response = engine.process("SELECT title FROM film;")
        assert response.status == ExecutionStatus.CANCELLED
        assert response.result is None

    def test_confirm_ignored_outside_preview(self, engine):
        response = engine.process("SELECT title FROM film;", confirm=lambda sql: False)
        assert response.status == ExecutionStatus.SUCCESS

    def test_dangerous_mode_allows_writes(self, engine, adapter):
        engine.set_dangerous(True)
        assert engine.read_only is False
        assert adapter.read_only is False

        response = engine.process("INSERT INTO actor VALUES (3, 'ED', 'CHASE');")
        assert response.status == ExecutionStatus.SUCCESS
        assert response.answer == "Statement executed."
        assert any("dangerous mode" in w for w in response.warnings)

        engine.set_dangerous(False)
        assert adapter.read_only is True
        assert engine.process("SELECT COUNT(*) AS actors FROM actor;").answer == "actors: 3"
        assert engine.process("DELETE FROM actor;").status == ExecutionStatus.BLOCKED

    def test_dangerous_mode_commits_returning_writes(self, engine, sakila_db):
        engine.set_dangerous(True)
        response = engine.process("INSERT INTO actor VALUES (3, 'ED', 'CHASE') RETURNING actor_id;")
        assert response.status == ExecutionStatus.SUCCESS
        assert response.answer == "actor_id: 3"
        engine.adapter.disconnect()

        with SQLiteAdapter(str(sakila_db)) as db:
            assert db.execute("SELECT COUNT(*) AS n FROM actor")[0]["n"] == 3

    def test_schema_is_cached(self, engine, adapter):
        first = engine.schema
        assert engine.schema is first
        assert engine.refresh_schema() is not first


def test_summarize_result():
    assert summarize_result(ExecutionResult(sql="x")) == "Statement executed."
    one_row = ExecutionResult(sql="x", data=[{"a": 1, "b": 2}], column_names=["a", "b"], row_count=1)
    assert summarize_result(one_row) == "1 row returned."
