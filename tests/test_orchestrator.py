"""Tests for the fallback tiers of the query pipeline."""

import pytest

from conftest import FakeExecutor, FakeLLM, model_reply
from nl2sql.config import settings
from nl2sql.core.exceptions import (
    InputValidationError,
    PipelineError,
    QueryExecutionError,
)
from nl2sql.orchestrator import QueryOrchestrator


class ScriptedExecutor:
    """Raises the scripted outcomes in order; ``None`` means return rows."""

    def __init__(self, outcomes, rows=None):
        self.outcomes = list(outcomes)
        self.rows = rows or [{"Id": 1}]
        self.executed = []

    def execute(self, sql):
        self.executed.append(sql)
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if outcome is not None:
            raise outcome
        return list(self.rows)


def build(database, llm=None, executor=None, llm_enabled=True):
    return QueryOrchestrator(
        database=database,
        llm_manager=llm or FakeLLM(responses=[]),
        executor=executor,
        llm_enabled=llm_enabled,
    )


# -- Input validation --


@pytest.mark.parametrize("query", ["", "   ", None, 42, ["count"]])
def test_rejects_invalid_query(orchestrator, query):
    with pytest.raises(InputValidationError, match="Query is required and must be a string"):
        orchestrator.generate_and_execute(query)


# -- Tier 1: model generation --


def test_model_path(database):
    llm = FakeLLM(responses=[model_reply("SELECT EmpName FROM EmployeeMaster WHERE Active = 1;", "Active names.")])
    orchestrator = build(database, llm=llm)

    result = orchestrator.generate_and_execute("who is active?")

    assert result.source == "model"
    assert result.sql == "SELECT EmpName FROM EmployeeMaster WHERE Active = 1;"
    assert result.explanation == "Active names."
    assert result.data == [{"EmpName": "Alice"}, {"EmpName": "Carol"}]
    assert result.error is None
    assert result.succeeded


def test_model_reply_with_trailing_text(database):
    reply = (
        '{"sql": "SELECT EmpName FROM EmployeeMaster WHERE Id = 1", "explanation": "one"}\n'
        "Note: replace {id} as needed."
    )
    orchestrator = build(database, llm=FakeLLM(responses=[reply]))

    result = orchestrator.generate_and_execute("employee one")

    assert result.source == "model"
    assert result.data == [{"EmpName": "Alice"}]


def test_model_failure_falls_back_to_rules(orchestrator, failing_llm):
    result = orchestrator.generate_and_execute("count employees")

    assert len(failing_llm.prompts) == 1
    assert result.source == "rule_based"
    assert "COUNT(*)" in result.sql
    assert result.data == [{"count": 3}]


def test_unparseable_model_response_falls_back_to_rules(database):
    orchestrator = build(database, llm=FakeLLM(responses=["I don't know."]))

    result = orchestrator.generate_and_execute("count employees")

    assert result.source == "rule_based"
    assert result.data == [{"count": 3}]


def test_model_disabled_skips_model(database):
    llm = FakeLLM(responses=[model_reply("SELECT 1;")])
    orchestrator = build(database, llm=llm, llm_enabled=False)

    result = orchestrator.generate_and_execute("count employees")

    assert llm.prompts == []
    assert result.source == "rule_based"


def test_per_call_override(database):
    llm = FakeLLM(responses=[model_reply("SELECT COUNT(*) AS n FROM DepartmentMaster;")])
    orchestrator = build(database, llm=llm, llm_enabled=False)

    result = orchestrator.generate_and_execute("departments", use_llm=True, model="mistral")

    assert result.source == "model"
    assert result.data == [{"n": 2}]
    assert llm.prompts[0][1] == "mistral"


def test_explicit_tables_reach_prompt(database):
    llm = FakeLLM(responses=[model_reply("SELECT * FROM Assignment;")])
    orchestrator = build(database, llm=llm)

    orchestrator.generate_and_execute("what is being worked on", tables=["Assignment"])

    assert "Table: Assignment" in llm.prompts[0][0]
    assert "Table: EmployeeMaster" not in llm.prompts[0][0]


# -- Tier 3: execution fallback --


def test_failed_model_sql_retried_with_rules(database):
    orchestrator = build(database, llm=FakeLLM(responses=[model_reply("SELECT * FROM Staff;")]))

    result = orchestrator.generate_and_execute("show active employees")

    assert result.source == "rule_based"
    assert "Active = 1" in result.sql
    assert [row["EmpName"] for row in result.data] == ["Alice", "Carol"]


def test_both_executions_fail(database):
    error = QueryExecutionError("Invalid object name 'EmployeeMaster'.")
    executor = FakeExecutor(error=error)
    orchestrator = build(database, executor=executor, llm_enabled=False)

    result = orchestrator.generate_and_execute("count employees")

    assert len(executor.executed) == 2
    assert result.data is None
    assert result.error == "Failed to execute query: Invalid object name 'EmployeeMaster'."
    assert result.sql == executor.executed[-1]
    assert result.source == "rule_based"
    assert not result.succeeded


def test_both_executions_fail_with_different_errors(database):
    model_sql = "SELECT * FROM Staff;"
    executor = FakeExecutor(failing=[model_sql])
    orchestrator = build(database, llm=FakeLLM(responses=[model_reply(model_sql)]), executor=executor)
    executor.failing.add(orchestrator.rule_generator.generate("count employees").sql)

    result = orchestrator.generate_and_execute("count employees")

    assert result.error.startswith(f"Failed to execute query: Invalid object name in: {model_sql}")
    assert "(fallback query:" in result.error
    assert result.explanation == "Counts the total number of records in the EmployeeMaster table."


# -- Tier 4: default query --


def test_unexpected_error_runs_default_query(database):
    executor = ScriptedExecutor([RuntimeError("driver crashed")], rows=[{"Id": 1}, {"Id": 2}])
    orchestrator = build(database, executor=executor, llm_enabled=False)

    result = orchestrator.generate_and_execute("count employees")

    assert result.source == "fallback"
    assert result.explanation == "Showing the first 10 records from the EmployeeMaster table (fallback query)."
    assert result.data == [{"Id": 1}, {"Id": 2}]
    assert "EmployeeMaster" in result.sql
    assert "LIMIT 10" in result.sql
    assert not result.sql.endswith(";")


def test_default_query_names_configured_table(database, monkeypatch):
    monkeypatch.setattr(settings, "default_table", "DepartmentMaster")
    executor = ScriptedExecutor([RuntimeError("driver crashed")])
    orchestrator = build(database, executor=executor, llm_enabled=False)

    result = orchestrator.generate_and_execute("count employees")

    assert result.source == "fallback"
    assert "FROM DepartmentMaster" in result.sql
    assert result.explanation == "Showing the first 10 records from the DepartmentMaster table (fallback query)."
    assert "employee" not in result.explanation.lower()


def test_default_query_failure_raises(database):
    executor = FakeExecutor(error=RuntimeError("driver crashed"))
    orchestrator = build(database, executor=executor, llm_enabled=False)

    with pytest.raises(PipelineError, match="Failed to generate SQL"):
        orchestrator.generate_and_execute("count employees")


def test_never_raises_for_valid_query(database):
    executor = FakeExecutor(error=QueryExecutionError("Login failed for user 'sa'."))
    orchestrator = build(database, llm=FakeLLM(responses=["nonsense"] * 5), executor=executor)

    for query in ["count employees", "show all staff", "find bob", "top 3 products", "?"]:
        executor.executed.clear()
        result = orchestrator.generate_and_execute(query)
        assert result.error
        assert result.data is None


# -- Result subscription --


def test_subscribe_and_unsubscribe(orchestrator):
    seen = []
    unsubscribe = orchestrator.subscribe(seen.append)

    first = orchestrator.generate_and_execute("count employees")
    unsubscribe()
    orchestrator.generate_and_execute("count employees")

    assert seen == [first]


def test_failing_listener_does_not_break_pipeline(orchestrator):
    def listener(result):
        raise ValueError("listener bug")

    orchestrator.subscribe(listener)

    assert orchestrator.generate_and_execute("count employees").data == [{"count": 3}]


# -- Catalog and status --


def test_catalog_passthroughs(orchestrator):
    assert "EmployeeMaster" in [t.name for t in orchestrator.list_tables()]
    assert orchestrator.get_table_schema("DepartmentMaster")[1].name == "Name"
    assert len(orchestrator.fetch_sample_data("EmployeeMaster", limit=1)) == 1
    assert orchestrator.get_relationships()[0].table_name == "Assignment"
    assert orchestrator.test_connection() == {"success": True, "count": 3}


def test_model_status(database):
    enabled = build(database, llm=FakeLLM(models=["llama3:latest"]))
    disabled = build(database, llm=FakeLLM(models=["llama3:latest"]), llm_enabled=False)

    assert enabled.check_model_status().running is True
    assert enabled.check_model_status().models == ["llama3:latest"]
    assert disabled.check_model_status().running is False


def test_stats(orchestrator):
    stats = orchestrator.get_stats()

    assert stats["database_dialect"] == "sqlite"
    assert stats["llm_enabled"] is True
    assert stats["llm_model"] == "llama3"
    assert "timestamp" in stats
