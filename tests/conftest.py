import json

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from nl2sql.api.main import app, get_orchestrator
from nl2sql.core import DatabaseManager, QueryExecutor
from nl2sql.core.exceptions import ModelConnectionError, QueryExecutionError
from nl2sql.core.models import ModelStatus
from nl2sql.orchestrator import QueryOrchestrator


class FakeLLM:
    """Stands in for LLMManager: canned replies, or an error on every call."""

    def __init__(self, responses=None, error=None, models=None):
        self.responses = list(responses or [])
        self.error = error
        self.models = list(models or [])
        self.prompts = []
        self.model_name = "llama3"
        self.base_url = "http://ollama.test:11434"

    def generate(self, prompt, model=None):
        self.prompts.append((prompt, model))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    def check_status(self):
        if self.error is not None:
            return ModelStatus(running=False, models=[])
        return ModelStatus(running=True, models=self.models)


class FakeExecutor:
    """Records executed SQL; raises for statements in ``failing`` or for all."""

    def __init__(self, rows=None, failing=(), error=None):
        self.rows = rows if rows is not None else [{"Id": 1, "EmpName": "Alice"}]
        self.failing = set(failing)
        self.error = error
        self.executed = []

    def execute(self, sql):
        self.executed.append(sql)
        if self.error is not None:
            raise self.error
        if sql in self.failing:
            raise QueryExecutionError(f"Invalid object name in: {sql}", sql=sql)
        return list(self.rows)


def model_reply(sql, explanation="Generated by the model."):
    return "Here you go:\n" + json.dumps({"sql": sql, "explanation": explanation})


# Database
@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE EmployeeMaster ("
            " Id INTEGER PRIMARY KEY, EmpName VARCHAR(100) NOT NULL, Department VARCHAR(50),"
            " Sex VARCHAR(1), Active INTEGER, HireDate DATE, Photo BLOB)"
        ))
        conn.execute(text("CREATE TABLE DepartmentMaster (Id INTEGER PRIMARY KEY, Name VARCHAR(50))"))
        conn.execute(text(
            "CREATE TABLE Assignment (Id INTEGER PRIMARY KEY,"
            " EmployeeId INTEGER REFERENCES EmployeeMaster(Id), Task TEXT)"
        ))
        conn.execute(text("CREATE TABLE AuditLog (Id INTEGER PRIMARY KEY, Message TEXT)"))

        conn.execute(
            text(
                "INSERT INTO EmployeeMaster (Id, EmpName, Department, Sex, Active, HireDate, Photo)"
                " VALUES (:id, :name, :dept, :sex, :active, :hired, :photo)"
            ),
            [
                {"id": 1, "name": "Alice", "dept": "IT", "sex": "F", "active": 1,
                 "hired": "2020-01-15", "photo": b"\x89PNG"},
                {"id": 2, "name": "Bob", "dept": "Finance", "sex": "M", "active": 0,
                 "hired": "2018-06-01", "photo": None},
                {"id": 3, "name": "Carol", "dept": "IT", "sex": "F", "active": 1,
                 "hired": "2022-03-09", "photo": None},
            ],
        )
        conn.execute(text("INSERT INTO DepartmentMaster (Id, Name) VALUES (1, 'IT'), (2, 'Finance')"))
        conn.execute(text("INSERT INTO Assignment (Id, EmployeeId, Task) VALUES (1, 1, 'Migrate')"))
    yield engine
    engine.dispose()


@pytest.fixture
def database(engine):
    return DatabaseManager(engine=engine)


@pytest.fixture
def executor(database):
    return QueryExecutor(database)


# Orchestrator
@pytest.fixture
def failing_llm():
    return FakeLLM(error=ModelConnectionError("Error calling Ollama: connection refused"))


@pytest.fixture
def orchestrator(database, failing_llm):
    return QueryOrchestrator(database=database, llm_manager=failing_llm, llm_enabled=True)


# Client
@pytest_asyncio.fixture(scope="function")
async def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
