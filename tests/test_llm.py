"""Tests for the Ollama client wrapper."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from ollama import ResponseError

from nl2sql.core import LLMManager
from nl2sql.core.exceptions import ModelConnectionError, ModelTimeoutError


@pytest.fixture
def manager():
    manager = LLMManager(base_url="http://ollama.test:11434", model_name="llama3", timeout=5, status_timeout=2)
    manager.client = MagicMock()
    manager.status_client = MagicMock()
    return manager


# -- generate --


def test_generate_returns_response_text(manager):
    manager.client.generate.return_value = {"response": '{"sql": "SELECT 1;", "explanation": "one"}'}

    assert manager.generate("prompt") == '{"sql": "SELECT 1;", "explanation": "one"}'

    kwargs = manager.client.generate.call_args.kwargs
    assert kwargs["model"] == "llama3"
    assert kwargs["prompt"] == "prompt"
    assert kwargs["stream"] is False


def test_generate_with_model_override(manager):
    manager.client.generate.return_value = {"response": "ok"}

    manager.generate("prompt", model="mistral")

    assert manager.client.generate.call_args.kwargs["model"] == "mistral"


def test_generate_error_status(manager):
    manager.client.generate.side_effect = ResponseError("model 'llama3' not found", 404)

    with pytest.raises(ModelConnectionError, match="Ollama API error"):
        manager.generate("prompt")


def test_generate_timeout(manager):
    manager.client.generate.side_effect = httpx.ReadTimeout("timed out")

    with pytest.raises(ModelTimeoutError):
        manager.generate("prompt")


@pytest.mark.parametrize(
    "error",
    [httpx.ConnectError("connection refused"), ConnectionError("Failed to connect to Ollama")],
)
def test_generate_unreachable(manager, error):
    manager.client.generate.side_effect = error

    with pytest.raises(ModelConnectionError) as exc_info:
        manager.generate("prompt")
    assert not isinstance(exc_info.value, ModelTimeoutError)


# -- status --


def test_list_models(manager):
    manager.status_client.list.return_value = SimpleNamespace(models=[
        SimpleNamespace(model="llama3:latest"),
        SimpleNamespace(model="mistral:7b"),
        SimpleNamespace(model=None),
    ])

    assert manager.list_models() == ["llama3:latest", "mistral:7b"]


def test_check_status_running(manager):
    manager.status_client.list.return_value = SimpleNamespace(models=[SimpleNamespace(model="llama3:latest")])

    status = manager.check_status()

    assert status.running is True
    assert status.models == ["llama3:latest"]


@pytest.mark.parametrize(
    "error",
    [
        ConnectionError("Failed to connect to Ollama"),
        httpx.ConnectTimeout("timed out"),
        ResponseError("internal error", 500),
    ],
)
def test_check_status_not_running(manager, error):
    manager.status_client.list.side_effect = error

    status = manager.check_status()

    assert status.running is False
    assert status.models == []
