"""
Exception hierarchy for nl2sql.

Connectivity and parse failures are recoverable: the orchestrator catches
them and moves on to the next fallback tier. Only InputValidationError and
PipelineError are ever surfaced to callers.
"""


class NL2SQLError(Exception):
    """Base exception for all nl2sql errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConnectivityError(NL2SQLError):
    """A collaborator (database or model service) could not be reached."""


class DatabaseConnectionError(ConnectivityError):
    """Database unreachable or refused the connection."""


class ModelConnectionError(ConnectivityError):
    """Ollama unreachable or answered with a non-200 status."""


class ModelTimeoutError(ModelConnectionError):
    """Ollama did not answer within the configured timeout."""


class ModelResponseError(NL2SQLError):
    """Model answered, but no usable SQL could be extracted."""


class QueryExecutionError(NL2SQLError):
    """Generated SQL failed to execute."""

    def __init__(self, message: str, sql: str = "") -> None:
        self.sql = sql
        super().__init__(message)


class InputValidationError(NL2SQLError):
    """Missing, non-string or blank query."""


class PipelineError(NL2SQLError):
    """Every fallback tier failed."""
