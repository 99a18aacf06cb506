"""
Fallback orchestrator: natural language in, SQL and rows out.

The model path is tried first; any failure there falls back to rule-based
generation, a failed execution is retried once with the rule-based SQL, and
an unexpected error executes a fixed default query. Callers get either data
or a structured error, never an exception, for a well-formed question.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from .catalog import RelevanceFilter, SchemaInspector
from .config import settings
from .core import DatabaseManager, LLMManager, QueryExecutor
from .core.exceptions import InputValidationError, NL2SQLError, PipelineError
from .core.models import (
    ColumnInfo,
    ForeignKeyInfo,
    GeneratedQuery,
    ModelStatus,
    QueryResult,
    TableInfo,
)
from .generation import ModelSQLGenerator, RuleBasedGenerator


ResultListener = Callable[[QueryResult], None]


class QueryOrchestrator:
    """Main orchestrator for natural-language-to-SQL queries."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        llm_enabled: Optional[bool] = None,
        model_name: Optional[str] = None,
        database: Optional[DatabaseManager] = None,
        llm_manager: Optional[LLMManager] = None,
        executor: Optional[QueryExecutor] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            database_url: Database connection URL (uses settings if None)
            llm_enabled: Whether the model path is tried at all
            model_name: Default Ollama model
            database: Pre-built database manager
            llm_manager: Pre-built Ollama client
            executor: Pre-built query executor
        """
        self.logger = logging.getLogger(__name__)
        self.llm_enabled = settings.llm_enabled if llm_enabled is None else llm_enabled

        self.database = database or DatabaseManager(database_url)
        self.dialect = self.database.sql_dialect
        self.executor = executor or QueryExecutor(self.database)
        self.schema_inspector = SchemaInspector(self.database, self.executor)
        self.relevance_filter = RelevanceFilter(self.schema_inspector)

        self.rule_generator = RuleBasedGenerator(
            table_provider=self.schema_inspector.list_tables,
            dialect=self.dialect,
        )
        self.llm_manager = llm_manager or LLMManager(model_name=model_name)
        self.model_generator = ModelSQLGenerator(
            self.llm_manager,
            self.schema_inspector,
            self.relevance_filter,
            dialect=self.dialect,
        )

        self._listeners: List[ResultListener] = []

    def subscribe(self, listener: ResultListener) -> Callable[[], None]:
        """
        Register a callback invoked with every new result.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def generate_and_execute(
        self,
        query: Any,
        model: Optional[str] = None,
        use_llm: Optional[bool] = None,
        tables: Optional[Sequence[str]] = None,
    ) -> QueryResult:
        """
        Convert a natural language query to SQL and run it.

        Args:
            query: Natural language query
            model: Ollama model name for this call
            use_llm: Per-call override of the model-enabled flag
            tables: Explicit table selection for the model prompt

        Returns:
            QueryResult carrying either data or an error message

        Raises:
            InputValidationError: query is not a non-blank string
            PipelineError: even the fixed default query failed
        """
        if not isinstance(query, str) or not query.strip():
            raise InputValidationError("Query is required and must be a string")

        use_llm = self.llm_enabled if use_llm is None else use_llm

        try:
            generated = self._generate(query, model, use_llm, tables)

            try:
                data = self.executor.execute(generated.sql)
            except NL2SQLError as error:
                self.logger.error(f"Error executing SQL query: {error}")

                # Regenerate with rules and try once more
                fallback = self.rule_generator.generate(query)
                try:
                    data = self.executor.execute(fallback.sql)
                except NL2SQLError as fallback_error:
                    self.logger.error(f"Fallback query failed as well: {fallback_error}")
                    message = f"Failed to execute query: {error.message}"
                    if fallback_error.message != error.message:
                        message += f" (fallback query: {fallback_error.message})"
                    return self._publish(QueryResult(
                        sql=fallback.sql,
                        explanation=fallback.explanation,
                        error=message,
                        source=fallback.source,
                    ))
                generated = fallback

            return self._publish(QueryResult(
                sql=generated.sql,
                explanation=generated.explanation,
                data=data,
                source=generated.source,
            ))

        except Exception as e:
            self.logger.exception(f"Error generating SQL: {e}")
            return self._publish(self._execute_default(e))

    def _generate(
        self,
        query: str,
        model: Optional[str],
        use_llm: bool,
        tables: Optional[Sequence[str]],
    ) -> GeneratedQuery:
        """Model path first, rule-based on any failure."""
        if use_llm:
            try:
                return self.model_generator.generate(query, model=model, tables=tables)
            except Exception as e:
                self.logger.error(f"Error with Ollama, falling back to rule-based approach: {e}")
        else:
            self.logger.info("Model path disabled, using rule-based generation")

        return self.rule_generator.generate(query)

    def _execute_default(self, cause: Exception) -> QueryResult:
        """Last resort: show a page of the default table."""
        sql = self.rule_generator.render(f"SELECT TOP 10 * FROM {settings.default_table}").rstrip(";")

        try:
            data = self.executor.execute(sql)
        except Exception as final_error:
            self.logger.error(f"Default query failed: {final_error}")
            raise PipelineError(f"Failed to generate SQL: {cause}") from final_error

        return QueryResult(
            sql=sql,
            explanation=f"Showing the first 10 records from the {settings.default_table} table (fallback query).",
            data=data,
            source="fallback",
        )

    def _publish(self, result: QueryResult) -> QueryResult:
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception as e:
                self.logger.exception(f"Result listener failed: {e}")
        return result

    def list_tables(self) -> List[TableInfo]:
        return self.schema_inspector.list_tables()

    def get_table_schema(self, table_name: str) -> List[ColumnInfo]:
        return self.schema_inspector.get_columns(table_name)

    def fetch_sample_data(self, table_name: str, limit: int = 10) -> List[Dict[str, Any]]:
        return self.schema_inspector.fetch_sample(table_name, limit=limit)

    def get_relationships(self) -> List[ForeignKeyInfo]:
        return self.schema_inspector.get_foreign_keys()

    def test_connection(self) -> Dict[str, Any]:
        return self.schema_inspector.test_connection()

    def check_model_status(self) -> ModelStatus:
        """Ollama availability; reported as not running while the model path is disabled."""
        if not self.llm_enabled:
            return ModelStatus(running=False, models=[])
        return self.llm_manager.check_status()

    def get_stats(self) -> Dict[str, Any]:
        """Get system statistics."""
        return {
            "database_dialect": self.dialect,
            "llm_enabled": self.llm_enabled,
            "llm_model": self.llm_manager.model_name,
            "llm_base_url": self.llm_manager.base_url,
            "default_table": settings.default_table,
            "timestamp": datetime.now().isoformat(),
        }
