import json
import logging
import re
from typing import Optional, Sequence

import sqlglot
from sqlglot.errors import SqlglotError

from ..catalog.relevance_filter import RelevanceFilter
from ..catalog.schema_inspector import SchemaInspector
from ..core.exceptions import ModelResponseError
from ..core.llm import LLMManager
from ..core.models import GeneratedQuery
from .prompt_builder import PromptBuilder


OPEN_BRACE_PATTERN = re.compile(r"\{")
SELECT_STATEMENT_PATTERN = re.compile(r"SELECT[\s\S]*?;", re.IGNORECASE)

DIRECT_EXTRACTION_EXPLANATION = "Generated SQL query based on your request."


class ModelSQLGenerator:
    """Generates SQL with a local model, given the relevant part of the schema."""

    def __init__(
        self,
        llm_manager: LLMManager,
        schema_inspector: SchemaInspector,
        relevance_filter: RelevanceFilter,
        prompt_builder: Optional[PromptBuilder] = None,
        dialect: str = "tsql",
    ):
        self.logger = logging.getLogger(__name__)
        self.llm_manager = llm_manager
        self.schema_inspector = schema_inspector
        self.relevance_filter = relevance_filter
        self.dialect = dialect
        self.prompt_builder = prompt_builder or PromptBuilder(dialect=dialect)

    def generate(
        self,
        query: str,
        model: Optional[str] = None,
        tables: Optional[Sequence[str]] = None,
    ) -> GeneratedQuery:
        """
        Generate SQL from natural language query.

        Args:
            query: User's natural language query
            model: Ollama model name (defaults to the configured model)
            tables: Explicit table selection; relevance filtering picks
                the tables when None

        Returns:
            GeneratedQuery from the model

        Raises:
            ModelConnectionError: Ollama unreachable, erroring or timed out
            ModelResponseError: no usable SQL in the response
        """
        table_names = list(tables) if tables else self.relevance_filter.select_tables(query)
        self.logger.info(f"Generating SQL with model for tables: {table_names}")

        table_schemas = {name: self.schema_inspector.describe_table(name) for name in table_names}
        prompt = self.prompt_builder.build_sql_generation_prompt(query, table_schemas)

        response = self.llm_manager.generate(prompt, model=model)
        generated = self.parse_response(response)
        self._check_syntax(generated.sql)

        self.logger.info(f"Generated SQL: {generated.sql}")
        return generated

    def parse_response(self, response: str) -> GeneratedQuery:
        """
        Extract SQL and explanation from a free-text model response.

        The first JSON object is preferred; a bare SELECT statement is the
        second choice.
        """
        try:
            return self._parse_json(response)
        except ModelResponseError as e:
            self.logger.error(f"Failed to parse model response as JSON ({e}): {response!r}")

        match = SELECT_STATEMENT_PATTERN.search(response)
        if match:
            return GeneratedQuery(
                sql=match.group(0).strip(),
                explanation=DIRECT_EXTRACTION_EXPLANATION,
                source="model",
            )

        raise ModelResponseError("Failed to generate a valid SQL query")

    def _parse_json(self, response: str) -> GeneratedQuery:
        payload = self._first_json_object(response)

        sql = payload.get("sql")
        explanation = payload.get("explanation")
        if not isinstance(sql, str) or not sql.strip():
            raise ModelResponseError("JSON object has no 'sql' field")
        if not isinstance(explanation, str):
            raise ModelResponseError("JSON object has no 'explanation' field")

        return GeneratedQuery(sql=sql.strip(), explanation=explanation.strip(), source="model")

    @staticmethod
    def _first_json_object(response: str) -> dict:
        """Decode from each opening brace in turn; text after the object is ignored."""
        decoder = json.JSONDecoder()
        error = "No JSON object found in response"

        for match in OPEN_BRACE_PATTERN.finditer(response):
            try:
                payload, _ = decoder.raw_decode(response, match.start())
            except json.JSONDecodeError as e:
                error = f"Invalid JSON in response: {e}"
                continue
            if isinstance(payload, dict):
                return payload

        raise ModelResponseError(error)

    def _check_syntax(self, sql: str) -> None:
        """Reject SQL that does not parse as a complete statement."""
        try:
            statements = [s for s in sqlglot.parse(sql, read=self.dialect) if s is not None]
        except SqlglotError as e:
            self.logger.warning(f"Model SQL failed to parse: {e}")
            raise ModelResponseError(f"Model returned invalid SQL: {e}") from e

        if not statements:
            raise ModelResponseError("Model returned an empty SQL statement")
