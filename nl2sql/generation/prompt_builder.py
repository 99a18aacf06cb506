import logging
from typing import Dict, Optional

from ..config import settings


DIALECT_NAMES = {
    "tsql": "Microsoft SQL Server",
    "postgres": "PostgreSQL",
    "mysql": "MySQL",
    "sqlite": "SQLite",
}

# Dialect-specific reminders appended to the rule list
DIALECT_RULES = {
    "tsql": [
        "Use proper SQL Server syntax (e.g., TOP instead of LIMIT)",
        "Use appropriate SQL Server date functions (e.g., DATEADD, DATEDIFF) when working with dates",
        "For pagination, use OFFSET-FETCH instead of LIMIT",
    ],
    "postgres": [
        "Use LIMIT to restrict the number of rows",
        "Use PostgreSQL date functions (e.g., NOW(), INTERVAL) when working with dates",
    ],
    "mysql": [
        "Use LIMIT to restrict the number of rows",
        "Use MySQL date functions (e.g., DATE_SUB, CURDATE()) when working with dates",
    ],
    "sqlite": [
        "Use LIMIT to restrict the number of rows",
        "Use SQLite date functions (e.g., date('now')) when working with dates",
    ],
}


class PromptBuilder:
    """Builds the SQL generation prompt sent to the local model."""

    def __init__(self, dialect: str = "tsql", max_schema_chars: Optional[int] = None):
        self.logger = logging.getLogger(__name__)
        self.dialect = dialect
        self.max_schema_chars = max_schema_chars or settings.llm_max_schema_chars

    def build_sql_generation_prompt(self, query: str, table_schemas: Dict[str, str]) -> str:
        """
        Build a prompt for SQL generation.

        Args:
            query: User's natural language query
            table_schemas: Compact column listing keyed by table name, in
                relevance order

        Returns:
            Complete prompt string
        """
        prompt = "\n\n".join([
            self._build_role_instruction(),
            self._build_schema_context(table_schemas),
            self._build_rules(),
            f"User query: {query}",
        ])

        self.logger.debug(f"Built prompt with {len(prompt)} characters")
        return prompt

    def _build_role_instruction(self) -> str:
        dialect_name = DIALECT_NAMES.get(self.dialect, self.dialect)
        return (
            "You are an expert SQL query generator. "
            f"Convert natural language queries to SQL for a {dialect_name} database."
        )

    def _build_schema_context(self, table_schemas: Dict[str, str]) -> str:
        """Table descriptions, truncated to the schema budget."""
        lines = ["The database has the following tables that are relevant to this query:"]
        used = 0

        for table_name, columns in table_schemas.items():
            line = f"Table: {table_name} (Columns: {columns})"
            if used + len(line) > self.max_schema_chars:
                if used == 0:
                    lines.append(line[:self.max_schema_chars])
                self.logger.debug(f"Schema context truncated at table {table_name}")
                break
            lines.append(line)
            used += len(line)

        return "\n\n".join(lines)

    def _build_rules(self) -> str:
        dialect_name = DIALECT_NAMES.get(self.dialect, self.dialect)
        rules = [
            f"Generate only valid {dialect_name} queries",
            'Return ONLY a JSON object with two properties: "sql" (the SQL query) and '
            '"explanation" (a brief explanation of what the query does in plain English)',
            "Do not include any markdown formatting in your response",
            "The response should be valid JSON",
            *DIALECT_RULES.get(self.dialect, []),
            "If the query involves multiple tables, use appropriate JOIN clauses based on column names",
            "Focus on the tables that are most relevant to the query",
        ]
        return "Rules:\n" + "\n".join(f"{i}. {rule}" for i, rule in enumerate(rules, 1))
