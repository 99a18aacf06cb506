import logging
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Mapping

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from .database import DatabaseManager
from .exceptions import DatabaseConnectionError, QueryExecutionError


BINARY_PLACEHOLDER = "[BINARY DATA]"


def sanitize_value(value: Any) -> Any:
    """Redact binary payloads and normalize date/time values to ISO-8601."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BINARY_PLACEHOLDER
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def sanitize_rows(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Convert result rows to plain dictionaries safe for transport."""
    return [
        {key: sanitize_value(value) for key, value in row.items()}
        for row in rows
    ]


class QueryExecutor:
    """Executes SQL strings verbatim against the shared engine."""

    def __init__(self, database: DatabaseManager):
        self.logger = logging.getLogger(__name__)
        self.database = database

    def execute(self, sql: str) -> List[Dict[str, Any]]:
        """
        Execute SQL query.

        The statement is handed to the driver as-is, without bind parameter
        processing, so literal colons and percent signs survive.

        Args:
            sql: SQL query to execute

        Returns:
            Sanitized rows as dictionaries (empty for statements without rows)
        """
        try:
            conn = self.database.engine.connect()
        except SQLAlchemyError as e:
            self.logger.error(f"Database connection failed: {e}")
            raise DatabaseConnectionError(f"Database connection failed: {e}") from e

        try:
            with conn:
                result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
                if not result.returns_rows:
                    self.logger.info("SQL executed successfully, statement returned no rows")
                    return []
                rows = sanitize_rows(result.mappings())

            self.logger.info(f"SQL executed successfully, returned {len(rows)} rows")
            return rows

        except DBAPIError as e:
            self.logger.error(f"Error executing query: {e}")
            raise QueryExecutionError(str(e.orig), sql=sql) from e
        except SQLAlchemyError as e:
            self.logger.error(f"Error executing query: {e}")
            raise QueryExecutionError(str(e), sql=sql) from e
