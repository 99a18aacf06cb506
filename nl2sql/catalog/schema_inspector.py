import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from ..config import settings
from ..core.database import DatabaseManager
from ..core.exceptions import DatabaseConnectionError, InputValidationError, NL2SQLError
from ..core.executor import QueryExecutor
from ..core.models import ColumnInfo, ForeignKeyInfo, TableInfo


MSSQL_TABLES_QUERY = """
    SELECT
      t.name AS table_name,
      s.name AS schema_name,
      p.rows AS row_count
    FROM sys.tables t
    INNER JOIN sys.schemas s ON t.schema_id = s.schema_id
    INNER JOIN sys.partitions p ON t.object_id = p.object_id
    WHERE p.index_id IN (0,1)
    ORDER BY t.name
"""

POSTGRES_ROW_COUNT_QUERY = """
    SELECT c.reltuples::bigint
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE c.relname = :table_name AND n.nspname = :schema_name
"""

MYSQL_ROW_COUNT_QUERY = """
    SELECT TABLE_ROWS
    FROM INFORMATION_SCHEMA.TABLES
    WHERE TABLE_SCHEMA = :schema_name AND TABLE_NAME = :table_name
"""


class SchemaInspector:
    """Reads table and column metadata from the database catalog."""

    def __init__(self, database: DatabaseManager, executor: Optional[QueryExecutor] = None):
        """
        Initialize schema inspector.

        Args:
            database: Shared database manager
            executor: Executor used for sample data (created if None)
        """
        self.logger = logging.getLogger(__name__)
        self.database = database
        self.executor = executor or QueryExecutor(database)

    def list_tables(self) -> List[TableInfo]:
        """
        List user tables with approximate row counts.

        Returns:
            TableInfo per table, ordered by table name

        Raises:
            DatabaseConnectionError: the catalog could not be read
        """
        try:
            if self.database.dialect_name == "mssql":
                tables = self._list_tables_mssql()
            else:
                tables = self._list_tables_generic()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing tables: {e}")
            raise DatabaseConnectionError(f"Error listing tables: {e}") from e

        self.logger.info(f"Found {len(tables)} tables")
        return tables

    def _list_tables_mssql(self) -> List[TableInfo]:
        with self.database.engine.connect() as conn:
            rows = conn.execute(text(MSSQL_TABLES_QUERY)).mappings().all()

        return [
            TableInfo(
                name=row["table_name"],
                schema_name=row["schema_name"],
                row_count=int(row["row_count"] or 0),
            )
            for row in rows
        ]

    def _list_tables_generic(self) -> List[TableInfo]:
        inspector = inspect(self.database.engine)
        schema_name = inspector.default_schema_name or ""

        return [
            TableInfo(
                name=table_name,
                schema_name=schema_name,
                row_count=self._get_table_row_count(table_name, schema_name),
            )
            for table_name in sorted(inspector.get_table_names())
        ]

    def _get_table_row_count(self, table_name: str, schema_name: str) -> int:
        """Get approximate row count for a table."""
        dialect = self.database.dialect_name
        params = {"table_name": table_name, "schema_name": schema_name}

        try:
            with self.database.engine.connect() as conn:
                if dialect == "postgresql":
                    result = conn.execute(text(POSTGRES_ROW_COUNT_QUERY), params)
                elif dialect == "mysql":
                    result = conn.execute(text(MYSQL_ROW_COUNT_QUERY), params)
                else:
                    # Fallback to exact count
                    quoted = self.database.engine.dialect.identifier_preparer.quote(table_name)
                    result = conn.execute(text(f"SELECT COUNT(*) FROM {quoted}"))

                return max(int(result.scalar() or 0), 0)
        except SQLAlchemyError as e:
            self.logger.warning(f"Could not get row count for {table_name}: {e}")
            return 0

    def get_columns(self, table_name: str) -> List[ColumnInfo]:
        """
        Get column metadata for a table.

        Args:
            table_name: Table name

        Returns:
            ColumnInfo per column, in table order

        Raises:
            InputValidationError: the table does not exist
            DatabaseConnectionError: the catalog could not be read
        """
        try:
            inspector = inspect(self.database.engine)
            primary_keys = set(inspector.get_pk_constraint(table_name).get("constrained_columns") or [])
            columns = inspector.get_columns(table_name)
        except NoSuchTableError as e:
            raise InputValidationError(f"Unknown table: {table_name}") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting table schema for {table_name}: {e}")
            raise DatabaseConnectionError(f"Error getting table schema for {table_name}: {e}") from e

        return [
            ColumnInfo(
                name=column["name"],
                sql_type=str(column["type"]),
                max_length=getattr(column["type"], "length", None) or -1,
                nullable=bool(column.get("nullable", True)),
                is_primary_key=column["name"] in primary_keys,
            )
            for column in columns
        ]

    def describe_table(self, table_name: str) -> str:
        """Compact column listing for prompts, empty when the table can't be read."""
        try:
            columns = self.get_columns(table_name)
        except (InputValidationError, DatabaseConnectionError) as e:
            self.logger.error(f"Error getting simplified schema: {e}")
            return ""

        return ", ".join(
            f"{col.name} {col.sql_type}{' (PK)' if col.is_primary_key else ''}"
            for col in columns
        )

    def get_foreign_keys(self) -> List[ForeignKeyInfo]:
        """Foreign key relationships between user tables."""
        try:
            inspector = inspect(self.database.engine)
            relationships = []
            for table_name in inspector.get_table_names():
                for fk in inspector.get_foreign_keys(table_name):
                    pairs = zip(fk["constrained_columns"], fk["referred_columns"])
                    for column_name, referenced_column in pairs:
                        relationships.append(ForeignKeyInfo(
                            constraint_name=fk.get("name") or f"fk_{table_name}_{column_name}",
                            table_name=table_name,
                            column_name=column_name,
                            referenced_table_name=fk["referred_table"],
                            referenced_column_name=referenced_column,
                        ))
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting foreign key relationships: {e}")
            raise DatabaseConnectionError(f"Error getting foreign key relationships: {e}") from e

        relationships.sort(key=lambda r: (r.table_name, r.referenced_table_name))
        return relationships

    def fetch_sample(self, table_name: str, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Fetch the first rows of a table.

        Args:
            table_name: Table name; must exist in the catalog
            limit: Number of rows

        Returns:
            Sanitized rows
        """
        known = {t.name for t in self.list_tables()}
        if table_name not in known:
            raise InputValidationError(f"Unknown table: {table_name}")

        quoted = self.database.engine.dialect.identifier_preparer.quote(table_name)
        if self.database.dialect_name == "mssql":
            sql = f"SELECT TOP {int(limit)} * FROM {quoted}"
        else:
            sql = f"SELECT * FROM {quoted} LIMIT {int(limit)}"

        return self.executor.execute(sql)

    def test_connection(self, table_name: Optional[str] = None) -> Dict[str, Any]:
        """Count the rows of the default table to prove the database answers."""
        table_name = table_name or settings.default_table

        try:
            quoted = self.database.engine.dialect.identifier_preparer.quote(table_name)
            rows = self.executor.execute(f"SELECT COUNT(*) AS count FROM {quoted}")
            return {"success": True, "count": rows[0]["count"]}
        except NL2SQLError as e:
            self.logger.error(f"Error testing database connection: {e}")
            return {"success": False, "error": str(e)}
