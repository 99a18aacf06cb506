import logging
from typing import List, Optional, Sequence

from ..config import settings
from ..core.exceptions import NL2SQLError
from ..core.models import TableInfo
from .schema_inspector import SchemaInspector


SYSTEM_TABLE_PREFIXES = ("sys", "dt")

# Lookup tables carry this suffix; it is also the marker of primary entities
ENTITY_MARKER = "master"


def is_user_table(table: TableInfo) -> bool:
    """Non-system table holding at least one row."""
    return not table.name.startswith(SYSTEM_TABLE_PREFIXES) and table.row_count > 0


class RelevanceFilter:
    """Selects the tables a query is most likely about."""

    def __init__(
        self,
        schema_inspector: Optional[SchemaInspector] = None,
        default_table: Optional[str] = None,
        max_tables: Optional[int] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.schema_inspector = schema_inspector
        self.default_table = default_table or settings.default_table
        self.max_tables = max_tables or settings.relevance_max_tables

    def select_tables(self, query: str, tables: Optional[Sequence[TableInfo]] = None) -> List[str]:
        """
        Pick the tables to focus SQL generation on.

        Args:
            query: User's natural language query
            tables: Catalog snapshot (read from the inspector if None)

        Returns:
            Non-empty list of table names
        """
        if tables is None:
            if self.schema_inspector is None:
                return [self.default_table]
            try:
                tables = self.schema_inspector.list_tables()
            except NL2SQLError as e:
                self.logger.error(f"Error getting relevant tables: {e}")
                return [self.default_table]

        candidates = [t for t in tables if is_user_table(t)]
        if not candidates:
            return [self.default_table]

        lower_query = query.lower()
        mentioned = [t.name for t in candidates if self._is_mentioned(t.name, lower_query)]
        if mentioned:
            self.logger.debug(f"Tables mentioned in query: {mentioned}")
            return mentioned

        entity_tables = [t.name for t in candidates if ENTITY_MARKER in t.name.lower()]
        if entity_tables:
            return entity_tables[:self.max_tables]

        by_size = sorted(candidates, key=lambda t: t.row_count, reverse=True)
        return [t.name for t in by_size[:self.max_tables]]

    @staticmethod
    def _is_mentioned(table_name: str, lower_query: str) -> bool:
        name = table_name.lower()
        forms = (name, name.replace(ENTITY_MARKER, ""), name.replace("_", " "))
        return any(form and form in lower_query for form in forms)
