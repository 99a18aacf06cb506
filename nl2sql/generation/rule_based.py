"""
Rule-based SQL generation.

Keyword heuristics map a question onto a fixed set of T-SQL templates. Rules
are evaluated in order and the first one whose predicate matches builds the
statement; the order is the tie-break and is part of the behavior.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import sqlglot
from sqlglot.errors import SqlglotError

from ..config import settings
from ..core.exceptions import NL2SQLError
from ..core.models import GeneratedQuery, TableInfo
from ..catalog.relevance_filter import is_user_table


# Keyword groups mapped to the table they name, checked in order
TABLE_KEYWORDS: List[Tuple[Tuple[str, ...], str]] = [
    (("employee", "staff", "worker"), "EmployeeMaster"),
    (("department",), "DepartmentMaster"),
    (("project",), "ProjectMaster"),
    (("customer",), "CustomerMaster"),
    (("vendor", "supplier"), "VendorMaster"),
    (("product", "item"), "ProductMaster"),
    (("order", "purchase"), "OrderMaster"),
    (("invoice", "bill"), "InvoiceMaster"),
]

# "<field> ... only" narrows a listing to a single column
FIELD_COLUMNS: List[Tuple[str, str]] = [
    ("name", "EmpName"),
    ("id", "EmpID"),
    ("email", "EMailID"),
]

GROUP_COLUMNS: List[Tuple[Tuple[str, ...], str]] = [
    (("department",), "Department"),
    (("gender", "sex"), "Sex"),
    (("city", "location"), "Address1"),
    (("status",), "StatusInfo"),
    (("position", "job"), "JobPosition"),
]
DEFAULT_GROUP_COLUMN = "Department"

SEARCH_STOP_WORDS = frozenset([
    "search", "find", "for", "the", "with", "where", "that", "have", "has", "all", "any",
])
SEARCH_COLUMNS = ("EmpName", "Department")

ORDER_COLUMN = "Id"
FLAG_COLUMN = "Active"
DEFAULT_TOP_N = 10

NUMBER_PATTERN = re.compile(r"\b(\d+)\b")
# "by <dimension>" names what to group on, not which table to read
GROUPING_PHRASE = re.compile(r"\bby\b.*$")
# "active" but not "inactive"
ACTIVE_PATTERN = re.compile(r"\bactive")


@dataclass(frozen=True)
class QueryContext:
    """What the rules see: the lower-cased question and the resolved names."""

    text: str
    table: str
    columns: str


Template = Tuple[str, str]
Rule = Tuple[str, Callable[[QueryContext], bool], Callable[[QueryContext], Optional[Template]]]


def _contains_any(text: str, words: Sequence[str]) -> bool:
    return any(word in text for word in words)


def _show_all(ctx: QueryContext) -> Template:
    return (
        f"SELECT TOP 100 {ctx.columns} FROM {ctx.table};",
        f"Shows the first 100 records from the {ctx.table} table.",
    )


def _grouped_count(ctx: QueryContext) -> Template:
    group_column = DEFAULT_GROUP_COLUMN
    for keywords, column in GROUP_COLUMNS:
        if _contains_any(ctx.text, keywords):
            group_column = column
            break

    return (
        f"SELECT {group_column}, COUNT(*) AS count FROM {ctx.table} "
        f"GROUP BY {group_column} ORDER BY count DESC;",
        f"Counts the number of records in the {ctx.table} table, grouped by {group_column}.",
    )


def _count(ctx: QueryContext) -> Template:
    return (
        f"SELECT COUNT(*) AS count FROM {ctx.table};",
        f"Counts the total number of records in the {ctx.table} table.",
    )


def _top_n(ctx: QueryContext) -> Template:
    match = NUMBER_PATTERN.search(ctx.text)
    limit = int(match.group(1)) if match else DEFAULT_TOP_N
    return (
        f"SELECT TOP {limit} * FROM {ctx.table} ORDER BY {ORDER_COLUMN} DESC;",
        f"Shows the top {limit} records from the {ctx.table} table.",
    )


def _active(ctx: QueryContext) -> Template:
    return (
        f"SELECT * FROM {ctx.table} WHERE {FLAG_COLUMN} = 1;",
        f"Shows active records from the {ctx.table} table.",
    )


def _inactive(ctx: QueryContext) -> Template:
    return (
        f"SELECT * FROM {ctx.table} WHERE {FLAG_COLUMN} = 0;",
        f"Shows inactive records from the {ctx.table} table.",
    )


def _recent(ctx: QueryContext) -> Template:
    return (
        f"SELECT TOP 20 * FROM {ctx.table} ORDER BY {ORDER_COLUMN} DESC;",
        f"Shows the 20 most recent records from the {ctx.table} table.",
    )


def extract_search_term(text: str) -> Optional[str]:
    """First word longer than three characters that is not a stop word."""
    for word in text.split():
        if len(word) > 3 and word not in SEARCH_STOP_WORDS:
            return word
    return None


def _search(ctx: QueryContext) -> Optional[Template]:
    term = extract_search_term(ctx.text)
    if term is None:
        return None

    # Doubling quotes keeps the term inside the string literal
    literal = term.replace("'", "''")
    predicate = " OR ".join(f"{column} LIKE '%{literal}%'" for column in SEARCH_COLUMNS)
    return (
        f"SELECT * FROM {ctx.table} WHERE {predicate};",
        f'Searches for records in the {ctx.table} table containing "{term}".',
    )


RULES: List[Rule] = [
    ("show_all", lambda c: _contains_any(c.text, ("show all", "list all", "get all")), _show_all),
    ("grouped_count", lambda c: "count" in c.text and _contains_any(c.text, ("by", "group")), _grouped_count),
    ("count", lambda c: "count" in c.text, _count),
    ("top_n", lambda c: _contains_any(c.text, ("top", "highest", "most")), _top_n),
    ("active", lambda c: bool(ACTIVE_PATTERN.search(c.text)) or "current" in c.text, _active),
    ("inactive", lambda c: _contains_any(c.text, ("inactive", "former")), _inactive),
    ("recent", lambda c: _contains_any(c.text, ("recent", "latest", "newest")), _recent),
    ("search", lambda c: _contains_any(c.text, ("search", "find")), _search),
]


class RuleBasedGenerator:
    """Deterministic keyword-driven SQL generator that never fails."""

    def __init__(
        self,
        table_provider: Optional[Callable[[], Sequence[TableInfo]]] = None,
        default_table: Optional[str] = None,
        dialect: str = "tsql",
    ):
        """
        Initialize the rule-based generator.

        Args:
            table_provider: Returns the catalog, consulted only when no
                keyword names a table
            default_table: Table used when nothing else resolves
            dialect: sqlglot dialect the templates are rendered for
        """
        self.logger = logging.getLogger(__name__)
        self.table_provider = table_provider
        self.default_table = default_table or settings.default_table
        self.dialect = dialect
        self.rules = list(RULES)

    def generate(self, query: str) -> GeneratedQuery:
        """
        Map a question to SQL.

        Args:
            query: User's natural language query

        Returns:
            GeneratedQuery; the absolute fallback on any internal error
        """
        try:
            lower_query = query.lower()
            ctx = QueryContext(
                text=lower_query,
                table=self.resolve_table(lower_query),
                columns=self.resolve_columns(lower_query),
            )

            for name, predicate, build in self.rules:
                if not predicate(ctx):
                    continue
                template = build(ctx)
                if template is not None:
                    self.logger.info(f"Rule '{name}' matched on table {ctx.table}")
                    return self._generated(*template)

            return self._generated(
                f"SELECT TOP 10 * FROM {ctx.table};",
                f"Shows the first 10 records from the {ctx.table} table.",
            )

        except Exception as e:
            self.logger.exception(f"Error in rule-based SQL generation: {e}")
            return self._generated(
                f"SELECT TOP 10 * FROM {self.default_table};",
                f"Shows the first 10 records from the {self.default_table} table.",
            )

    def resolve_table(self, lower_query: str) -> str:
        """Table named by keywords, then by a literal catalog match, else the default."""
        entity_text = GROUPING_PHRASE.sub("", lower_query)

        for keywords, table in TABLE_KEYWORDS:
            if _contains_any(entity_text, keywords):
                return table

        for table in self._catalog():
            if table.name.lower() in entity_text:
                return table.name

        return self.default_table

    def resolve_columns(self, lower_query: str) -> str:
        if "only" in lower_query:
            for keyword, column in FIELD_COLUMNS:
                if keyword in lower_query:
                    return column
        return "*"

    def _catalog(self) -> List[TableInfo]:
        if self.table_provider is None:
            return []
        try:
            return [t for t in self.table_provider() if is_user_table(t)]
        except NL2SQLError as e:
            self.logger.warning(f"Catalog unavailable for table resolution: {e}")
            return []

    def render(self, sql: str) -> str:
        """Rewrite a T-SQL template for the configured dialect."""
        if self.dialect == "tsql":
            return sql
        try:
            return sqlglot.transpile(sql.rstrip(";"), read="tsql", write=self.dialect)[0] + ";"
        except SqlglotError as e:
            self.logger.warning(f"Could not transpile template to {self.dialect}: {e}")
            return sql

    def _generated(self, sql: str, explanation: str) -> GeneratedQuery:
        return GeneratedQuery(sql=self.render(sql), explanation=explanation, source="rule_based")
