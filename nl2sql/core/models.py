"""
Data models shared across the pipeline.

Catalog snapshots (ColumnInfo, TableInfo, ForeignKeyInfo) and generation
artifacts (GeneratedQuery, QueryResult) are frozen: they are produced once
and handed forward, never mutated.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict


QuerySource = Literal["model", "rule_based", "fallback"]


class ColumnInfo(BaseModel):
    """Column metadata for a single table column."""

    model_config = ConfigDict(frozen=True)

    name: str
    sql_type: str
    max_length: int = -1
    nullable: bool = True
    is_primary_key: bool = False


class TableInfo(BaseModel):
    """A user table and its approximate row count."""

    model_config = ConfigDict(frozen=True)

    name: str
    schema_name: str = ""
    row_count: int = 0


class ForeignKeyInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    constraint_name: str
    table_name: str
    column_name: str
    referenced_table_name: str
    referenced_column_name: str


class GeneratedQuery(BaseModel):
    """SQL plus explanation produced by a generator, before execution."""

    model_config = ConfigDict(frozen=True)

    sql: str
    explanation: str
    source: QuerySource = "rule_based"


class QueryResult(BaseModel):
    """Terminal artifact of the pipeline.

    Exactly one of ``data`` and ``error`` is set.
    """

    model_config = ConfigDict(frozen=True)

    sql: str
    explanation: str
    data: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    source: QuerySource = "rule_based"

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ModelStatus(BaseModel):
    running: bool
    models: List[str] = []
