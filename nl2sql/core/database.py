import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from ..config import SQL_DIALECTS, settings
from .exceptions import DatabaseConnectionError


class DatabaseManager:
    """Owns the single SQLAlchemy engine shared by the inspector and executor."""

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        """
        Initialize the database manager.

        Args:
            database_url: Database connection URL (uses settings if None)
            engine: Pre-built engine, used as-is
        """
        self.logger = logging.getLogger(__name__)
        self.database_url = database_url or (None if engine is not None else settings.database_url)
        self._engine = engine

    @property
    def engine(self) -> Engine:
        """The shared engine, created on first use."""
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def sql_dialect(self) -> str:
        """sqlglot dialect name, known without connecting."""
        if self._engine is not None:
            backend = self._engine.dialect.name
        else:
            backend = make_url(self.database_url).get_backend_name()
        return SQL_DIALECTS.get(backend, backend)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def _create_engine(self) -> Engine:
        try:
            url = make_url(self.database_url)
            engine = create_engine(
                url,
                pool_pre_ping=True,
                connect_args=self._connect_args(url.get_backend_name()),
            )
            self.logger.info(f"Database engine created for: {url.render_as_string(hide_password=True)}")
            return engine
        except (SQLAlchemyError, ImportError, ValueError) as e:
            self.logger.error(f"Failed to create database engine: {e}")
            raise DatabaseConnectionError(f"Failed to create database engine: {e}") from e

    def _connect_args(self, backend: str) -> dict:
        """Driver-specific statement timeout."""
        if backend == "mssql":
            return {"timeout": settings.sql_timeout}
        elif backend == "postgresql":
            return {"options": f"-c statement_timeout={settings.sql_timeout * 1000}"}
        return {}

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
