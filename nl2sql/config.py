from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# sqlglot dialect names keyed by DB_TYPE
SQL_DIALECTS = {
    "mssql": "tsql",
    "postgresql": "postgres",
    "mysql": "mysql",
    "sqlite": "sqlite",
}


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # LLM Configuration
    llm_model_name: str = Field(default="llama3")
    llm_base_url: str = Field(default="http://localhost:11434")
    llm_enabled: bool = Field(default=True)
    llm_timeout: float = Field(default=5.0)
    llm_status_timeout: float = Field(default=2.0)
    llm_temperature: float = Field(default=0.1)
    llm_max_schema_chars: int = Field(default=6000)

    # Database Configuration
    db_type: str = Field(default="mssql")
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=1433)
    db_user: str = Field(default="sa")
    db_password: str = Field(default="")
    db_name: str = Field(default="target_db")
    database_url_override: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")
    sql_timeout: int = Field(default=30)

    # Generation Configuration
    default_table: str = Field(default="EmployeeMaster")
    relevance_max_tables: int = Field(default=3)

    # Application Configuration
    app_host: str = Field(default="0.0.0.0")
    app_port: int = Field(default=8000)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        if self.database_url_override:
            return self.database_url_override
        if self.db_type == "mssql":
            return f"mssql+pymssql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
        elif self.db_type == "mysql":
            return f"mysql+pymysql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
        elif self.db_type == "postgresql":
            return f"postgresql+psycopg2://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
        elif self.db_type == "sqlite":
            return f"sqlite:///{self.db_name}"
        else:
            raise ValueError(f"Unsupported database type: {self.db_type}")


# Global settings instance
settings = Settings()
