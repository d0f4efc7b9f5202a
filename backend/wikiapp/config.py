"""
Wiki Backend: Application Configuration
=======================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or a .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Read by the application factory, which hands the values it needs to
       the engine, the page store, and the bus bindings.
When:  Loaded once at module import time; validated before the app starts.

Every value has a default, so the wiki boots with no environment at all:
a file-backed SQLite database under ./db and the Database Service bound on
the `wikidb.queue` bus address.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL, make_url


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes are grouped by concern for readability.
    """

    # ── Database ──────────────────────────────────────────────────────────
    # Format: <dialect>+<async driver>://user:password@host:port/dbname
    wikidb_url: str = Field(
        default="sqlite+aiosqlite:///./db/wiki.db",
        description="Async SQLAlchemy connection URL for the wiki database",
    )

    # What: Driver identifier that replaces the driver part of wikidb_url
    # Example: "postgresql+asyncpg" turns a generic URL into an asyncpg one
    wikidb_driver: str = Field(default="")

    # What: Upper bound on pooled connections, hence on concurrent store calls
    wikidb_max_pool_size: int = Field(default=30, ge=1, le=200)

    # What: Optional JSON file overriding the SQL statements used by the store
    # Keys: create_pages_table, all_pages, get_page, create_page, save_page,
    #       delete_page, all_pages_data (see wikiapp.database.SqlQueries)
    wikidb_sql_queries_file: str = Field(default="")

    # ── Message Bus ───────────────────────────────────────────────────────
    # What: Bus address the Database Service consumer listens on
    wikidb_queue: str = Field(default="wikidb.queue", min_length=1)

    # What: Seconds a single Database Service call may take before it fails
    # with DB_ERROR. Applies to bus round trips and to in-process store calls.
    wikidb_call_timeout: float = Field(default=5.0, gt=0, le=300)

    # ── Server ────────────────────────────────────────────────────────────
    http_server_host: str = Field(default="0.0.0.0")
    http_server_port: int = Field(default=8080, ge=1, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # WIKIDB_URL and wikidb_url both work
    }

    @property
    def database_url(self) -> URL:
        """
        What:  The effective connection URL.
        How:   Parses wikidb_url and, when wikidb_driver is set, swaps in that
               driver name while keeping host, credentials and database.
        """
        url = make_url(self.wikidb_url)
        if self.wikidb_driver:
            url = url.set(drivername=self.wikidb_driver)
        return url

    @property
    def sql_queries_file(self) -> Optional[str]:
        return self.wikidb_sql_queries_file or None


# Singleton instance: imported by the application factory
settings = Settings()
