"""
Wiki Backend: Database Engine & SQL Statements
==============================================

What:  Async SQLAlchemy engine factory and the immutable set of SQL statements
       the page store runs.
How:   `create_wiki_engine()` builds a pooled async engine from Settings;
       `load_sql_queries()` builds a frozen `SqlQueries` model once at startup,
       from the defaults or from a JSON override file.
Who:   Called by the application lifespan; the resulting engine and query set
       are injected into PageStore.
When:  Once per application start; the engine is disposed on shutdown.

Connection Pooling Strategy:
    pool_size=wikidb_max_pool_size: hard cap on concurrent connections
    max_overflow=0:                 no burst connections above the cap
    pool_pre_ping:                  validates connections before use

    The pool is the only resource shared between concurrent requests, and it
    is internally thread-safe. In-memory SQLite cannot be pooled (every
    connection would see its own empty database) and keeps SQLAlchemy's
    default single-connection pool.

Default SQL dialect:
    The default statements are written for SQLite. Deployments using another
    database point WIKIDB_SQL_QUERIES_FILE at a JSON file with their dialect's
    statements; named bind parameters (:name, :content, :id) are required.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from wikiapp.config import Settings
from wikiapp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class SqlQueries(BaseModel):
    """
    The SQL text for every page store operation.

    Frozen after construction: the store receives one instance at startup
    and nothing can rebind a statement afterwards.

    Bind parameters:
        get_page:     :name
        create_page:  :name, :content
        save_page:    :content, :id
        delete_page:  :id
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    create_pages_table: str = (
        "CREATE TABLE IF NOT EXISTS Pages ("
        "Id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "Name VARCHAR(255) UNIQUE, "
        "Content TEXT)"
    )
    all_pages: str = "SELECT Name FROM Pages"
    get_page: str = "SELECT Id, Content FROM Pages WHERE Name = :name"
    create_page: str = "INSERT INTO Pages (Name, Content) VALUES (:name, :content)"
    save_page: str = "UPDATE Pages SET Content = :content WHERE Id = :id"
    delete_page: str = "DELETE FROM Pages WHERE Id = :id"
    all_pages_data: str = "SELECT Name, Content FROM Pages"


def load_sql_queries(path: Optional[str] = None) -> SqlQueries:
    """
    Build the SqlQueries used for the lifetime of the application.

    Args:
        path: Optional JSON file. Keys it contains replace the matching
              defaults; missing keys keep their default statement.

    Raises:
        ConfigurationError: The file is unreadable, is not valid JSON, or
                            names a statement that does not exist.
    """
    if not path:
        return SqlQueries()

    queries_file = Path(path)
    try:
        raw = queries_file.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            message=f"Could not read SQL queries file '{path}': {e}",
            context={"path": path},
        ) from e

    try:
        queries = SqlQueries.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigurationError(
            message=f"Invalid SQL queries file '{path}': {e}",
            context={"path": path},
        ) from e

    logger.info("Loaded SQL queries from %s", queries_file.resolve())
    return queries


def _is_memory_sqlite(url: URL) -> bool:
    if url.get_backend_name() != "sqlite":
        return False
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


def create_wiki_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine (and its connection pool) for the wiki database.

    For file-backed SQLite the parent directory of the database file is
    created on demand, mirroring a fresh checkout booting with no ./db folder.
    """
    url = settings.database_url
    engine_kwargs = {
        "pool_pre_ping": True,
        # SQL echo only in DEBUG mode
        "echo": settings.log_level == "DEBUG",
    }

    if _is_memory_sqlite(url):
        # One shared connection: wikidb_max_pool_size does not apply
        logger.warning(
            "Using an in-memory SQLite database: pages are lost on shutdown and all "
            "calls share a single connection, so concurrent writes may fail with DB_ERROR"
        )
    else:
        engine_kwargs["pool_size"] = settings.wikidb_max_pool_size
        engine_kwargs["max_overflow"] = 0

    if url.get_backend_name() == "sqlite" and url.database and not _is_memory_sqlite(url):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    logger.info(
        "Creating database engine for %s (max_pool_size=%d)",
        url.render_as_string(hide_password=True),
        settings.wikidb_max_pool_size,
    )
    return create_async_engine(url, **engine_kwargs)


async def dispose_engine(engine: AsyncEngine) -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
