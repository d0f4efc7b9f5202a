"""
Wiki Backend: FastAPI Application Factory
=========================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance
       whose lifespan wires the database, the event bus and the Database
       Service together.
Who:   Called by uvicorn (uvicorn wikiapp.main:app) and by the tests.

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  Middleware:  [Request ID] → [Access Logging]           │
    │                                                         │
    │  Routes:      GET / · GET /wiki/{page} · POST /create   │
    │               POST /save · POST /delete · GET /backup   │
    │               GET /alive · GET /health                  │
    │                     │                                   │
    │                     ▼ app.state.wiki_service (proxy)    │
    │  EventBus ── address WIKIDB_QUEUE ──▶ consumer          │
    │                                         │               │
    │                                         ▼               │
    │                      LocalWikiDatabaseService ▶ Store   │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Load the SQL query set and create the pooled engine
    3. Create the Pages table if it does not exist
    4. Bind the Database Service on the bus; expose a proxy to handlers

    Shutdown:
    1. Unregister bus consumers (queued requests fail with DB_ERROR)
    2. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wikiapp import __version__
from wikiapp.config import Settings, settings as default_settings
from wikiapp.database import create_wiki_engine, dispose_engine, load_sql_queries
from wikiapp.eventbus import EventBus
from wikiapp.exceptions import DatabaseError, ReplyError, WikiError
from wikiapp.middleware.logging import RequestLoggingMiddleware
from wikiapp.middleware.request_id import (
    RequestIdLogFilter,
    RequestIDMiddleware,
    request_id_var,
)
from wikiapp.routes import health, pages
from wikiapp.schemas.page import ErrorResponse
from wikiapp.services.database_service import (
    LocalWikiDatabaseService,
    bind_database_service,
    create_proxy,
)
from wikiapp.services.page_store import PageStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    Route all logging to stdout with the current request ID on each line.

    Called once per lifespan, before the engine or the bus exist, so their
    startup messages use the same format. Records logged outside a request
    show "-" in place of the ID.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdLogFilter())
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # uvicorn's own access log duplicates wikiapp.access
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Prepare the database and the Database Service, then tear them down.

    A failure to create the Pages table aborts startup: the server must not
    accept requests it cannot serve.
    """
    config: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config.log_level)
    logger.info("Wiki backend %s starting up...", __version__)

    queries = load_sql_queries(config.sql_queries_file)
    engine = create_wiki_engine(config)
    store = PageStore(engine, queries)

    try:
        await store.create_table()
    except DatabaseError:
        logger.error("Database preparation failed; shutting down")
        await dispose_engine(engine)
        raise

    bus = EventBus(default_timeout=config.wikidb_call_timeout)
    local_service = LocalWikiDatabaseService(store, timeout=config.wikidb_call_timeout)
    bind_database_service(bus, config.wikidb_queue, local_service)

    app.state.bus = bus
    app.state.wiki_service = create_proxy(
        bus, config.wikidb_queue, timeout=config.wikidb_call_timeout
    )
    logger.info("Database Service bound on %s", config.wikidb_queue)

    yield  # Application runs here

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Wiki backend shutting down...")
    await bus.close()
    await dispose_engine(engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(error: str, message: str, failure_code: Optional[int] = None) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        failure_code=failure_code,
        request_id=request_id_var.get("") or None,
    )
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to HTTP responses.

    Handler hierarchy (all 500, body is an ErrorResponse):
        ReplyError      → database_service_error, with the failure code (WARNING)
        WikiError       → server_error (DatabaseError when the store is used directly)
        Exception       → internal_server_error, traceback logged
    """

    @app.exception_handler(ReplyError)
    async def handle_reply_error(request: Request, exc: ReplyError):
        # Store and bus failures are logged at ERROR where they are detected
        logger.warning(
            "%s %s: Database Service failed (code=%s, %s): %s",
            request.method,
            request.url.path,
            exc.failure_code,
            exc.failure_type.value,
            exc.message,
        )
        return _error_response("database_service_error", exc.message, int(exc.failure_code))

    @app.exception_handler(WikiError)
    async def handle_wiki_error(request: Request, exc: WikiError):
        logger.error("%s: %s | Context: %s", type(exc).__name__, exc.message, exc.context)
        return _error_response("server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", exc, exc_info=True)
        return _error_response("internal_server_error", "An unexpected error occurred.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings to run with; defaults to the environment-backed
                      singleton. Tests pass their own (e.g. a temporary
                      database URL).
    """
    app = FastAPI(
        title="Wiki API",
        description="Markdown wiki backed by a relational Pages table.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = app_settings or default_settings

    # Middleware executes in REVERSE order of addition:
    # RequestID runs first, then access logging.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(pages.router)
    app.include_router(health.router)

    return app


# uvicorn expects `wikiapp.main:app` to be importable
app = create_app()


def main() -> None:
    """Console entry point: serve the wiki with uvicorn."""
    uvicorn.run(
        "wikiapp.main:app",
        host=default_settings.http_server_host,
        port=default_settings.http_server_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
