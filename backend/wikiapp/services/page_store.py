"""
Wiki Backend: Page Store
========================

What:  Persistence of wiki pages in the single `Pages` table.
How:   Runs the statements of an injected SqlQueries set over connections
       borrowed from the async engine's pool. Reads use a plain connection;
       writes run inside engine.begin() so they commit on success and roll
       back on error.
Who:   Owned by LocalWikiDatabaseService. No other component touches the table.
When:  create_table() once at startup; the other operations per request.

Error Handling Strategy:
    Every SQLAlchemyError (connection refused, constraint violation, bad SQL)
    is logged here, once, and re-raised as DatabaseError carrying the driver
    message. Nothing is retried.

Zero-row writes:
    save_page() and delete_page() on an id that does not exist affect zero
    rows and still succeed. The condition is logged at WARNING so it stays
    visible without changing the contract callers rely on.
"""

import logging
from typing import List

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from wikiapp.database import SqlQueries
from wikiapp.exceptions import DatabaseError
from wikiapp.schemas.page import PageLookup, PageRecord

logger = logging.getLogger(__name__)


class PageStore:
    """
    CRUD operations over the Pages table.

    Holds no page state of its own: the engine (with its pool) and the
    immutable query set are the only attributes, so one instance is safely
    shared by concurrent callers.
    """

    def __init__(self, engine: AsyncEngine, queries: SqlQueries):
        self._engine = engine
        self._queries = queries

    @property
    def queries(self) -> SqlQueries:
        return self._queries

    def _fail(self, operation: str, error: Exception, **context) -> DatabaseError:
        logger.error("Database query error in %s: %s", operation, error, exc_info=True)
        context["operation"] = operation
        context["error_type"] = type(error).__name__
        return DatabaseError(message=str(error), context=context)

    async def create_table(self) -> None:
        """Create the Pages table unless it already exists. Safe on every boot."""
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text(self._queries.create_pages_table))
        except SQLAlchemyError as e:
            raise self._fail("create_table", e) from e
        logger.info("Pages table ready")

    async def list_page_names(self) -> List[str]:
        """All page names, sorted ascending. An empty table yields []."""
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text(self._queries.all_pages))
                rows = result.all()
        except SQLAlchemyError as e:
            raise self._fail("list_page_names", e) from e
        return sorted(row[0] for row in rows)

    async def get_page(self, name: str) -> PageLookup:
        """
        Look a page up by exact name.

        Returns:
            PageLookup(found=True, id, content) for an existing page, or
            PageLookup(found=False) when no row matches.
        """
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text(self._queries.get_page), {"name": name})
                row = result.first()
        except SQLAlchemyError as e:
            raise self._fail("get_page", e, name=name) from e

        if row is None:
            return PageLookup(found=False)
        return PageLookup(found=True, id=row[0], content=row[1] or "")

    async def create_page(self, name: str, content: str) -> None:
        """
        Insert a new page.

        Raises:
            DatabaseError: among others when `name` is already taken; the
                           unique constraint decides, so two racing creates
                           of the same name end with exactly one success.
        """
        try:
            async with self._engine.begin() as conn:
                await conn.execute(
                    text(self._queries.create_page),
                    {"name": name, "content": content},
                )
        except SQLAlchemyError as e:
            raise self._fail("create_page", e, name=name) from e
        logger.info("Created page '%s'", name)

    async def save_page(self, page_id: int, content: str) -> None:
        """Replace the content of page `page_id`. The name is never changed."""
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(
                    text(self._queries.save_page),
                    {"content": content, "id": page_id},
                )
        except SQLAlchemyError as e:
            raise self._fail("save_page", e, page_id=page_id) from e

        if result.rowcount == 0:
            logger.warning("save_page matched no row for id %d", page_id)
        else:
            logger.info("Saved page id %d", page_id)

    async def delete_page(self, page_id: int) -> None:
        """Delete page `page_id` immediately and irreversibly."""
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(
                    text(self._queries.delete_page),
                    {"id": page_id},
                )
        except SQLAlchemyError as e:
            raise self._fail("delete_page", e, page_id=page_id) from e

        if result.rowcount == 0:
            logger.warning("delete_page matched no row for id %d", page_id)
        else:
            logger.info("Deleted page id %d", page_id)

    async def list_all_page_records(self) -> List[PageRecord]:
        """Every page's name and content, for backups. Order is not guaranteed."""
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text(self._queries.all_pages_data))
                rows = result.all()
        except SQLAlchemyError as e:
            raise self._fail("list_all_page_records", e) from e
        return [PageRecord(name=row[0], content=row[1] or "") for row in rows]
