"""
Wiki Backend: Abstract Database Service Interface
=================================================

What:  Abstract base class defining the capability set of the Database
       Service, the only entry point for page persistence.
How:   LocalWikiDatabaseService implements it in-process over the page store;
       WikiDatabaseServiceProxy implements it by sending bus messages to a
       WikiDatabaseConsumer, which in turn calls an in-process implementation.
Who:   Route handlers depend on this interface only (see routes.deps).

Contract:
    - Every method completes exactly once: it returns its success value or
      raises ReplyError.
    - ReplyError.failure_code is always one of ErrorCodes:
      NO_ACTION_SPECIFIED, BAD_ACTION (protocol errors) or DB_ERROR (the store
      failed, or the call did not finish in time).
    - A page that does not exist is not an error: fetch_page returns
      PageLookup(found=False).
    - Implementations are safe to call concurrently; calls share nothing but
      the connection pool.
"""

from abc import ABC, abstractmethod
from typing import List

from wikiapp.schemas.page import PageLookup, PageRecord


class WikiDatabaseService(ABC):
    """Asynchronous facade over page persistence."""

    @abstractmethod
    async def fetch_all_pages(self) -> List[str]:
        """All page names in ascending order."""
        ...

    @abstractmethod
    async def fetch_page(self, name: str) -> PageLookup:
        """Look a page up by exact name; found=False when it does not exist."""
        ...

    @abstractmethod
    async def create_page(self, title: str, markdown: str) -> None:
        """
        Create a page named `title`.

        Raises:
            ReplyError(DB_ERROR): the name is taken or the store failed.
        """
        ...

    @abstractmethod
    async def save_page(self, page_id: int, markdown: str) -> None:
        """Replace the content of page `page_id`; an unknown id is a no-op success."""
        ...

    @abstractmethod
    async def delete_page(self, page_id: int) -> None:
        """Delete page `page_id`; an unknown id is a no-op success."""
        ...

    @abstractmethod
    async def fetch_all_pages_data(self) -> List[PageRecord]:
        """Name and content of every page, for backups."""
        ...
