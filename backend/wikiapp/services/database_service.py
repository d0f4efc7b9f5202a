"""
Wiki Backend: Database Service (in-process, bus consumer, bus proxy)
====================================================================

What:  The three pieces that make the Database Service reachable both
       directly and over the event bus.
How:
    LocalWikiDatabaseService  wraps PageStore; bounds every call with a
                              timeout and turns DatabaseError into
                              ReplyError(DB_ERROR).
    WikiDatabaseConsumer      reads the `action` header of a bus message,
                              validates the body, calls a service and replies
                              with the dumped result or fail(code, message).
    WikiDatabaseServiceProxy  implements the same interface by encoding each
                              call as a bus request and decoding the reply.
Who:   Wired together by the application lifespan:
           store → LocalWikiDatabaseService → WikiDatabaseConsumer (on bus)
           routes → WikiDatabaseServiceProxy → bus

Consumer state machine (per message):
    received ─▶ dispatched ─▶ store call in flight ─▶ replied(success | failure)
        │
        └──────▶ replied(NO_ACTION_SPECIFIED | BAD_ACTION)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from wikiapp.eventbus import EventBus, Message, MessageConsumer
from wikiapp.exceptions import DatabaseError, ReplyError, ReplyFailureType
from wikiapp.schemas.messages import (
    ACTION_HEADER,
    Action,
    CreatePageRequest,
    DeletePageRequest,
    ErrorCodes,
    GetPageRequest,
    PageNamesReply,
    PagesDataReply,
    SavePageRequest,
    build_request,
)
from wikiapp.schemas.page import PageLookup, PageRecord
from wikiapp.services.page_store import PageStore
from wikiapp.services.service_base import WikiDatabaseService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# In-Process Implementation
# ══════════════════════════════════════════════════════════════════════════

class LocalWikiDatabaseService(WikiDatabaseService):
    """
    Database Service running in the caller's event loop.

    Error Handling:
        DatabaseError (already logged by the store) → ReplyError(DB_ERROR)
        store call exceeding `timeout` seconds       → ReplyError(DB_ERROR, TIMEOUT)
        empty page title                             → ReplyError(BAD_ACTION)
    """

    def __init__(self, store: PageStore, timeout: float = 5.0):
        self._store = store
        self._timeout = timeout

    async def _call(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except DatabaseError as e:
            raise ReplyError(
                failure_code=ErrorCodes.DB_ERROR,
                message=e.message,
                context=dict(e.context),
            ) from e
        except asyncio.TimeoutError:
            logger.error("%s did not complete within %.1fs", operation, self._timeout)
            raise ReplyError(
                failure_code=ErrorCodes.DB_ERROR,
                message=f"{operation} timed out after {self._timeout}s",
                failure_type=ReplyFailureType.TIMEOUT,
                context={"operation": operation},
            ) from None

    async def fetch_all_pages(self) -> List[str]:
        return await self._call("fetch_all_pages", self._store.list_page_names())

    async def fetch_page(self, name: str) -> PageLookup:
        return await self._call("fetch_page", self._store.get_page(name))

    async def create_page(self, title: str, markdown: str) -> None:
        request = build_request(CreatePageRequest, title=title, markdown=markdown)
        await self._call("create_page", self._store.create_page(request.title, request.markdown))

    async def save_page(self, page_id: int, markdown: str) -> None:
        await self._call("save_page", self._store.save_page(page_id, markdown))

    async def delete_page(self, page_id: int) -> None:
        await self._call("delete_page", self._store.delete_page(page_id))

    async def fetch_all_pages_data(self) -> List[PageRecord]:
        return await self._call("fetch_all_pages_data", self._store.list_all_page_records())


# ══════════════════════════════════════════════════════════════════════════
# Bus Consumer
# ══════════════════════════════════════════════════════════════════════════

class WikiDatabaseConsumer:
    """
    Decodes Database Service messages and dispatches them to a service.

    Every message ends with exactly one reply:
        - no `action` header          → fail(NO_ACTION_SPECIFIED)
        - unknown action              → fail(BAD_ACTION)
        - body fails validation       → fail(BAD_ACTION)
        - service raises ReplyError   → fail(<its code>)
        - otherwise                   → reply(<dumped result>)
    """

    def __init__(self, service: WikiDatabaseService):
        self._service = service
        self._handlers: Dict[Action, Callable[[Any], Awaitable[Any]]] = {
            Action.ALL_PAGES: self._fetch_all_pages,
            Action.GET_PAGE: self._fetch_page,
            Action.CREATE_PAGE: self._create_page,
            Action.SAVE_PAGE: self._save_page,
            Action.DELETE_PAGE: self._delete_page,
            Action.ALL_PAGES_DATA: self._fetch_all_pages_data,
        }

    async def on_message(self, message: Message) -> None:
        action = message.headers.get(ACTION_HEADER)
        if not action:
            logger.error(
                "No action header specified for message with headers %s and body %s",
                message.headers,
                message.body,
            )
            message.fail(ErrorCodes.NO_ACTION_SPECIFIED, "No action header specified")
            return

        try:
            handler = self._handlers[Action(action)]
        except ValueError:
            logger.error("Bad action %r in message %s", action, message.correlation_id)
            message.fail(ErrorCodes.BAD_ACTION, f"Bad action: {action}")
            return

        logger.info("%s [%s]", action, message.correlation_id)
        try:
            result = await handler(message.body)
        except ValidationError as e:
            logger.error("Invalid body for %s in message %s: %s", action, message.correlation_id, e)
            message.fail(ErrorCodes.BAD_ACTION, f"Invalid body for action {action}: {e}")
        except ReplyError as e:
            message.fail(e.failure_code, e.message)
        else:
            message.reply(result)

    async def _fetch_all_pages(self, body: Any) -> Dict[str, Any]:
        pages = await self._service.fetch_all_pages()
        return PageNamesReply(pages=pages).model_dump(mode="json")

    async def _fetch_page(self, body: Any) -> Dict[str, Any]:
        request = GetPageRequest.model_validate(body)
        lookup = await self._service.fetch_page(request.page)
        return lookup.model_dump(mode="json")

    async def _create_page(self, body: Any) -> None:
        request = CreatePageRequest.model_validate(body)
        await self._service.create_page(request.title, request.markdown)

    async def _save_page(self, body: Any) -> None:
        request = SavePageRequest.model_validate(body)
        await self._service.save_page(request.id, request.markdown)

    async def _delete_page(self, body: Any) -> None:
        request = DeletePageRequest.model_validate(body)
        await self._service.delete_page(request.id)

    async def _fetch_all_pages_data(self, body: Any) -> Dict[str, Any]:
        records = await self._service.fetch_all_pages_data()
        return PagesDataReply(pages=records).model_dump(mode="json")


# ══════════════════════════════════════════════════════════════════════════
# Bus Proxy
# ══════════════════════════════════════════════════════════════════════════

class WikiDatabaseServiceProxy(WikiDatabaseService):
    """
    Client side of the Database Service on the event bus.

    Arguments that cannot form a request body fail with BAD_ACTION before
    anything is sent.

    Bus failures that never reached the consumer (no handler bound, reply
    deadline exceeded) are reported as ReplyError(DB_ERROR) so callers only
    deal with the ErrorCodes set; failure_type keeps the original cause.
    """

    def __init__(self, bus: EventBus, address: str, timeout: Optional[float] = None):
        self._bus = bus
        self._address = address
        self._timeout = timeout

    @property
    def address(self) -> str:
        return self._address

    async def _send(self, action: Action, body: Optional[Dict[str, Any]] = None) -> Any:
        try:
            return await self._bus.request(
                self._address,
                body or {},
                headers={ACTION_HEADER: action.value},
                timeout=self._timeout,
            )
        except ReplyError as e:
            if e.failure_type is ReplyFailureType.RECIPIENT:
                raise
            logger.error("Database Service %s failed on the bus: %s", action.value, e.message)
            raise ReplyError(
                failure_code=ErrorCodes.DB_ERROR,
                message=e.message,
                failure_type=e.failure_type,
                context={"action": action.value, "address": self._address},
            ) from e

    async def fetch_all_pages(self) -> List[str]:
        reply = await self._send(Action.ALL_PAGES)
        return PageNamesReply.model_validate(reply).pages

    async def fetch_page(self, name: str) -> PageLookup:
        reply = await self._send(
            Action.GET_PAGE, build_request(GetPageRequest, page=name).model_dump()
        )
        return PageLookup.model_validate(reply)

    async def create_page(self, title: str, markdown: str) -> None:
        await self._send(
            Action.CREATE_PAGE,
            build_request(CreatePageRequest, title=title, markdown=markdown).model_dump(),
        )

    async def save_page(self, page_id: int, markdown: str) -> None:
        await self._send(
            Action.SAVE_PAGE,
            build_request(SavePageRequest, id=page_id, markdown=markdown).model_dump(),
        )

    async def delete_page(self, page_id: int) -> None:
        await self._send(
            Action.DELETE_PAGE, build_request(DeletePageRequest, id=page_id).model_dump()
        )

    async def fetch_all_pages_data(self) -> List[PageRecord]:
        reply = await self._send(Action.ALL_PAGES_DATA)
        return PagesDataReply.model_validate(reply).pages


# ══════════════════════════════════════════════════════════════════════════
# Binding Helpers
# ══════════════════════════════════════════════════════════════════════════

def bind_database_service(
    bus: EventBus, address: str, service: WikiDatabaseService
) -> MessageConsumer:
    """Expose `service` on the bus at `address`."""
    consumer = WikiDatabaseConsumer(service)
    return bus.consumer(
        address,
        consumer.on_message,
        unhandled_failure_code=ErrorCodes.DB_ERROR,
    )


def create_proxy(
    bus: EventBus, address: str, timeout: Optional[float] = None
) -> WikiDatabaseServiceProxy:
    """Build a client for the Database Service bound at `address`."""
    return WikiDatabaseServiceProxy(bus, address, timeout=timeout)
