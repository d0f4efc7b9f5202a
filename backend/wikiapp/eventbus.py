"""
Wiki Backend: In-Process Event Bus
==================================

What:  Addressed request/reply messaging between components of the backend.
How:   Each registered address owns a MessageConsumer: an asyncio.Queue
       drained by a single worker loop, which hands every message to the
       consumer's handler in its own task. A request creates a Message with a
       fresh correlation id and a one-shot reply future owned by the caller,
       enqueues it, and waits for the future with a deadline.
Who:   The Database Service consumer registers on the bus; the Database
       Service proxy sends requests to it.

Request lifecycle:
    ┌──────────┐   enqueue   ┌──────────────┐  create_task  ┌───────────┐
    │  caller  │────────────▶│ worker loop  │──────────────▶│  handler  │
    │ request()│             │ (1 per addr) │               │ (per msg) │
    └────▲─────┘             └──────────────┘               └─────┬─────┘
         │            reply(body) / fail(code, message)           │
         └────────────────────────────────────────────────────────┘

Exactly-once completion:
    - reply()/fail() on a completed message raise MessageAlreadyRepliedError.
    - A completion arriving after the caller timed out is dropped.
    - A handler that raises, or returns without completing the message, has
      the message failed with the consumer's unhandled_failure_code.
    - Unregistering a consumer fails every message still waiting in its queue.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from wikiapp.exceptions import (
    BUS_FAILURE_CODE,
    MessageAlreadyRepliedError,
    ReplyError,
    ReplyFailureType,
)

logger = logging.getLogger(__name__)

MessageHandler = Callable[["Message"], Awaitable[None]]


@dataclass
class Message:
    """
    One request travelling over the bus.

    Attributes:
        address:        Destination the message was sent to
        body:           JSON-compatible payload (dict, list, str, numbers, None)
        headers:        String metadata such as the `action` tag
        correlation_id: Unique id tying the reply back to this request
    """

    address: str
    body: Any
    headers: Dict[str, str]
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    _reply: Optional[asyncio.Future] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._reply is None:
            self._reply = asyncio.get_running_loop().create_future()

    @property
    def replied(self) -> bool:
        return self._reply.done()

    def _complete(self) -> bool:
        if self._reply.cancelled():
            logger.debug(
                "Dropping reply to %s on %s: the sender stopped waiting",
                self.correlation_id,
                self.address,
            )
            return False
        if self._reply.done():
            raise MessageAlreadyRepliedError(self.correlation_id)
        return True

    def reply(self, body: Any = None) -> None:
        """Complete the request successfully with `body`."""
        if self._complete():
            self._reply.set_result(body)

    def fail(self, failure_code: int, message: str) -> None:
        """Complete the request with a failure the sender receives as ReplyError."""
        if self._complete():
            self._reply.set_exception(
                ReplyError(
                    failure_code=failure_code,
                    message=message,
                    failure_type=ReplyFailureType.RECIPIENT,
                    context={"address": self.address, "correlation_id": self.correlation_id},
                )
            )


class MessageConsumer:
    """
    The single worker loop behind one bus address.

    Created by EventBus.consumer(); not meant to be instantiated directly.
    """

    def __init__(
        self,
        bus: "EventBus",
        address: str,
        handler: MessageHandler,
        unhandled_failure_code: int,
    ):
        self._bus = bus
        self.address = address
        self._handler = handler
        self._unhandled_failure_code = unhandled_failure_code
        self._queue: "asyncio.Queue[Message]" = asyncio.Queue()
        self._inflight: Set[asyncio.Task] = set()
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        """Messages received but not yet dispatched."""
        return self._queue.qsize()

    @property
    def inflight(self) -> int:
        """Messages dispatched whose handler has not finished."""
        return len(self._inflight)

    def start(self) -> None:
        self._worker = asyncio.create_task(
            self._run(), name=f"bus-consumer:{self.address}"
        )

    def deliver(self, message: Message) -> None:
        self._queue.put_nowait(message)

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            task = asyncio.create_task(self._dispatch(message))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _dispatch(self, message: Message) -> None:
        try:
            await self._handler(message)
        except Exception as e:
            logger.error(
                "Handler for %s raised while processing %s: %s",
                self.address,
                message.correlation_id,
                e,
                exc_info=True,
            )
            if not message.replied:
                message.fail(self._unhandled_failure_code, str(e) or type(e).__name__)
            return

        if not message.replied:
            logger.error(
                "Handler for %s returned without replying to %s",
                self.address,
                message.correlation_id,
            )
            message.fail(self._unhandled_failure_code, "Handler did not reply")

    async def unregister(self) -> None:
        """
        Stop receiving, fail queued messages, and wait for in-flight handlers.
        """
        self._bus._remove(self)
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        while not self._queue.empty():
            message = self._queue.get_nowait()
            if not message.replied:
                message.fail(self._unhandled_failure_code, f"Consumer at {self.address} was unregistered")

        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        logger.info("Unregistered bus consumer at %s", self.address)


class EventBus:
    """
    In-process asynchronous message bus.

    Usage:
        bus = EventBus(default_timeout=5.0)
        bus.consumer("echo", handler, unhandled_failure_code=500)
        reply = await bus.request("echo", {"text": "hi"}, headers={"action": "echo"})
        await bus.close()
    """

    def __init__(self, default_timeout: float = 30.0):
        self.default_timeout = default_timeout
        self._consumers: Dict[str, MessageConsumer] = {}

    def consumer(
        self,
        address: str,
        handler: MessageHandler,
        *,
        unhandled_failure_code: int = BUS_FAILURE_CODE,
    ) -> MessageConsumer:
        """
        Register `handler` as the consumer of `address` and start its worker loop.

        Must be called from a running event loop.

        Raises:
            ValueError: Another consumer is already registered at `address`.
        """
        if address in self._consumers:
            raise ValueError(f"A consumer is already registered at '{address}'")
        consumer = MessageConsumer(self, address, handler, unhandled_failure_code)
        self._consumers[address] = consumer
        consumer.start()
        logger.info("Registered bus consumer at %s", address)
        return consumer

    def _remove(self, consumer: MessageConsumer) -> None:
        if self._consumers.get(consumer.address) is consumer:
            del self._consumers[consumer.address]

    def has_consumer(self, address: str) -> bool:
        return address in self._consumers

    async def request(
        self,
        address: str,
        body: Any = None,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Send a request to `address` and wait for its reply.

        Returns:
            The body passed to Message.reply().

        Raises:
            ReplyError: RECIPIENT failure with the consumer's code,
                        TIMEOUT when no reply arrives within `timeout` seconds,
                        NO_HANDLERS when nothing is registered at `address`.
        """
        consumer = self._consumers.get(address)
        if consumer is None:
            raise ReplyError(
                failure_code=BUS_FAILURE_CODE,
                message=f"No handlers for address {address}",
                failure_type=ReplyFailureType.NO_HANDLERS,
                context={"address": address},
            )

        message = Message(address=address, body=body, headers=dict(headers or {}))
        wait = self.default_timeout if timeout is None else timeout
        logger.debug(
            "Sending %s to %s with headers %s", message.correlation_id, address, message.headers
        )
        consumer.deliver(message)

        try:
            return await asyncio.wait_for(message._reply, timeout=wait)
        except asyncio.TimeoutError:
            raise ReplyError(
                failure_code=BUS_FAILURE_CODE,
                message=(
                    f"Timed out after waiting {wait}s for a reply. "
                    f"address: {address}, correlation_id: {message.correlation_id}"
                ),
                failure_type=ReplyFailureType.TIMEOUT,
                context={"address": address, "correlation_id": message.correlation_id},
            ) from None

    async def close(self) -> None:
        """Unregister every consumer."""
        for consumer in list(self._consumers.values()):
            await consumer.unregister()
