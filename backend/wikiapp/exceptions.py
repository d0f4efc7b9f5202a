"""
Wiki Backend: Custom Exception Hierarchy
========================================

What:  Application-specific exceptions for the store, the message bus and the
       Database Service boundary.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) turn them into
       structured JSON error responses.
Who:   Raised by the page store, the event bus and the service facade;
       caught by the bus consumer and by the FastAPI handlers.

Exception Hierarchy:
    WikiError (base)
    ├── ConfigurationError          → startup failure (bad SQL query file)
    ├── DatabaseError               → store failure, becomes DB_ERROR on the bus
    ├── ReplyError                  → a facade or bus call completed with a failure
    └── MessageAlreadyRepliedError  → second completion of the same message

Failure codes:
    ReplyError.failure_code carries the numeric code chosen by the recipient
    (see wikiapp.schemas.messages.ErrorCodes). Bus-level failures that never
    reached a recipient (timeout, no handler) use BUS_FAILURE_CODE.
"""

from enum import Enum
from typing import Any, Dict, Optional

# Failure code used by the bus itself when no recipient produced one
BUS_FAILURE_CODE = -1


class ReplyFailureType(str, Enum):
    """Where a failed request/reply exchange went wrong."""

    RECIPIENT = "recipient"      # the consumer replied with fail(code, message)
    TIMEOUT = "timeout"          # no reply within the caller's deadline
    NO_HANDLERS = "no_handlers"  # nothing is listening on the address


class WikiError(Exception):
    """
    Base exception for all wiki application errors.

    Attributes:
        message:  Human-readable error description
        context:  Additional debug info (logged, never rendered to users)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(WikiError):
    """Raised at startup when configuration cannot be turned into a runnable setup."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(WikiError):
    """
    Raised when a page store operation fails.

    What:    Connectivity failure, constraint violation or query error.
    When:    Raised by PageStore after logging the underlying driver error.
    Message: The driver's message. It is the only detail that crosses the
             Database Service boundary; exception objects and tracebacks stay
             in the store process.
    """

    def __init__(
        self,
        message: str = "A database error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ReplyError(WikiError):
    """
    Raised to the caller of a request/reply exchange that ended in failure.

    Attributes:
        failure_code: Numeric code from the closed ErrorCodes set, or
                      BUS_FAILURE_CODE for raw bus failures
        failure_type: RECIPIENT, TIMEOUT or NO_HANDLERS

    Example:
        try:
            await service.create_page("Home", "# Hi")
        except ReplyError as e:
            if e.failure_code == ErrorCodes.DB_ERROR:
                ...
    """

    def __init__(
        self,
        failure_code: int,
        message: str,
        failure_type: ReplyFailureType = ReplyFailureType.RECIPIENT,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["failure_code"] = failure_code
        ctx["failure_type"] = failure_type.value
        super().__init__(message=message, context=ctx)
        self.failure_code = failure_code
        self.failure_type = failure_type

    def __repr__(self) -> str:
        return (
            f"ReplyError(failure_code={self.failure_code}, "
            f"failure_type={self.failure_type.value!r}, message={self.message!r})"
        )


class MessageAlreadyRepliedError(WikiError):
    """Raised when reply() or fail() is called on a message that already completed."""

    def __init__(self, correlation_id: str):
        super().__init__(
            message=f"Message {correlation_id} has already been replied to",
            context={"correlation_id": correlation_id},
        )
        self.correlation_id = correlation_id
