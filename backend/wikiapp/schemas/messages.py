"""
Wiki Backend: Database Service Message Protocol
===============================================

What:  The wire contract of the Database Service on the event bus.
How:   Every request is a bus message whose `action` header names the
       operation and whose body is the JSON-compatible dump of one of the
       request models below. Successful replies carry the dump of a reply
       model (or None); failures carry a code from ErrorCodes plus a message.
Who:   Encoded by WikiDatabaseServiceProxy, decoded by WikiDatabaseConsumer.

Actions:
    all-pages       {}                          → PageNamesReply
    get-page        GetPageRequest              → PageLookup
    create-page     CreatePageRequest           → None
    save-page       SavePageRequest             → None
    delete-page     DeletePageRequest           → None
    all-pages-data  {}                          → PagesDataReply

Because bodies are plain dicts of JSON types, a message survives
json.dumps()/json.loads() unchanged, so a consumer in another process only
needs a transport in front of the same decoding.
"""

from enum import Enum, IntEnum
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from wikiapp.exceptions import ReplyError
from wikiapp.schemas.page import PageRecord

# Message header carrying the action tag
ACTION_HEADER = "action"


class Action(str, Enum):
    ALL_PAGES = "all-pages"
    GET_PAGE = "get-page"
    CREATE_PAGE = "create-page"
    SAVE_PAGE = "save-page"
    DELETE_PAGE = "delete-page"
    ALL_PAGES_DATA = "all-pages-data"


class ErrorCodes(IntEnum):
    """
    Closed set of failure codes a Database Service call can end with.

    NO_ACTION_SPECIFIED and BAD_ACTION are protocol errors: the request was
    malformed and never reached the store. DB_ERROR means the store was
    reached (or the call timed out) and the operation failed there.
    """
    NO_ACTION_SPECIFIED = 0
    BAD_ACTION = 1
    DB_ERROR = 2


class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GetPageRequest(_Body):
    page: str = Field(description="Exact page name to look up")


class CreatePageRequest(_Body):
    title: str = Field(min_length=1, description="Name of the new page")
    markdown: str = Field(description="Initial Markdown content")


class SavePageRequest(_Body):
    id: int = Field(description="Id of the page to update")
    markdown: str = Field(description="Replacement Markdown content")


class DeletePageRequest(_Body):
    id: int = Field(description="Id of the page to delete")


RequestT = TypeVar("RequestT", bound="_Body")


class PageNamesReply(_Body):
    pages: List[str]


class PagesDataReply(_Body):
    pages: List[PageRecord]


def build_request(model: Type[RequestT], **fields: Any) -> RequestT:
    """
    Validate call arguments into a request body.

    Raises:
        ReplyError(BAD_ACTION): the arguments do not form a valid body, the
                                same answer the consumer gives for it.
    """
    try:
        return model(**fields)
    except ValidationError as e:
        raise ReplyError(
            failure_code=ErrorCodes.BAD_ACTION,
            message=f"Invalid {model.__name__}: {e}",
            context={"fields": sorted(fields)},
        ) from e
