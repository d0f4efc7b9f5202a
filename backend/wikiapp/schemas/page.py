"""
Wiki Backend: Page & HTTP Response Schemas
==========================================

What:  Pydantic models for page data and for the JSON the HTTP layer returns.
How:   The store and the Database Service return PageLookup / PageRecord;
       route handlers wrap results in the response models below, which
       FastAPI serializes and documents in OpenAPI.
Who:   Used by the page store, the service facade and the route handlers.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Domain Records: what the store and the Database Service return
# ══════════════════════════════════════════════════════════════════════════


class PageLookup(BaseModel):
    """
    Result of looking a page up by name.

    A missing page is a normal result, not an error: found=False, id=-1 and
    empty content. Callers treat it as "new page".
    """
    found: bool = Field(description="Whether a row with this name exists")
    id: int = Field(default=-1, description="Store-assigned page id, -1 when not found")
    content: str = Field(default="", description="Markdown source of the page")


class PageRecord(BaseModel):
    """One page as exported by the bulk backup query."""
    name: str = Field(description="Unique page name")
    content: str = Field(description="Markdown source of the page")


# ══════════════════════════════════════════════════════════════════════════
# Response Models: what the HTTP layer returns to clients
# ══════════════════════════════════════════════════════════════════════════


class IndexResponse(BaseModel):
    """Returned by GET /: every page name, sorted ascending."""
    title: str = Field(default="Wiki home")
    pages: List[str] = Field(description="Page names in ascending order")


class PageView(BaseModel):
    """
    Returned by GET /wiki/{page:path}.

    Field names follow the form contract of the page editor: the `id` and
    `newPage` values are posted back unchanged to POST /save.
    """
    title: str = Field(description="Page name from the URL")
    id: int = Field(description="Page id, -1 for a page that does not exist yet")
    newPage: str = Field(description="'yes' when the page does not exist yet, else 'no'")
    rawContent: str = Field(description="Markdown source shown in the editor")
    content: str = Field(description="Markdown rendered to HTML")
    timestamp: str = Field(description="Server time the page was rendered")


class BackupFile(BaseModel):
    name: str
    content: str


class BackupPayload(BaseModel):
    """
    Returned by GET /backup.

    The shape matches a public plaintext snippet, ready to be uploaded to a
    snippet service by an external tool.
    """
    files: List[BackupFile] = Field(description="One entry per page")
    language: str = Field(default="plaintext")
    title: str = Field(default="wiki-backup")
    public: bool = Field(default=True)


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all failures.

    Example:
        {
            "error": "database_service_error",
            "message": "UNIQUE constraint failed: Pages.Name",
            "failure_code": 2,
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    failure_code: Optional[int] = Field(default=None, description="Database Service failure code")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database Service status: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
