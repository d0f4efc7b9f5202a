"""
Wiki Backend: Page Route Handlers
=================================

What:  The wiki's HTTP surface: list, view, create, save, delete and back up
       pages.
How:   Form bodies are decoded by FastAPI (Form fields); each handler makes at
       most one Database Service call and turns the result into JSON or a
       303 redirect. Service failures propagate as ReplyError and are turned
       into 500 responses by the handlers registered in main.py.
Who:   Called by the wiki's page editor forms and by browsers following the
       redirects.

Route → Database Service action:
    GET  /                 → all-pages
    GET  /wiki/{page:path} → get-page
    POST /create           → (none, redirect only)
    POST /save             → create-page when newPage == "yes", else save-page
    POST /delete           → delete-page
    GET  /backup           → all-pages-data
"""

import logging
from datetime import datetime, timezone
from urllib.parse import quote

import markdown
from fastapi import APIRouter, Depends, Form
from fastapi.responses import RedirectResponse

from wikiapp.routes.deps import get_wiki_service
from wikiapp.schemas.page import (
    BackupFile,
    BackupPayload,
    ErrorResponse,
    IndexResponse,
    PageView,
)
from wikiapp.services.service_base import WikiDatabaseService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pages"])

# Markdown shown in the editor for a page that does not exist yet
EMPTY_PAGE_MARKDOWN = "# A new page\n\nFeel-free to write in Markdown!\n"


def _page_location(name: str) -> str:
    return "/wiki/" + quote(name, safe="")


def render_markdown(source: str) -> str:
    """Render Markdown source to an HTML fragment."""
    return markdown.markdown(source)


@router.get(
    "/",
    response_model=IndexResponse,
    responses={500: {"description": "Database Service failure", "model": ErrorResponse}},
    summary="List all pages",
)
async def index(
    service: WikiDatabaseService = Depends(get_wiki_service),
) -> IndexResponse:
    pages = await service.fetch_all_pages()
    return IndexResponse(title="Wiki home", pages=pages)


@router.get(
    "/wiki/{page:path}",
    response_model=PageView,
    responses={500: {"description": "Database Service failure", "model": ErrorResponse}},
    summary="View a page",
    description=(
        "Returns the page's Markdown source and its HTML rendering. A page that "
        "does not exist yet is returned with newPage='yes', id=-1 and a default "
        "Markdown template, ready to be saved through POST /save. The page name "
        "may contain '/'."
    ),
)
async def view_page(
    page: str,
    service: WikiDatabaseService = Depends(get_wiki_service),
) -> PageView:
    """
    Render one page.

    Not found is a normal outcome here: the editor is pre-filled with
    EMPTY_PAGE_MARKDOWN and the form posts back newPage='yes'.
    """
    lookup = await service.fetch_page(page)
    raw_content = lookup.content if lookup.found else EMPTY_PAGE_MARKDOWN

    return PageView(
        title=page,
        id=lookup.id if lookup.found else -1,
        newPage="no" if lookup.found else "yes",
        rawContent=raw_content,
        content=render_markdown(raw_content),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/create", status_code=303, summary="Open a page for creation")
async def create_page(name: str = Form(default="")) -> RedirectResponse:
    """Redirect to the page named in the form, or home when the name is empty."""
    location = _page_location(name) if name else "/"
    return RedirectResponse(url=location, status_code=303)


@router.post(
    "/save",
    status_code=303,
    responses={500: {"description": "Database Service failure", "model": ErrorResponse}},
    summary="Create or update a page",
)
async def save_page(
    title: str = Form(...),
    markdown_source: str = Form(default="", alias="markdown"),
    page_id: int = Form(default=-1, alias="id"),
    new_page: str = Form(default="no", alias="newPage"),
    service: WikiDatabaseService = Depends(get_wiki_service),
) -> RedirectResponse:
    """
    Persist the editor form.

    The hidden `newPage` field decides between create-page (keyed by title)
    and save-page (keyed by id). Either way the browser is sent back to the
    page it edited.
    """
    if new_page == "yes":
        await service.create_page(title, markdown_source)
    else:
        await service.save_page(page_id, markdown_source)

    return RedirectResponse(url=_page_location(title), status_code=303)


@router.post(
    "/delete",
    status_code=303,
    responses={500: {"description": "Database Service failure", "model": ErrorResponse}},
    summary="Delete a page",
)
async def delete_page(
    page_id: int = Form(..., alias="id"),
    service: WikiDatabaseService = Depends(get_wiki_service),
) -> RedirectResponse:
    await service.delete_page(page_id)
    return RedirectResponse(url="/", status_code=303)


@router.get(
    "/backup",
    response_model=BackupPayload,
    responses={500: {"description": "Database Service failure", "model": ErrorResponse}},
    summary="Export every page",
)
async def backup(
    service: WikiDatabaseService = Depends(get_wiki_service),
) -> BackupPayload:
    records = await service.fetch_all_pages_data()
    logger.info("Exporting %d pages for backup", len(records))
    return BackupPayload(
        files=[BackupFile(name=record.name, content=record.content) for record in records],
    )
