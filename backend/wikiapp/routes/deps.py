"""
Wiki Backend: Route Dependencies
================================

What:  FastAPI dependency returning the Database Service for a request.
How:   The application lifespan stores the service on app.state; handlers
       receive it through Depends(get_wiki_service), and tests can replace it
       with app.dependency_overrides.
"""

from fastapi import Request

from wikiapp.services.service_base import WikiDatabaseService


def get_wiki_service(request: Request) -> WikiDatabaseService:
    return request.app.state.wiki_service
