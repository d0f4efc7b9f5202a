"""
Wiki Backend: Application Package Initializer
=============================================

What: Marks the `wikiapp` directory as a Python package.
Who:  Used by uvicorn (`uvicorn wikiapp.main:app`), pytest, and the routes.

Architecture Note:
    The backend is layered around an internal asynchronous message bus:

    ┌─────────────────────────────────────┐
    │      Routes (HTTP, FastAPI)         │  ← form decoding, redirects, rendering
    ├─────────────────────────────────────┤
    │   WikiDatabaseServiceProxy          │  ← encodes calls as bus requests
    ├─────────────────────────────────────┤
    │   EventBus (request / reply)        │  ← correlation ids, one-shot replies
    ├─────────────────────────────────────┤
    │   WikiDatabaseConsumer              │  ← action dispatch, error codes
    ├─────────────────────────────────────┤
    │   LocalWikiDatabaseService          │  ← timeouts, failure translation
    ├─────────────────────────────────────┤
    │   PageStore (async SQLAlchemy)      │  ← the Pages table, pooled
    └─────────────────────────────────────┘

    Route handlers only ever see the abstract WikiDatabaseService, so the
    proxy and the in-process implementation are interchangeable.
"""

__version__ = "1.0.0"
