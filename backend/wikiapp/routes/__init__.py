# Routes package init
"""
Wiki Backend: HTTP Routes Package
=================================

What:  HTTP route handlers that accept requests and return responses.
How:   Each route module handles one group of endpoints and talks to the
       Database Service through the dependency in deps.py.

Route Inventory:
    - pages.py:   GET  /                 (list page names)
                  GET  /wiki/{page:path} (view one page)
                  POST /create           (redirect to a page to create)
                  POST /save             (create or update a page)
                  POST /delete           (delete a page)
                  GET  /backup           (export every page)
    - health.py:  GET  /alive            (liveness probe)
                  GET  /health           (Database Service health check)
"""
