# Services package init
"""
Wiki Backend: Services Layer
============================

What:  Page persistence and the Database Service facade in front of it.

Service Inventory:
    - PageStore (page_store.py): CRUD over the Pages table
    - WikiDatabaseService (service_base.py): abstract capability set
    - LocalWikiDatabaseService (database_service.py): in-process facade
    - WikiDatabaseConsumer (database_service.py): bus message dispatcher
    - WikiDatabaseServiceProxy (database_service.py): bus client
"""
