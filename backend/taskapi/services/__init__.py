# Services package init
"""
Task API — Services Layer
==========================

Business logic between routes (HTTP) and the database (persistence).

Service Inventory:
    - TaskService: task CRUD and the title rules
"""
