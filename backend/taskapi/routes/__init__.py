# Routes package init
"""
Task API — API Routes Package
==============================

Route Inventory:
    - index.py:   GET    /                     (endpoint directory)
    - health.py:  GET    /health               (service health check)
    - tasks.py:   GET    /api/tasks            (list tasks)
                  POST   /api/tasks            (create task)
                  PUT    /api/tasks/{id}       (update task)
                  DELETE /api/tasks/{id}       (delete task)

Routes stay thin: parse the request, call TaskService, return the envelope.
"""
