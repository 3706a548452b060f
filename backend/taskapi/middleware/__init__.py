# Middleware package init
"""
Task API — Middleware Package
==============================

Middleware Chain:
    Request → [Request ID] → [Access Log] → Route Handler

    Request ID runs first so the access log line and any error body carry
    the same correlation ID.
"""
