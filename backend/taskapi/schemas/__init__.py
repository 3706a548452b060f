# Schemas package init
"""Pydantic request/response contracts."""
