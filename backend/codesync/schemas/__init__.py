"""Pydantic request/response schemas. Field names are camelCase on the wire."""
