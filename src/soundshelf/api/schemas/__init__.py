"""Pydantic request/response schemas of the HTTP API."""
