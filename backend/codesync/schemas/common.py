"""
CodeSync Backend — Shared Schema Pieces
========================================

What:  The camelCase base model plus envelopes shared by several resources
       (errors, pagination, plain messages, health).
Why:   The JSON API speaks camelCase while the Python side stays snake_case.
       Every schema inherits from CamelModel so the conversion happens in one
       place: requests accept either spelling, responses are always camelCase.
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


class MessageResponse(CamelModel):
    message: str


class ErrorResponse(BaseModel):
    """
    What:  Standardized error envelope for every non-2xx response.
    Why:   Clients always find a human-readable `message`; `error` is a stable
           machine code and `request_id` correlates with server logs.

    Example:
        {
            "error": "not_found",
            "message": "Snippet not found",
            "details": null,
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Field errors or extra context")
    request_id: Optional[str] = Field(default=None, description="Correlates with X-Request-ID")


class HealthResponse(CamelModel):
    status: str = Field(description="healthy, degraded or unhealthy")
    version: str
    database: str
    image_host: str
    cache: str
    oauth_providers: List[str]
    uptime_seconds: float
