"""Structured error payload schema used by API responses."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    """Error envelope returned for every non-2xx response."""

    detail: str | dict[str, object] | list[object] = Field(
        description="Human-readable message, or validation error details.",
        examples=["Task not found", [{"loc": ["body", "title"], "msg": "Field required"}]],
    )
    code: str | None = Field(
        default=None,
        description="Machine-readable error code for domain errors.",
        examples=["not_found", "forbidden", "invalid_state"],
    )
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier injected by middleware.",
    )
