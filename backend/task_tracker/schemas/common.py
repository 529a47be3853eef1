"""Common reusable schema primitives."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field
from sqlmodel import SQLModel

from task_tracker.core.time import to_naive_utc

RUNTIME_ANNOTATION_TYPES = (datetime,)


class OkResponse(SQLModel):
    """Standard success response payload."""

    ok: bool = Field(default=True, description="Always true on success.")
    message: str | None = None


def naive_utc_or_none(value: datetime | None) -> datetime | None:
    """Normalize inbound timestamps to the naive-UTC storage convention."""
    if value is None:
        return None
    return to_naive_utc(value)
