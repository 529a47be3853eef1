"""Authentication bootstrap endpoint."""

from __future__ import annotations

from fastapi import APIRouter, status

from task_tracker.api.deps import USER_DEP
from task_tracker.models.users import User
from task_tracker.schemas.errors import ErrorResponse
from task_tracker.schemas.users import UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/bootstrap",
    response_model=UserRead,
    summary="Bootstrap Authenticated User",
    description=(
        "Resolve caller identity from the Authorization header, creating the local "
        "user record on first use, and return the profile."
    ),
    responses={
        status.HTTP_401_UNAUTHORIZED: {
            "model": ErrorResponse,
            "description": "Missing or invalid bearer token.",
        },
    },
)
async def bootstrap_user(user: User = USER_DEP) -> UserRead:
    """Return the authenticated user profile."""
    return UserRead.model_validate(user, from_attributes=True)
