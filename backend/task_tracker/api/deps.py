"""Reusable FastAPI dependencies for the authenticated caller and shared handles.

Routes never look up the advisor globally: it is built once in the app
lifespan, stored on ``app.state`` and injected from there.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, Request, status

from task_tracker.core.auth import AuthContext, get_auth_context
from task_tracker.db.session import get_session

if TYPE_CHECKING:
    from task_tracker.models.users import User
    from task_tracker.services.advisor import TaskAdvisor

AUTH_DEP = Depends(get_auth_context)
SESSION_DEP = Depends(get_session)


def require_user(auth: AuthContext = AUTH_DEP) -> User:
    """Return the authenticated user; ownership checks key off its id."""
    if auth.user is None:  # pragma: no cover
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return auth.user


def get_advisor(request: Request) -> TaskAdvisor:
    """Return the process-wide advisor created during app startup."""
    advisor = getattr(request.app.state, "advisor", None)
    if advisor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Advisor not initialized",
        )
    return advisor


USER_DEP = Depends(require_user)
ADVISOR_DEP = Depends(get_advisor)
