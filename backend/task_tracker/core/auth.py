"""Caller identity resolution for Clerk and local-token auth modes.

The lifecycle engine only ever sees the resolved ``User.id``; everything
about tokens and identity providers stays in this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from hmac import compare_digest
from typing import TYPE_CHECKING

import httpx
from clerk_backend_api import Clerk
from clerk_backend_api.security.types import AuthenticateRequestOptions, AuthStatus, RequestState
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from task_tracker.core.config import AuthMode, settings
from task_tracker.core.logging import get_logger
from task_tracker.db import crud
from task_tracker.db.session import get_session
from task_tracker.models.users import User

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)
SECURITY_DEP = Depends(security)
SESSION_DEP = Depends(get_session)
LOCAL_AUTH_USER_ID = "local-auth-user"
LOCAL_AUTH_EMAIL = "owner@tasks.local"
LOCAL_AUTH_NAME = "Local User"


class ClerkTokenPayload(BaseModel):
    """JWT claims payload shape required from Clerk tokens."""

    sub: str


@dataclass
class AuthContext:
    """Authenticated caller resolved from the Authorization header."""

    user: User


def _extract_bearer_token(authorization: str | None) -> str | None:
    value = (authorization or "").strip()
    if not value.lower().startswith("bearer "):
        return None
    token = value.split(" ", maxsplit=1)[1].strip()
    return token or None


def _claim_text(claims: dict[str, object], *keys: str) -> str | None:
    for key in keys:
        value = claims.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _claim_name(claims: dict[str, object]) -> str | None:
    full = _claim_text(claims, "name", "full_name")
    if full:
        return full
    parts = [
        part
        for part in (
            _claim_text(claims, "given_name", "first_name"),
            _claim_text(claims, "family_name", "last_name"),
        )
        if part
    ]
    return " ".join(parts) or None


def _make_authenticate_request_options() -> AuthenticateRequestOptions:
    return AuthenticateRequestOptions(
        secret_key=settings.clerk_secret_key.strip(),
        clock_skew_in_ms=int(settings.clerk_leeway * 1000),
        accepts_token=["session_token"],
    )


async def _authenticate_clerk_request(request: Request) -> RequestState:
    # The SDK expects an httpx.Request; rebuild one from the ASGI request.
    httpx_request = httpx.Request(
        request.method,
        str(request.url),
        headers=dict(request.headers),
    )
    options = _make_authenticate_request_options()
    sdk = Clerk(bearer_auth=options.secret_key or "")
    return await run_in_threadpool(sdk.authenticate_request, httpx_request, options)


async def _get_or_sync_user(
    session: AsyncSession,
    *,
    clerk_user_id: str,
    claims: dict[str, object],
) -> User:
    email = _claim_text(claims, "email", "email_address", "primary_email_address")
    name = _claim_name(claims)
    user, created = await crud.get_or_create(
        session,
        User,
        clerk_user_id=clerk_user_id,
        defaults={"email": email.lower() if email else None, "name": name},
    )
    changed: dict[str, object] = {}
    if email and user.email != email.lower():
        changed["email"] = email.lower()
    if name and not user.name:
        changed["name"] = name
    if changed:
        await crud.patch(session, user, changed)
    logger.info(
        "auth.user.sync clerk_user_id=%s created=%s updated=%s",
        clerk_user_id[-6:],
        created,
        bool(changed),
    )
    return user


async def _get_or_create_local_user(session: AsyncSession) -> User:
    user, created = await crud.get_or_create(
        session,
        User,
        clerk_user_id=LOCAL_AUTH_USER_ID,
        defaults={"email": LOCAL_AUTH_EMAIL, "name": LOCAL_AUTH_NAME},
    )
    if created:
        logger.info("auth.local.user_created user_id=%s", user.id)
    return user


def _parse_subject(claims: dict[str, object]) -> str | None:
    payload = ClerkTokenPayload.model_validate(claims)
    return payload.sub


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = SECURITY_DEP,
    session: AsyncSession = SESSION_DEP,
) -> AuthContext:
    """Resolve the authenticated caller for the configured auth mode."""
    if settings.auth_mode == AuthMode.LOCAL:
        token = _extract_bearer_token(request.headers.get("Authorization"))
        expected = settings.local_auth_token.strip()
        if token is None or not expected or not compare_digest(token, expected):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
        return AuthContext(user=await _get_or_create_local_user(session))

    request_state = await _authenticate_clerk_request(request)
    if request_state.status != AuthStatus.SIGNED_IN or not isinstance(request_state.payload, dict):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    claims: dict[str, object] = {str(k): v for k, v in request_state.payload.items()}
    try:
        clerk_user_id = _parse_subject(claims)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED) from exc
    if not clerk_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    user = await _get_or_sync_user(session, clerk_user_id=clerk_user_id, claims=claims)
    return AuthContext(user=user)
