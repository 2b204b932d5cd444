"""Shared dependencies for API endpoints.

Authentication, settings, email dispatcher and auth service dependencies.
Session tokens are accepted from the ``Authorization: Bearer`` header or the
httpOnly session cookie.
"""

import uuid
from typing import Annotated

import jwt
from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workradar.core.auth import decode_jwt
from workradar.core.config import Settings, get_settings
from workradar.core.database import get_db
from workradar.core.email import EmailDispatcher, ResendEmailDispatcher
from workradar.core.errors import UnauthorizedError
from workradar.models import User
from workradar.models.base import as_utc
from workradar.services.auth_service import AuthService

_BEARER_PREFIX = "bearer "

DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]


def _extract_token(request: Request, settings: Settings) -> str | None:
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith(_BEARER_PREFIX):
        token = authorization[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    return request.cookies.get(settings.auth_cookie_name) or None


async def get_current_user_id(
    request: Request,
    db: DbSession,
    settings: AppSettings,
) -> uuid.UUID:
    """Get current user ID from the session token.

    Validation steps:
    1. Read JWT from Authorization header, else from cookie
    2. Decode + verify signature (HS256)
    3. Verify exp, aud, iss claims
    4. Extract sub as UUID
    5. Check token_invalidated_before (revocation)

    Args:
        request: HTTP request (injected by FastAPI).
        db: Database session for revocation check (injected).
        settings: Application settings (injected).

    Returns:
        UUID of the current authenticated user.

    Raises:
        UnauthorizedError: 401 for any auth failure.
    """
    # Security: one generic error for every failure
    token = _extract_token(request, settings)
    if not token:
        raise UnauthorizedError()

    try:
        payload = decode_jwt(token, settings)
        user_id = uuid.UUID(payload["sub"])
        iat = int(payload["iat"])
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
        raise UnauthorizedError() from exc

    result = await db.execute(
        select(User.id, User.token_invalidated_before).where(User.id == user_id)
    )
    row = result.one_or_none()
    if row is None:
        raise UnauthorizedError()

    # Revocation check: reject JWTs issued before token_invalidated_before
    invalidated_before = row.token_invalidated_before
    if invalidated_before is not None and iat < as_utc(invalidated_before).timestamp():
        raise UnauthorizedError()

    return user_id


def get_email_dispatcher(settings: AppSettings) -> EmailDispatcher:
    """Dependency that provides the outbound email dispatcher."""
    return ResendEmailDispatcher.from_settings(settings)


def get_auth_service(
    db: DbSession,
    settings: AppSettings,
    dispatcher: Annotated[EmailDispatcher, Depends(get_email_dispatcher)],
) -> AuthService:
    """Dependency that provides an AuthService bound to the request session."""
    return AuthService(db, settings, dispatcher)


# Reusable type aliases for dependency injection
CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
