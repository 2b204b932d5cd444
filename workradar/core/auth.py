"""Authentication helpers for session tokens and cookies.

Shared utilities used by the auth service and endpoints:
- create_jwt / decode_jwt: HS256 session tokens with sub/aud/iss/exp/iat
- set_auth_cookie / clear_auth_cookie: httpOnly session cookie
- generate_challenge_token: opaque token for a pending MFA step-up
- DUMMY_HASH: Timing-safe constant for user enumeration defense
"""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from fastapi import Response

from workradar.core.config import Settings

_ALGORITHM = "HS256"

# Pre-computed bcrypt hash (cost 12) for timing-safe comparison on
# user-not-found. Security: prevents user enumeration via response time.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"

# 32 bytes of entropy, URL-safe
_CHALLENGE_TOKEN_BYTES = 32


def create_jwt(
    *,
    user_id: str,
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session JWT with standard claims.

    Args:
        user_id: User UUID string for the sub claim.
        settings: Settings providing secret, issuer, audience and TTL.
        expires_delta: Time until expiration. Defaults to SESSION_TTL_MINUTES.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    ttl = expires_delta or timedelta(minutes=settings.session_ttl_minutes)
    payload = {
        "sub": user_id,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + ttl,
        "iat": now,
    }
    return jwt.encode(
        payload, settings.auth_secret.get_secret_value(), algorithm=_ALGORITHM
    )


def decode_jwt(token: str, settings: Settings) -> dict[str, Any]:
    """Decode and verify a session JWT.

    Verifies signature, exp, aud and iss, and requires sub and iat.

    Raises:
        jwt.InvalidTokenError: For any invalid token.
    """
    return jwt.decode(
        token,
        settings.auth_secret.get_secret_value(),
        algorithms=[_ALGORITHM],
        audience=settings.auth_audience,
        issuer=settings.auth_issuer,
        options={"require": ["sub", "iat", "exp"]},
    )


def generate_challenge_token() -> str:
    """Opaque, unguessable token identifying a login challenge."""
    return secrets.token_urlsafe(_CHALLENGE_TOKEN_BYTES)


def set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    """Set httpOnly JWT cookie on response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    are configured via settings for environment-appropriate security.

    Args:
        response: FastAPI response object.
        token: JWT token string.
        settings: Cookie configuration.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=settings.session_ttl_minutes * 60,
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie on the client."""
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        domain=settings.auth_cookie_domain or None,
        secure=settings.auth_cookie_secure,
        httponly=True,
        samesite=settings.auth_cookie_samesite,
    )
