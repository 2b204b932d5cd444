"""Authentication endpoints for account sign-up, sign-in and recovery.

POST /register, /verify-email, /resend-verification, /login, /login/mfa,
/forgot-password, /reset-password.

Security considerations:
- login: constant-time comparison via DUMMY_HASH prevents user enumeration
- forgot-password / resend-verification: identical response and timing for
  unknown emails; email goes out as a background task (enumeration defense)
- codes are echoed in responses only when email delivery is unconfigured
"""

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from workradar.api.deps import AppSettings, AuthServiceDep
from workradar.core.auth import set_auth_cookie
from workradar.core.config import Settings
from workradar.core.errors import UnauthorizedError
from workradar.core.responses import DataResponse
from workradar.models.user import User
from workradar.services.auth_service import LoginResult

# Upper bound on raw request fields; policy limits are enforced by the service
_MAX_FIELD_LENGTH = 1024

router = APIRouter()


def user_to_response(user: User) -> dict[str, Any]:
    """Public projection of an account."""
    return {
        "id": str(user.id),
        "email": user.email,
        "username": user.username,
        "profile_picture": user.profile_picture,
        "is_verified": user.is_verified,
        "mfa_enabled": user.mfa_enabled,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _with_dev_code(data: dict[str, Any], dev_code: str | None) -> dict[str, Any]:
    if dev_code is not None:
        data["code"] = dev_code
        data["dev_mode"] = True
    return data


def _open_session(
    response: Response, result: LoginResult, settings: Settings
) -> dict[str, Any]:
    if result.session_token is None or result.user is None:
        raise UnauthorizedError()
    set_auth_cookie(response, result.session_token, settings)
    return {
        "message": "Login successful",
        "requires_mfa": False,
        "token": result.session_token,
        "user": user_to_response(result.user),
    }


# ===================================================================
# Request models
# ===================================================================


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    username: str = Field(max_length=_MAX_FIELD_LENGTH)
    password: str = Field(max_length=_MAX_FIELD_LENGTH)


class VerifyEmailRequest(BaseModel):
    """Request body for POST /auth/verify-email."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(max_length=64)
    email: EmailStr | None = None


class EmailRequest(BaseModel):
    """Request body carrying only an email address."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(max_length=_MAX_FIELD_LENGTH)


class MFARequest(BaseModel):
    """Request body for POST /auth/login/mfa."""

    model_config = ConfigDict(extra="forbid")

    mfa_token: str = Field(min_length=1, max_length=256)
    code: str = Field(max_length=64)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(max_length=64)
    new_password: str = Field(max_length=_MAX_FIELD_LENGTH)
    email: EmailStr | None = None


# ===================================================================
# Registration and verification
# ===================================================================


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    service: AuthServiceDep,
) -> DataResponse[dict]:
    """Register a new, unverified account and send its verification code."""
    result = await service.register(body.email, body.username, body.password)
    data = {
        "message": "User registered successfully. Please verify your email.",
        "user": user_to_response(result.user),
        "requires_verification": True,
    }
    return DataResponse(data=_with_dev_code(data, result.dev_code))


@router.post("/verify-email")
async def verify_email(
    body: VerifyEmailRequest,
    service: AuthServiceDep,
) -> DataResponse[dict]:
    """Verify an email address with a registration code."""
    user = await service.verify_email(body.code, email=body.email)
    return DataResponse(
        data={
            "message": "Email verified successfully. You can now login.",
            "user": user_to_response(user),
        }
    )


@router.post("/resend-verification")
async def resend_verification(
    body: EmailRequest,
    background_tasks: BackgroundTasks,
    service: AuthServiceDep,
) -> DataResponse[dict]:
    """Re-issue a registration code (same response for unknown emails)."""
    result = await service.resend_verification_otp(body.email)
    if result.pending_email is not None:
        background_tasks.add_task(service.deliver, result.pending_email)
    data = {"message": "Verification code sent to email"}
    return DataResponse(data=_with_dev_code(data, result.dev_code))


# ===================================================================
# Login
# ===================================================================


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    service: AuthServiceDep,
    settings: AppSettings,
) -> DataResponse[dict]:
    """Sign in with email + password.

    Accounts with MFA enabled get ``requires_mfa`` and an ``mfa_token``
    instead of a session; the code is emailed.
    """
    result = await service.login(body.email, body.password)
    if result.requires_mfa:
        data = {
            "message": "MFA code sent to email",
            "requires_mfa": True,
            "mfa_token": result.challenge_token,
        }
        return DataResponse(data=_with_dev_code(data, result.dev_code))

    return DataResponse(data=_open_session(response, result, settings))


@router.post("/login/mfa")
async def login_mfa(
    body: MFARequest,
    response: Response,
    service: AuthServiceDep,
    settings: AppSettings,
) -> DataResponse[dict]:
    """Complete an MFA step-up with the emailed code."""
    result = await service.verify_mfa(body.mfa_token, body.code)
    return DataResponse(data=_open_session(response, result, settings))


# ===================================================================
# Password recovery
# ===================================================================


@router.post("/forgot-password")
async def forgot_password(
    body: EmailRequest,
    background_tasks: BackgroundTasks,
    service: AuthServiceDep,
) -> DataResponse[dict]:
    """Request a password reset code.

    Security: identical response whether or not the email is registered.
    The email is sent as a background task so response time is the same
    in both cases.
    """
    result = await service.forgot_password(body.email)
    if result.pending_email is not None:
        background_tasks.add_task(service.deliver, result.pending_email)
    data = {"message": "If the email is registered, a reset code has been sent"}
    return DataResponse(data=_with_dev_code(data, result.dev_code))


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    service: AuthServiceDep,
) -> DataResponse[dict]:
    """Set a new password with a reset code. Revokes existing sessions."""
    await service.reset_password(body.code, body.new_password, email=body.email)
    return DataResponse(data={"message": "Password reset successfully"})
