"""Authenticated account endpoints.

GET /me, PATCH /profile, POST /change-password, PUT /mfa, POST /logout.

Security considerations:
- change-password: verifies the current password, invalidates all sessions,
  then re-issues a token so the caller stays signed in
- logout: clears the session cookie (stateless tokens expire on their own)
"""

from fastapi import APIRouter, Response
from pydantic import BaseModel, ConfigDict, Field

from workradar.api.deps import AppSettings, AuthServiceDep, CurrentUserId
from workradar.api.v1.auth import user_to_response
from workradar.core.auth import clear_auth_cookie, set_auth_cookie
from workradar.core.responses import DataResponse

router = APIRouter()


# ===================================================================
# Request models
# ===================================================================


class UpdateProfileRequest(BaseModel):
    """Request body for PATCH /auth/profile.

    Omitted fields are left unchanged; an empty profile_picture clears it.
    """

    model_config = ConfigDict(extra="forbid")

    username: str | None = Field(None, max_length=1024)
    profile_picture: str | None = Field(None, max_length=4096)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /auth/change-password."""

    model_config = ConfigDict(extra="forbid")

    old_password: str = Field(max_length=1024)
    new_password: str = Field(max_length=1024)


class SetMFARequest(BaseModel):
    """Request body for PUT /auth/mfa."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool


# ===================================================================
# Endpoints
# ===================================================================


@router.get("/me")
async def get_me(
    user_id: CurrentUserId,
    service: AuthServiceDep,
) -> DataResponse[dict]:
    """Return the signed-in account."""
    user = await service.get_profile(user_id)
    return DataResponse(data=user_to_response(user))


@router.patch("/profile")
async def update_profile(
    body: UpdateProfileRequest,
    user_id: CurrentUserId,
    service: AuthServiceDep,
) -> DataResponse[dict]:
    """Change the handle and/or avatar."""
    user = await service.update_profile(
        user_id,
        username=body.username,
        profile_picture=body.profile_picture,
    )
    return DataResponse(
        data={
            "message": "Profile updated successfully",
            "user": user_to_response(user),
        }
    )


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    response: Response,
    user_id: CurrentUserId,
    service: AuthServiceDep,
    settings: AppSettings,
) -> DataResponse[dict]:
    """Change password for the signed-in account.

    Invalidates all other sessions and re-issues the JWT cookie so the
    current session stays valid.
    """
    token = await service.change_password(
        user_id, body.old_password, body.new_password
    )
    set_auth_cookie(response, token, settings)
    return DataResponse(
        data={"message": "Password changed successfully", "token": token}
    )


@router.put("/mfa")
async def set_mfa(
    body: SetMFARequest,
    user_id: CurrentUserId,
    service: AuthServiceDep,
) -> DataResponse[dict]:
    """Enable or disable the emailed second factor."""
    user = await service.set_mfa(user_id, body.enabled)
    return DataResponse(data={"mfa_enabled": user.mfa_enabled})


@router.post("/logout")
async def logout(response: Response, settings: AppSettings) -> DataResponse[dict]:
    """Clear the session cookie."""
    clear_auth_cookie(response, settings)
    return DataResponse(data={"message": "Logged out"})
