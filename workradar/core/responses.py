"""Response envelopes.

Success bodies are ``{"data": ...}``; failures are
``{"error": {"code", "message", "details"}}``.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Success envelope, e.g. ``DataResponse(data=user_to_response(user))``."""

    data: T


class ErrorDetail(BaseModel):
    """Body of an error response.

    Attributes:
        code: Stable machine-readable code, e.g. "CODE_EXPIRED".
        message: Human-readable message, safe to show to end users.
        details: Field-level problems for validation failures.
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
