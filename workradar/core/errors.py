"""API and domain error classes.

Every failure of the authentication flows is raised as an APIError subclass
carrying a machine-readable code, a stable generic message, and the HTTP
status the transport layer maps it to.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for malformed or oversized input.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid session token is provided.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str) -> None:
        super().__init__(
            code="NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


# =============================================================================
# Account errors
# =============================================================================


class DuplicateAccount(ConflictError):
    """Email or handle already registered (409).

    The message does not say which of the two collided.
    """

    def __init__(self, message: str = "Email or username already registered") -> None:
        super().__init__(code="DUPLICATE_ACCOUNT", message=message)


class InvalidCredential(APIError):
    """Password mismatch or unknown account (401).

    Security: one message for both cases prevents account enumeration.
    """

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(
            code="INVALID_CREDENTIAL",
            message=message,
            status_code=401,
        )


class EmailNotVerified(APIError):
    """Login blocked until the email address is verified (403)."""

    def __init__(self) -> None:
        super().__init__(
            code="EMAIL_NOT_VERIFIED",
            message="Please verify your email before signing in.",
            status_code=403,
        )


# =============================================================================
# One-time code errors
# =============================================================================


class CodeError(APIError):
    """Base class for one-time code failures (400 unless overridden)."""

    def __init__(self, code: str, message: str, status_code: int = 400) -> None:
        super().__init__(code=code, message=message, status_code=status_code)


class MalformedCode(CodeError):
    """Code is neither N digits nor TAG-N digits."""

    def __init__(self) -> None:
        super().__init__(
            code="MALFORMED_CODE",
            message="Invalid code format. Must be 6 digits.",
        )


class CodeNotFound(CodeError):
    """No record matches the code, or the guessed digits were wrong."""

    def __init__(self) -> None:
        super().__init__(
            code="CODE_NOT_FOUND",
            message="Invalid verification code",
        )


class CodeExpired(CodeError):
    """Record is past its expiry."""

    def __init__(self) -> None:
        super().__init__(
            code="CODE_EXPIRED",
            message="Verification code is no longer valid. Please request a new one.",
        )


class CodeAlreadyUsed(CodeError):
    """Record was consumed or superseded."""

    def __init__(self) -> None:
        super().__init__(
            code="CODE_ALREADY_USED",
            message="Verification code is no longer valid. Please request a new one.",
        )


class CodeLocked(CodeError):
    """Too many failed attempts against this record (429)."""

    def __init__(self) -> None:
        super().__init__(
            code="CODE_LOCKED",
            message="Too many failed attempts. Please try again later.",
            status_code=429,
        )


# =============================================================================
# Non-fatal errors
# =============================================================================


class DispatchFailure(Exception):
    """Outbound email could not be delivered.

    Never surfaced to API callers: the owning operation still succeeds and
    the failure is logged for operators.
    """
