"""Account authentication flows.

Registration, email verification, login with optional MFA step-up, password
reset, code resend, and the authenticated account operations. Composes the
OTP store, the credential verifier and an email dispatcher.

Every code check runs in a fixed order so error responses are deterministic:

    shape -> lookup -> lock -> expiry -> used

Transaction boundaries: the service commits its own unit of work. Failed
attempt increments are committed before the error is raised so a
request-level rollback cannot undo them. Email dispatch happens after the
issuing commit and never rolls it back.

Dev-mode echo: when the dispatcher is unconfigured the plain code is returned
to the caller. It is never returned when email delivery is configured.

Security: forgot-password and resend do the same code generation, hashing
and commit for known and unknown emails, and leave the email send to
deliver(), which the HTTP layer runs as a background task. Response time
then does not reveal whether an account exists.
"""

import hmac
import uuid
from dataclasses import dataclass
from datetime import timedelta

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from workradar.core.auth import create_jwt, generate_challenge_token
from workradar.core.config import Settings
from workradar.core.email import EmailDispatcher
from workradar.core.email_templates import (
    EmailContent,
    mfa_code_email,
    password_reset_code_email,
    registration_code_email,
    welcome_email,
)
from workradar.core.errors import (
    CodeAlreadyUsed,
    CodeExpired,
    CodeLocked,
    CodeNotFound,
    DispatchFailure,
    DuplicateAccount,
    EmailNotVerified,
    InvalidCredential,
    MalformedCode,
    NotFoundError,
    ValidationError,
)
from workradar.core.input_validation import (
    normalize_email,
    normalize_handle,
    validate_email,
    validate_handle,
    validate_profile_picture,
)
from workradar.models.base import as_utc, utcnow
from workradar.models.user import User
from workradar.models.verification_code import VerificationCode
from workradar.repositories.login_challenge_repository import (
    LoginChallengeRepository,
)
from workradar.repositories.user_repository import UserRepository
from workradar.services.credential_verifier import CredentialVerifier
from workradar.services.otp_codes import (
    OTPPurpose,
    extract_purpose,
    generate,
    generate_mfa_code,
    hash_token,
    normalize_code,
    validate_shape,
)
from workradar.services.otp_store import OTPPolicy, OTPStore

logger = structlog.get_logger()


# =============================================================================
# Results
# =============================================================================


@dataclass
class RegistrationResult:
    """Outcome of a registration.

    Attributes:
        user: The new, unverified account.
        dev_code: Prefixed registration code, only when email is unconfigured.
    """

    user: User
    dev_code: str | None = None


@dataclass
class LoginResult:
    """Outcome of a login step.

    Either a full session (session_token + user) or a pending MFA step-up
    (requires_mfa + challenge_token), never both.
    """

    requires_mfa: bool
    session_token: str | None = None
    user: User | None = None
    challenge_token: str | None = None
    dev_code: str | None = None


@dataclass
class PendingEmail:
    """An email prepared during a request and sent after the response."""

    to: str
    content: EmailContent
    kind: str


@dataclass
class CodeRequestResult:
    """Outcome of forgot-password and resend.

    The response built from it is identical whether or not the email belongs
    to an account. pending_email is only set for a real account and is handed
    to deliver() off the request path.
    """

    dev_code: str | None = None
    pending_email: PendingEmail | None = None


# =============================================================================
# Service
# =============================================================================


class AuthService:
    """Authentication state machine over one database session.

    Args:
        db: Async database session for this unit of work.
        settings: Application settings value.
        dispatcher: Outbound email channel.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        dispatcher: EmailDispatcher,
    ) -> None:
        self._db = db
        self._settings = settings
        self._dispatcher = dispatcher
        self._otp = OTPStore(db, OTPPolicy.from_settings(settings))
        self._verifier = CredentialVerifier(
            rounds=settings.bcrypt_rounds,
            max_secret_length=settings.max_secret_length,
        )

    @property
    def otp_store(self) -> OTPStore:
        """OTP store bound to this service's session."""
        return self._otp

    @property
    def dev_mode(self) -> bool:
        """True when codes are echoed because email is unconfigured."""
        return not self._dispatcher.is_configured()

    # -------------------------------------------------------------------------
    # Registration and email verification
    # -------------------------------------------------------------------------

    async def register(
        self, email: str, handle: str, secret: str
    ) -> RegistrationResult:
        """Create an unverified account and send its registration code.

        Raises:
            ValidationError: Missing, oversized or unsafe input.
            DuplicateAccount: Email or handle already registered.
        """
        email = normalize_email(email)
        handle = normalize_handle(handle)
        if not email or not handle or not secret:
            raise ValidationError("Email, username, and password are required")
        self._verifier.validate_new_secret(secret)
        validate_handle(handle, self._settings.max_handle_length)
        validate_email(email, self._settings.allowed_email_domains)

        if await UserRepository.get_by_email(self._db, email) is not None:
            raise DuplicateAccount()
        if await UserRepository.get_by_username(self._db, handle) is not None:
            raise DuplicateAccount()

        password_hash = self._verifier.hash_secret(secret)
        try:
            user = await UserRepository.create(
                self._db, email=email, username=handle, password_hash=password_hash
            )
        except IntegrityError as exc:
            # Lost a race with a concurrent registration
            await self._db.rollback()
            raise DuplicateAccount() from exc

        _, code = await self._otp.issue(user.id, user.email, OTPPurpose.REGISTRATION)
        await self._db.commit()
        logger.info("user_registered", user_id=str(user.id))
        logger.info("otp_issued", purpose=code.purpose.value, user_id=str(user.id))

        await self._dispatch(
            user.email,
            registration_code_email(code.prefixed, self._settings.otp_ttl_seconds),
            kind="registration",
        )
        return RegistrationResult(
            user=user, dev_code=code.prefixed if self.dev_mode else None
        )

    async def verify_email(self, code: str, email: str | None = None) -> User:
        """Consume a registration code and mark the account verified.

        Args:
            code: Presented code, bare or ``REG-`` prefixed.
            email: Account email for the guess-based flow. When given, the
                account's latest registration code is the candidate and a
                wrong guess counts toward its lockout.

        Returns:
            The verified account.

        Raises:
            MalformedCode, CodeNotFound, CodeLocked, CodeExpired,
            CodeAlreadyUsed: In that check order.
        """
        record = await self._resolve_code(code, OTPPurpose.REGISTRATION, email)
        await self._consume(record)

        newly_verified = await UserRepository.mark_verified(
            self._db, record.user_id, verified_at=utcnow()
        )
        await self._db.commit()

        user = await UserRepository.get_by_id(self._db, record.user_id)
        if user is None:
            raise NotFoundError("User")
        await self._db.refresh(user)
        logger.info(
            "email_verified", user_id=str(user.id), newly_verified=newly_verified
        )

        if newly_verified:
            await self._dispatch(
                user.email, welcome_email(user.username), kind="welcome"
            )
        return user

    async def resend_verification_otp(self, email: str) -> CodeRequestResult:
        """Re-issue a registration code, superseding the previous one.

        Unknown and already-verified emails get the same response in the
        same time without any code being stored. The email is returned as
        pending_email for deliver().

        Raises:
            ValidationError: Email missing.
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")

        user = await UserRepository.get_by_email(self._db, email)
        if user is not None and user.is_verified:
            user = None
        if user is None:
            logger.info("otp_resend_skipped")
        return await self._request_code(user, OTPPurpose.REGISTRATION)

    # -------------------------------------------------------------------------
    # Login
    # -------------------------------------------------------------------------

    async def login(self, email: str, secret: str) -> LoginResult:
        """Check credentials and either open a session or start MFA.

        Raises:
            InvalidCredential: Unknown account or wrong password.
            EmailNotVerified: REQUIRE_VERIFIED_EMAIL is on and the account
                is unverified.
        """
        user = await UserRepository.get_by_email(self._db, normalize_email(email))
        if user is None:
            # Security: same bcrypt cost as a real check
            self._verifier.verify_unknown(secret)
            logger.info("login_failed", reason="invalid_credential")
            raise InvalidCredential()

        if not self._verifier.verify_password(user, secret):
            logger.info(
                "login_failed", reason="invalid_credential", user_id=str(user.id)
            )
            raise InvalidCredential()

        if self._settings.require_verified_email and not user.is_verified:
            raise EmailNotVerified()

        if user.mfa_enabled:
            return await self._start_mfa_challenge(user)

        logger.info("login_succeeded", user_id=str(user.id))
        return LoginResult(
            requires_mfa=False,
            session_token=self.issue_session_token(user),
            user=user,
        )

    async def verify_mfa(self, challenge_token: str, code: str) -> LoginResult:
        """Complete an MFA step-up and open a session.

        Raises:
            MalformedCode, CodeNotFound, CodeLocked, CodeExpired,
            CodeAlreadyUsed: In that check order; a wrong code raises
            CodeNotFound and counts toward the challenge lockout.
        """
        normalized = normalize_code(code or "")
        if not validate_shape(
            normalized, allow_prefixed=False, width=self._settings.otp_digits
        ):
            raise MalformedCode()

        challenge = await LoginChallengeRepository.get_by_token_hash(
            self._db, hash_token((challenge_token or "").strip())
        )
        if challenge is None:
            raise CodeNotFound()

        threshold = self._settings.otp_lockout_threshold
        if challenge.failed_attempts >= threshold:
            raise CodeLocked()
        if utcnow() > as_utc(challenge.expires_at):
            raise CodeExpired()
        if challenge.consumed:
            raise CodeAlreadyUsed()

        if not hmac.compare_digest(
            challenge.code_hash, self._otp.hash_digits(normalized)
        ):
            await LoginChallengeRepository.increment_failed_attempts(
                self._db, challenge.id
            )
            await self._db.commit()
            logger.info("mfa_verify_failed", user_id=str(challenge.user_id))
            raise CodeNotFound()

        consumed = await LoginChallengeRepository.consume(
            self._db,
            challenge_id=challenge.id,
            now=utcnow(),
            max_attempts=threshold,
        )
        if not consumed:
            await self._db.rollback()
            raise CodeAlreadyUsed()
        await self._db.commit()

        user = await UserRepository.get_by_id(self._db, challenge.user_id)
        if user is None:
            raise InvalidCredential()
        logger.info("login_succeeded", user_id=str(user.id), mfa=True)
        return LoginResult(
            requires_mfa=False,
            session_token=self.issue_session_token(user),
            user=user,
        )

    def issue_session_token(self, user: User) -> str:
        """Signed session JWT for an account."""
        return create_jwt(user_id=str(user.id), settings=self._settings)

    # -------------------------------------------------------------------------
    # Password reset
    # -------------------------------------------------------------------------

    async def forgot_password(self, email: str) -> CodeRequestResult:
        """Issue a password reset code.

        Security: unknown emails get an identical response in the same time.
        A code is always generated and hashed; only a known account gets a
        stored record and a pending_email for deliver().

        Raises:
            ValidationError: Email missing.
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")

        user = await UserRepository.get_by_email(self._db, email)
        logger.info("password_reset_requested", known_account=user is not None)
        return await self._request_code(user, OTPPurpose.PASSWORD_RESET)

    async def reset_password(
        self, code: str, new_secret: str, email: str | None = None
    ) -> None:
        """Consume a reset code and replace the account secret.

        Older session tokens are revoked.

        Raises:
            ValidationError: New secret empty or too long.
            MalformedCode, CodeNotFound, CodeLocked, CodeExpired,
            CodeAlreadyUsed: As for verify_email, with purpose PWD.
        """
        self._verifier.validate_new_secret(new_secret)
        record = await self._resolve_code(code, OTPPurpose.PASSWORD_RESET, email)
        await self._consume(record)

        user = await UserRepository.get_by_id(self._db, record.user_id)
        if user is None:
            raise NotFoundError("User")
        await self._verifier.replace_secret(self._db, user, new_secret)
        await self._db.commit()
        logger.info("password_reset", user_id=str(user.id))

    async def deliver(self, pending: PendingEmail | None) -> bool:
        """Send an email prepared by forgot_password or resend.

        Needs no database session, so it can run after the response.

        Returns:
            True if the dispatcher accepted the message.
        """
        if pending is None:
            return False
        return await self._dispatch(pending.to, pending.content, kind=pending.kind)

    # -------------------------------------------------------------------------
    # Authenticated account operations
    # -------------------------------------------------------------------------

    async def get_profile(self, user_id: uuid.UUID) -> User:
        """Fetch the caller's account.

        Raises:
            NotFoundError: Account no longer exists.
        """
        user = await UserRepository.get_by_id(self._db, user_id)
        if user is None:
            raise NotFoundError("User")
        return user

    async def update_profile(
        self,
        user_id: uuid.UUID,
        username: str | None = None,
        profile_picture: str | None = None,
    ) -> User:
        """Change the handle and/or avatar.

        An empty profile_picture clears the avatar; None leaves it unchanged.

        Raises:
            ValidationError: Unsafe handle or avatar reference.
            DuplicateAccount: Handle taken by another account.
        """
        user = await self.get_profile(user_id)
        updates: dict[str, str | None] = {}

        if username is not None:
            handle = normalize_handle(username)
            validate_handle(handle, self._settings.max_handle_length)
            if handle.lower() != user.username.lower():
                taken = await UserRepository.get_by_username(self._db, handle)
                if taken is not None and taken.id != user.id:
                    raise DuplicateAccount("Username already taken")
            updates["username"] = handle

        if profile_picture is not None:
            picture = profile_picture.strip()
            if picture:
                validate_profile_picture(picture)
            updates["profile_picture"] = picture or None

        if updates:
            try:
                updated = await UserRepository.update(self._db, user.id, **updates)
            except IntegrityError as exc:
                await self._db.rollback()
                raise DuplicateAccount("Username already taken") from exc
            await self._db.commit()
            if updated is not None:
                user = updated
            logger.info(
                "profile_updated", user_id=str(user.id), fields=sorted(updates)
            )
        return user

    async def change_password(
        self, user_id: uuid.UUID, old_secret: str, new_secret: str
    ) -> str:
        """Replace the secret after re-checking the current one.

        Returns:
            A fresh session token; every older token is revoked.

        Raises:
            ValidationError: Missing or oversized input.
            InvalidCredential: Old secret does not match.
        """
        if not old_secret or not new_secret:
            raise ValidationError("Old and new password are required")
        user = await self.get_profile(user_id)
        await self._verifier.change_password(self._db, user, old_secret, new_secret)
        await self._db.commit()
        logger.info("password_changed", user_id=str(user.id))
        return self.issue_session_token(user)

    async def set_mfa(self, user_id: uuid.UUID, enabled: bool) -> User:
        """Turn the emailed second factor on or off."""
        user = await self.get_profile(user_id)
        updated = await UserRepository.update(self._db, user.id, mfa_enabled=enabled)
        await self._db.commit()
        logger.info("mfa_toggled", user_id=str(user.id), enabled=enabled)
        return updated or user

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _resolve_code(
        self, code: str, purpose: OTPPurpose, email: str | None
    ) -> VerificationCode:
        """Shape, lookup, lock, expiry and used checks for a presented code."""
        normalized = normalize_code(code or "")
        if not validate_shape(
            normalized, allow_prefixed=True, width=self._settings.otp_digits
        ):
            raise MalformedCode()

        if email is None:
            record = await self._otp.lookup(normalized, purpose)
            if record is None:
                logger.info("otp_verify_failed", purpose=purpose.value)
                raise CodeNotFound()
            self._otp.ensure_usable(record)
            return record

        user = await UserRepository.get_by_email(self._db, normalize_email(email))
        record = (
            await self._otp.latest_for(user.id, purpose) if user is not None else None
        )
        if record is None:
            logger.info("otp_verify_failed", purpose=purpose.value)
            raise CodeNotFound()
        self._otp.ensure_usable(record)

        tagged = extract_purpose(normalized)
        if (tagged is not None and tagged is not purpose) or not self._otp.matches(
            record, normalized
        ):
            locked = await self._otp.record_failed_attempt(record)
            await self._db.commit()
            logger.info(
                "otp_verify_failed", purpose=purpose.value, user_id=str(record.user_id)
            )
            if locked:
                logger.warning(
                    "otp_locked", purpose=purpose.value, user_id=str(record.user_id)
                )
            raise CodeNotFound()
        return record

    async def _consume(self, record: VerificationCode) -> None:
        if not await self._otp.consume(record):
            # Another request consumed it first, or it went stale meanwhile
            await self._db.rollback()
            raise CodeAlreadyUsed()
        logger.info(
            "otp_consumed", purpose=record.purpose, user_id=str(record.user_id)
        )

    async def _start_mfa_challenge(self, user: User) -> LoginResult:
        token = generate_challenge_token()
        code = generate_mfa_code(self._settings.otp_digits)
        ttl_seconds = self._settings.mfa_challenge_ttl_seconds
        await LoginChallengeRepository.create(
            self._db,
            user_id=user.id,
            token_hash=hash_token(token),
            code_hash=self._otp.hash_digits(code),
            expires_at=utcnow() + timedelta(seconds=ttl_seconds),
        )
        await self._db.commit()
        logger.info("login_mfa_required", user_id=str(user.id))

        await self._dispatch(user.email, mfa_code_email(code, ttl_seconds), kind="mfa")
        return LoginResult(
            requires_mfa=True,
            challenge_token=token,
            dev_code=code if self.dev_mode else None,
        )

    async def _request_code(
        self, user: User | None, purpose: OTPPurpose
    ) -> CodeRequestResult:
        # Decoy code is generated and hashed on every path, stored on none
        decoy = generate(purpose, self._settings.otp_digits)
        self._otp.hash_digits(decoy.digits)

        if user is None:
            await self._db.commit()
            return CodeRequestResult(
                dev_code=decoy.prefixed if self.dev_mode else None
            )

        _, code = await self._otp.issue(user.id, user.email, purpose)
        await self._db.commit()
        logger.info("otp_issued", purpose=code.purpose.value, user_id=str(user.id))

        ttl_seconds = self._settings.otp_ttl_seconds
        if purpose is OTPPurpose.REGISTRATION:
            pending = PendingEmail(
                to=user.email,
                content=registration_code_email(code.prefixed, ttl_seconds),
                kind="registration",
            )
        else:
            pending = PendingEmail(
                to=user.email,
                content=password_reset_code_email(code.prefixed, ttl_seconds),
                kind="password_reset",
            )
        return CodeRequestResult(
            dev_code=code.prefixed if self.dev_mode else None,
            pending_email=pending,
        )

    async def _dispatch(self, to: str, content: EmailContent, *, kind: str) -> bool:
        if not self._dispatcher.is_configured():
            logger.info("otp_dispatch_skipped", kind=kind)
            return False
        try:
            delivered = await self._dispatcher.send(
                to, content.subject, content.html, content.text
            )
        except DispatchFailure:
            logger.warning("otp_dispatch_failed", kind=kind, exc_info=True)
            return False
        if not delivered:
            logger.warning("otp_dispatch_failed", kind=kind)
        return delivered
