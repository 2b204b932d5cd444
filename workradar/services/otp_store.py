"""OTP store: issue, look up, consume and lock verification codes.

Sits between the authentication flows and VerificationCodeRepository. Holds
the code policy (TTL, width, lockout) and turns raw repository rows into the
ordered checks every verification path runs:

    shape -> lookup -> lock -> expiry -> used

Expiry and lockout are evaluated at call time against stored timestamps;
nothing here schedules timers. All writes go through the caller's session
and are flushed, never committed.
"""

import hmac
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from workradar.core.config import Settings
from workradar.core.errors import CodeAlreadyUsed, CodeExpired, CodeLocked
from workradar.models.base import as_utc, utcnow
from workradar.models.verification_code import VerificationCode
from workradar.repositories.verification_code_repository import (
    VerificationCodeRepository,
)
from workradar.services.otp_codes import (
    OTPPurpose,
    TypedCode,
    extract_digits,
    extract_purpose,
    generate,
    hash_code,
    normalize_code,
)

logger = logging.getLogger(__name__)

# Re-draw bound when a fresh code collides with a live record. With 9*10^5
# codes and a short TTL a second draw is already unlikely.
_MAX_DRAWS = 10


@dataclass(frozen=True)
class OTPPolicy:
    """Code policy applied by OTPStore.

    Attributes:
        ttl: Lifetime of an issued code.
        width: Number of digits.
        lockout_threshold: Failed attempts that trigger a lockout.
        lockout_window: Lockout duration.
        pepper: Server-side secret keyed into code hashes.
    """

    ttl: timedelta
    width: int
    lockout_threshold: int
    lockout_window: timedelta
    pepper: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "OTPPolicy":
        """Build the policy from application settings."""
        return cls(
            ttl=timedelta(seconds=settings.otp_ttl_seconds),
            width=settings.otp_digits,
            lockout_threshold=settings.otp_lockout_threshold,
            lockout_window=timedelta(minutes=settings.otp_lockout_minutes),
            pepper=settings.otp_pepper.get_secret_value(),
        )


class OTPStore:
    """Verification code lifecycle over one database session.

    Args:
        db: Async database session owned by the caller.
        policy: Code policy.
    """

    def __init__(self, db: AsyncSession, policy: OTPPolicy) -> None:
        self._db = db
        self.policy = policy

    def hash_digits(self, digits: str) -> str:
        """Keyed hash of bare digits under this store's pepper."""
        return hash_code(digits, self.policy.pepper)

    async def issue(
        self,
        user_id: uuid.UUID,
        email: str,
        purpose: OTPPurpose,
    ) -> tuple[VerificationCode, TypedCode]:
        """Supersede earlier codes and store a fresh one.

        Args:
            user_id: Owning account.
            email: Address the code will be sent to.
            purpose: Flow the code is issued for.

        Returns:
            Tuple of (stored record, plain typed code). The plain code exists
            only in this return value.
        """
        now = utcnow()
        superseded = await VerificationCodeRepository.invalidate_unused(
            self._db, user_id=user_id, purpose=purpose.value, now=now
        )
        if superseded:
            logger.debug(
                "Superseded %d %s code(s) for user %s",
                superseded,
                purpose.value,
                user_id,
            )

        code = generate(purpose, self.policy.width)
        code_hash = self.hash_digits(code.digits)
        for _ in range(_MAX_DRAWS - 1):
            if not await VerificationCodeRepository.live_hash_exists(
                self._db, code_hash=code_hash, purpose=purpose.value, now=now
            ):
                break
            code = generate(purpose, self.policy.width)
            code_hash = self.hash_digits(code.digits)

        record = await VerificationCodeRepository.create(
            self._db,
            user_id=user_id,
            email=email,
            purpose=purpose.value,
            code_hash=code_hash,
            expires_at=now + self.policy.ttl,
        )
        return record, code

    async def lookup(
        self, code: str, purpose: OTPPurpose
    ) -> VerificationCode | None:
        """Find the record a presented code refers to.

        A prefixed code whose tag differs from ``purpose`` never matches, so a
        registration code cannot be replayed against password reset.

        Args:
            code: Presented code, either rendering.
            purpose: Flow being verified.

        Returns:
            Most recent matching record, or None.
        """
        normalized = normalize_code(code)
        tagged = extract_purpose(normalized)
        if tagged is not None and tagged is not purpose:
            return None
        digits = extract_digits(normalized)
        return await VerificationCodeRepository.get_by_hash(
            self._db, code_hash=self.hash_digits(digits), purpose=purpose.value
        )

    async def latest_for(
        self, user_id: uuid.UUID, purpose: OTPPurpose
    ) -> VerificationCode | None:
        """Newest record issued to an account for a purpose."""
        return await VerificationCodeRepository.get_latest_for_user(
            self._db, user_id=user_id, purpose=purpose.value
        )

    def matches(self, record: VerificationCode, code: str) -> bool:
        """Check a presented code's digits against a record's hash."""
        digits = extract_digits(normalize_code(code))
        return hmac.compare_digest(record.code_hash, self.hash_digits(digits))

    @staticmethod
    def is_locked(record: VerificationCode, now: datetime | None = None) -> bool:
        """True while a lockout window is in force."""
        if record.locked_until is None:
            return False
        return as_utc(record.locked_until) > (now or utcnow())

    @staticmethod
    def is_expired(record: VerificationCode, now: datetime | None = None) -> bool:
        """True once the record is past its expiry."""
        return (now or utcnow()) > as_utc(record.expires_at)

    def ensure_usable(self, record: VerificationCode) -> None:
        """Run the lock, expiry and used checks in that order.

        Raises:
            CodeLocked: A lockout window is in force.
            CodeExpired: The record is past its expiry.
            CodeAlreadyUsed: The record was consumed or superseded.
        """
        now = utcnow()
        if self.is_locked(record, now):
            raise CodeLocked()
        if self.is_expired(record, now):
            raise CodeExpired()
        if record.used:
            raise CodeAlreadyUsed()

    async def record_failed_attempt(self, record: VerificationCode) -> bool:
        """Count a failed guess; lock the record when the threshold is hit.

        Args:
            record: Record the wrong code was presented against.

        Returns:
            True if this attempt put the record into lockout.
        """
        await VerificationCodeRepository.increment_failed_attempts(
            self._db,
            record_id=record.id,
            threshold=self.policy.lockout_threshold,
            locked_until=utcnow() + self.policy.lockout_window,
        )
        await self._db.refresh(record)
        return self.is_locked(record)

    async def consume(self, record: VerificationCode) -> bool:
        """Atomically mark the record used.

        Returns:
            True for exactly one caller among concurrent consumers.
        """
        consumed = await VerificationCodeRepository.mark_used(
            self._db, record_id=record.id, now=utcnow()
        )
        if consumed:
            await self._db.refresh(record)
        return consumed
