"""Password hashing and verification.

bcrypt is treated as a one-way function with verify. Secrets are never
logged or returned; accounts without a stored hash never verify.
"""

import base64
import hashlib
import logging
from datetime import UTC, datetime
from functools import lru_cache

import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession

from workradar.core.auth import DUMMY_HASH
from workradar.core.errors import InvalidCredential, ValidationError
from workradar.models.user import User
from workradar.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

_DEFAULT_ROUNDS = 12


# bcrypt only reads the first 72 bytes, so the full secret is digested first.
# base64 keeps the digest free of NUL bytes.
def _encode(secret: str) -> bytes:
    return base64.b64encode(hashlib.sha256(secret.encode()).digest())


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> bytes:
    # Unknown-account checks must cost the same as real ones
    if rounds == _DEFAULT_ROUNDS:
        return DUMMY_HASH
    return bcrypt.hashpw(b"workradar-dummy-secret", bcrypt.gensalt(rounds=rounds))


class CredentialVerifier:
    """Hashes, checks and replaces account secrets.

    Args:
        rounds: bcrypt cost factor.
        max_secret_length: Longest accepted secret, in characters.
    """

    def __init__(
        self,
        rounds: int = _DEFAULT_ROUNDS,
        max_secret_length: int = 128,
    ) -> None:
        self.rounds = rounds
        self.max_secret_length = max_secret_length

    def hash_secret(self, secret: str) -> str:
        """Return the bcrypt hash of a secret."""
        return bcrypt.hashpw(
            _encode(secret), bcrypt.gensalt(rounds=self.rounds)
        ).decode()

    def verify_password(self, user: User, candidate: str) -> bool:
        """Check a candidate secret against the account's stored hash."""
        if not user.password_hash:
            self.verify_unknown(candidate)
            return False
        try:
            return bcrypt.checkpw(_encode(candidate), user.password_hash.encode())
        except ValueError:
            # Stored value is not a bcrypt hash
            logger.warning("Unreadable password hash for user %s", user.id)
            return False

    def verify_unknown(self, candidate: str) -> None:
        """Burn one bcrypt comparison for an account that does not exist.

        Security: keeps unknown-email logins as slow as wrong-password ones.
        """
        bcrypt.checkpw(_encode(candidate), _dummy_hash(self.rounds))

    def validate_new_secret(self, secret: str) -> None:
        """Reject empty or oversized secrets.

        Raises:
            ValidationError: If the secret is empty or too long.
        """
        if not secret:
            raise ValidationError("Password is required")
        if len(secret) > self.max_secret_length:
            raise ValidationError(
                f"Password must be at most {self.max_secret_length} characters"
            )

    async def replace_secret(
        self, db: AsyncSession, user: User, new_secret: str
    ) -> datetime:
        """Store a new hash and revoke earlier sessions in one UPDATE.

        Args:
            db: Async database session (flushed, not committed).
            user: Account whose secret changes.
            new_secret: Already-validated new secret.

        Returns:
            The revocation timestamp written to token_invalidated_before.
        """
        # Truncate microseconds: PyJWT encodes iat as integer seconds,
        # so a token issued right after this must not look revoked.
        invalidated_before = datetime.now(UTC).replace(microsecond=0)
        await UserRepository.replace_password_hash(
            db,
            user.id,
            password_hash=self.hash_secret(new_secret),
            invalidated_before=invalidated_before,
        )
        await db.refresh(user)
        return invalidated_before

    async def change_password(
        self,
        db: AsyncSession,
        user: User,
        old_candidate: str,
        new_secret: str,
    ) -> datetime:
        """Replace the secret after re-checking the current one.

        Raises:
            InvalidCredential: If old_candidate does not match.
            ValidationError: If new_secret is empty or too long.
        """
        if not self.verify_password(user, old_candidate):
            raise InvalidCredential("Current password is incorrect")
        self.validate_new_secret(new_secret)
        return await self.replace_secret(db, user, new_secret)
