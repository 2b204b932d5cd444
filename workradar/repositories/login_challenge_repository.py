"""Repository for LoginChallenge operations.

Challenges are looked up by the SHA-256 of the opaque token handed to the
client. The plain token is never stored.
"""

import uuid
from datetime import datetime
from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from workradar.models.login_challenge import LoginChallenge


class LoginChallengeRepository:
    """Stateless repository for LoginChallenge table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token_hash: str,
        code_hash: str,
        expires_at: datetime,
    ) -> LoginChallenge:
        """Store a new pending challenge.

        Args:
            db: Async database session.
            user_id: Account that passed the password check.
            token_hash: SHA-256 hex digest of the challenge token.
            code_hash: Keyed hash of the emailed MFA code.
            expires_at: Challenge expiry.

        Returns:
            Created LoginChallenge.
        """
        challenge = LoginChallenge(
            user_id=user_id,
            token_hash=token_hash,
            code_hash=code_hash,
            expires_at=expires_at,
        )
        db.add(challenge)
        await db.flush()
        await db.refresh(challenge)
        return challenge

    @staticmethod
    async def get_by_token_hash(
        db: AsyncSession, token_hash: str
    ) -> LoginChallenge | None:
        """Fetch a challenge by token hash.

        Args:
            db: Async database session.
            token_hash: SHA-256 hex digest of the challenge token.

        Returns:
            LoginChallenge if found, None otherwise.
        """
        stmt = (
            select(LoginChallenge)
            .where(LoginChallenge.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def increment_failed_attempts(
        db: AsyncSession, challenge_id: uuid.UUID
    ) -> None:
        """Count a wrong MFA code against the challenge.

        Args:
            db: Async database session.
            challenge_id: Challenge primary key.
        """
        await db.execute(
            update(LoginChallenge)
            .where(LoginChallenge.id == challenge_id)
            .values(failed_attempts=LoginChallenge.failed_attempts + 1)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def consume(
        db: AsyncSession,
        *,
        challenge_id: uuid.UUID,
        now: datetime,
        max_attempts: int,
    ) -> bool:
        """Compare-and-set consumed from False to True.

        Args:
            db: Async database session.
            challenge_id: Challenge primary key.
            now: Reference time for expiry.
            max_attempts: Attempts at which the challenge is locked.

        Returns:
            True for the single caller that performed the transition.
        """
        result = cast(
            CursorResult[Any],
            await db.execute(
                update(LoginChallenge)
                .where(
                    LoginChallenge.id == challenge_id,
                    LoginChallenge.consumed.is_(False),
                    LoginChallenge.expires_at > now,
                    LoginChallenge.failed_attempts < max_attempts,
                )
                .values(consumed=True, consumed_at=now)
                .execution_options(synchronize_session=False)
            ),
        )
        rows_updated: int = result.rowcount
        return rows_updated > 0
