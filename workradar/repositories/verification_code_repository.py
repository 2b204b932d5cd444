"""Repository for VerificationCode operations.

Single-use codes stored as keyed hashes, queried by hash + purpose or by
(account, purpose). State transitions that race (consume, failed attempt)
are single conditional UPDATEs so the database serializes them per row.
"""

import uuid
from datetime import datetime
from typing import Any, cast

from sqlalchemy import case, or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from workradar.models.verification_code import VerificationCode


class VerificationCodeRepository:
    """Stateless repository for VerificationCode table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        email: str,
        purpose: str,
        code_hash: str,
        expires_at: datetime,
    ) -> VerificationCode:
        """Store a new, unused verification code.

        Args:
            db: Async database session.
            user_id: Owning account.
            email: Address the code is sent to.
            purpose: Purpose tag ("REG" or "PWD").
            code_hash: Keyed hash of the bare digits.
            expires_at: Expiry timestamp.

        Returns:
            Created VerificationCode.
        """
        record = VerificationCode(
            user_id=user_id,
            email=email,
            purpose=purpose,
            code_hash=code_hash,
            expires_at=expires_at,
        )
        db.add(record)
        await db.flush()
        await db.refresh(record)
        return record

    @staticmethod
    async def get_by_hash(
        db: AsyncSession,
        *,
        code_hash: str,
        purpose: str,
    ) -> VerificationCode | None:
        """Most recent record matching a code hash for a purpose.

        Args:
            db: Async database session.
            code_hash: Keyed hash of the bare digits.
            purpose: Purpose tag.

        Returns:
            VerificationCode if found, None otherwise.
        """
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.code_hash == code_hash,
                VerificationCode.purpose == purpose,
            )
            .order_by(VerificationCode.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_latest_for_user(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
    ) -> VerificationCode | None:
        """Newest record issued to an account for a purpose.

        Args:
            db: Async database session.
            user_id: Owning account.
            purpose: Purpose tag.

        Returns:
            VerificationCode if any was issued, None otherwise.
        """
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.user_id == user_id,
                VerificationCode.purpose == purpose,
            )
            .order_by(VerificationCode.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def live_hash_exists(
        db: AsyncSession,
        *,
        code_hash: str,
        purpose: str,
        now: datetime,
    ) -> bool:
        """Check whether an unused, unexpired record already holds a hash.

        Args:
            db: Async database session.
            code_hash: Keyed hash of the bare digits.
            purpose: Purpose tag.
            now: Reference time for expiry.

        Returns:
            True if a live record with the same hash exists.
        """
        stmt = (
            select(VerificationCode.id)
            .where(
                VerificationCode.code_hash == code_hash,
                VerificationCode.purpose == purpose,
                VerificationCode.used.is_(False),
                VerificationCode.expires_at > now,
            )
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def invalidate_unused(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
        now: datetime,
    ) -> int:
        """Supersede every unused record for (account, purpose).

        Args:
            db: Async database session.
            user_id: Owning account.
            purpose: Purpose tag.
            now: Timestamp recorded as used_at.

        Returns:
            Number of superseded rows.
        """
        result = cast(
            CursorResult[Any],
            await db.execute(
                update(VerificationCode)
                .where(
                    VerificationCode.user_id == user_id,
                    VerificationCode.purpose == purpose,
                    VerificationCode.used.is_(False),
                )
                .values(used=True, used_at=now, superseded=True)
                .execution_options(synchronize_session=False)
            ),
        )
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def mark_used(
        db: AsyncSession,
        *,
        record_id: uuid.UUID,
        now: datetime,
    ) -> bool:
        """Compare-and-set used from False to True.

        The WHERE clause also refuses expired or locked rows so a record that
        went stale between read and write can never be consumed.

        Args:
            db: Async database session.
            record_id: Record primary key.
            now: Reference time for expiry and lockout.

        Returns:
            True for the single caller that performed the transition.
        """
        result = cast(
            CursorResult[Any],
            await db.execute(
                update(VerificationCode)
                .where(
                    VerificationCode.id == record_id,
                    VerificationCode.used.is_(False),
                    VerificationCode.expires_at > now,
                    or_(
                        VerificationCode.locked_until.is_(None),
                        VerificationCode.locked_until <= now,
                    ),
                )
                .values(used=True, used_at=now)
                .execution_options(synchronize_session=False)
            ),
        )
        rows_updated: int = result.rowcount
        return rows_updated > 0

    @staticmethod
    async def increment_failed_attempts(
        db: AsyncSession,
        *,
        record_id: uuid.UUID,
        threshold: int,
        locked_until: datetime,
    ) -> None:
        """Count a failed guess, locking the record at the threshold.

        One UPDATE: both CASE arms read the pre-update counter, so reaching
        the threshold sets locked_until and resets the counter atomically.

        Args:
            db: Async database session.
            record_id: Record primary key.
            threshold: Failed attempts that trigger a lockout.
            locked_until: Lockout end applied when the threshold is reached.
        """
        reaches_threshold = VerificationCode.failed_attempts + 1 >= threshold
        await db.execute(
            update(VerificationCode)
            .where(VerificationCode.id == record_id)
            .values(
                failed_attempts=case(
                    (reaches_threshold, 0),
                    else_=VerificationCode.failed_attempts + 1,
                ),
                locked_until=case(
                    (reaches_threshold, locked_until),
                    else_=VerificationCode.locked_until,
                ),
            )
            .execution_options(synchronize_session=False)
        )
