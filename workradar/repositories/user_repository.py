"""Repository for User CRUD operations.

Provides database access for the users table. Uniqueness of email and
username is enforced by the database; callers translate IntegrityError.
"""

import uuid
from datetime import datetime
from typing import Any, cast

from sqlalchemy import func, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from workradar.models.user import User

# Fields that may be updated via UserRepository.update().
# Security: Never add 'id', 'email', 'created_at', or 'updated_at'.
# - id: primary key, immutable
# - email: unique identity, requires dedicated flow with re-verification
# - created_at/updated_at: server-managed timestamps
# Security: password_hash is excluded; use replace_password_hash() so the
# hash and the session revocation timestamp change together.
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "username",
        "profile_picture",
        "mfa_enabled",
        "token_invalidated_before",
    }
)


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id, populate_existing=True)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = (
            select(User)
            .where(User.email == email.strip().lower())
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_username(db: AsyncSession, username: str) -> User | None:
        """Fetch a user by handle (case-insensitive).

        Args:
            db: Async database session.
            username: Handle to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = (
            select(User)
            .where(func.lower(User.username) == username.lower())
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        username: str,
        password_hash: str,
    ) -> User:
        """Create a new, unverified user.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: User email address.
            username: Display handle.
            password_hash: bcrypt hash.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email or username already exists.
        """
        user = User(
            email=email.strip().lower(),
            username=username,
            password_hash=password_hash,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        **kwargs: str | datetime | bool | None,
    ) -> User | None:
        """Update user fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            user_id: UUID of the user to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        user = await db.get(User, user_id)
        if user is None:
            return None

        for field, value in kwargs.items():
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def mark_verified(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        verified_at: datetime,
    ) -> bool:
        """Stamp email_verified if it is not already set.

        Conditional UPDATE so the flag flips exactly once.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            verified_at: Verification timestamp.

        Returns:
            True if this call flipped the flag.
        """
        result = cast(
            CursorResult[Any],
            await db.execute(
                update(User)
                .where(User.id == user_id, User.email_verified.is_(None))
                .values(email_verified=verified_at)
                .execution_options(synchronize_session=False)
            ),
        )
        rows_updated: int = result.rowcount
        return rows_updated > 0

    @staticmethod
    async def replace_password_hash(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        password_hash: str,
        invalidated_before: datetime,
    ) -> bool:
        """Replace the password hash and revoke older sessions in one UPDATE.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            password_hash: New bcrypt hash.
            invalidated_before: Session tokens issued before this are rejected.

        Returns:
            True if the user row was updated.
        """
        result = cast(
            CursorResult[Any],
            await db.execute(
                update(User)
                .where(User.id == user_id)
                .values(
                    password_hash=password_hash,
                    token_invalidated_before=invalidated_before,
                )
                .execution_options(synchronize_session=False)
            ),
        )
        rows_updated: int = result.rowcount
        return rows_updated > 0
