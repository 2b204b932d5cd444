"""User model - the account identity record.

Email and username are unique. Accounts are created unverified at
registration; email_verified is stamped once by email verification.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from workradar.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """User account for authentication.

    Attributes:
        id: UUID primary key.
        email: Unique, lower-cased email address.
        username: Unique display handle (max 50 chars).
        password_hash: bcrypt hash of the account secret.
        email_verified: Timestamp when email was verified. NULL = unverified.
        profile_picture: Avatar URL or data reference.
        mfa_enabled: Whether login requires an emailed second factor.
        token_invalidated_before: Session tokens issued before this are rejected.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    email_verified: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    profile_picture: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
    )
    mfa_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    token_invalidated_before: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    @property
    def is_verified(self) -> bool:
        """True once the email address has been verified."""
        return self.email_verified is not None
