"""Verification code model - one issued OTP.

Single-use, time-limited codes for registration and password reset.
Only a keyed hash of the digits is stored. Records are never deleted on
use: consumption, supersession, expiry and lockout are all state on the row.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from workradar.models.base import Base, utcnow


class VerificationCode(Base):
    """One-time code issued to an account for a purpose.

    Attributes:
        id: UUID primary key.
        user_id: Owning account.
        email: Address the code was sent to.
        purpose: Purpose tag, ``"REG"`` or ``"PWD"``.
        code_hash: HMAC-SHA256 of the bare digits.
        expires_at: Expiry timestamp, evaluated at read time.
        used: Set once by a successful verification or by supersession.
        used_at: When used was set.
        superseded: True when a newer code for the same purpose replaced it.
        failed_attempts: Wrong guesses since the last lockout.
        locked_until: Verification attempts rejected until this time.
        created_at: Issue timestamp (microsecond resolution for ordering).
    """

    __tablename__ = "verification_codes"
    __table_args__ = (
        Index("ix_verification_codes_user_purpose", "user_id", "purpose"),
        Index("ix_verification_codes_code_hash", "code_hash"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    purpose: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )
    code_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    used_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    superseded: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    failed_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )
    locked_until: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
