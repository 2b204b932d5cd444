"""Login challenge model - pending MFA step-up.

Created when the password is correct but the account requires a second
factor. Expires on its own TTL, independent of verification codes.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from workradar.models.base import Base, utcnow


class LoginChallenge(Base):
    """Short-lived MFA challenge.

    Attributes:
        id: UUID primary key.
        user_id: Account that passed the password check.
        token_hash: SHA-256 of the opaque challenge token given to the client.
        code_hash: HMAC-SHA256 of the emailed MFA code.
        expires_at: Challenge expiry.
        consumed: Set once by a successful MFA verification.
        consumed_at: When consumed was set.
        failed_attempts: Wrong MFA codes presented.
        created_at: Creation timestamp.
    """

    __tablename__ = "login_challenges"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
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
    consumed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    consumed_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    failed_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
