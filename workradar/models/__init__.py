"""SQLAlchemy ORM models for Workradar authentication.

All models are exported from this module for convenient imports:
    from workradar.models import User, VerificationCode, LoginChallenge

- user.py: User (account identity)
- verification_code.py: VerificationCode (registration / password-reset OTPs)
- login_challenge.py: LoginChallenge (pending MFA step-up)
"""

from workradar.models.base import Base, TimestampMixin
from workradar.models.login_challenge import LoginChallenge
from workradar.models.user import User
from workradar.models.verification_code import VerificationCode

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Models
    "LoginChallenge",
    "User",
    "VerificationCode",
]
