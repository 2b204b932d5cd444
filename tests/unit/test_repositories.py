"""Tests for the User, VerificationCode and LoginChallenge repositories.

Exercises uniqueness constraints, the conditional UPDATEs behind consume
and lockout, and the allow-list on user updates.
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from workradar.models.base import as_utc, utcnow
from workradar.repositories.login_challenge_repository import (
    LoginChallengeRepository,
)
from workradar.repositories.user_repository import UserRepository
from workradar.repositories.verification_code_repository import (
    VerificationCodeRepository,
)


async def _user(db, email="henry@example.com", username="henry"):
    return await UserRepository.create(
        db, email=email, username=username, password_hash="hash"
    )


async def _code(db, user, *, code_hash="a" * 64, purpose="REG", ttl=120):
    return await VerificationCodeRepository.create(
        db,
        user_id=user.id,
        email=user.email,
        purpose=purpose,
        code_hash=code_hash,
        expires_at=utcnow() + timedelta(seconds=ttl),
    )


class TestUserRepository:
    """Tests for UserRepository."""

    async def test_create_normalizes_email(self, db_session):
        user = await _user(db_session, email="  Henry@Example.COM ")
        assert user.email == "henry@example.com"
        assert user.email_verified is None
        assert user.mfa_enabled is False

    async def test_lookup_case_insensitive(self, db_session):
        user = await _user(db_session)

        by_email = await UserRepository.get_by_email(db_session, "HENRY@example.com")
        by_name = await UserRepository.get_by_username(db_session, "HENRY")

        assert by_email is not None and by_email.id == user.id
        assert by_name is not None and by_name.id == user.id

    async def test_duplicate_email_violates_constraint(self, db_session):
        await _user(db_session)
        with pytest.raises(IntegrityError):
            await _user(db_session, username="other")

    async def test_update_allow_list(self, db_session):
        """Only allow-listed fields can be updated."""
        user = await _user(db_session)

        with pytest.raises(ValueError, match="password_hash"):
            await UserRepository.update(db_session, user.id, password_hash="x")
        updated = await UserRepository.update(db_session, user.id, mfa_enabled=True)
        assert updated is not None and updated.mfa_enabled is True

    async def test_update_missing_user(self, db_session):
        assert await UserRepository.update(db_session, uuid.uuid4()) is None

    async def test_mark_verified_once(self, db_session):
        """The verification timestamp is written exactly once."""
        user = await _user(db_session)

        assert await UserRepository.mark_verified(
            db_session, user.id, verified_at=utcnow()
        )
        assert not await UserRepository.mark_verified(
            db_session, user.id, verified_at=utcnow()
        )
        refreshed = await UserRepository.get_by_id(db_session, user.id)
        assert refreshed is not None and refreshed.is_verified

    async def test_replace_password_hash(self, db_session):
        user = await _user(db_session)
        when = utcnow().replace(microsecond=0)

        assert await UserRepository.replace_password_hash(
            db_session, user.id, password_hash="new", invalidated_before=when
        )
        refreshed = await UserRepository.get_by_id(db_session, user.id)
        assert refreshed is not None
        assert refreshed.password_hash == "new"
        assert refreshed.token_invalidated_before is not None
        assert as_utc(refreshed.token_invalidated_before) == when


class TestVerificationCodeRepository:
    """Tests for VerificationCodeRepository."""

    async def test_get_by_hash_filters_purpose(self, db_session):
        user = await _user(db_session)
        await _code(db_session, user)

        assert await VerificationCodeRepository.get_by_hash(
            db_session, code_hash="a" * 64, purpose="REG"
        )
        assert (
            await VerificationCodeRepository.get_by_hash(
                db_session, code_hash="a" * 64, purpose="PWD"
            )
            is None
        )

    async def test_invalidate_unused(self, db_session):
        """Unused records for the (account, purpose) pair are superseded."""
        user = await _user(db_session)
        first = await _code(db_session, user, code_hash="a" * 64)
        second = await _code(db_session, user, code_hash="b" * 64)
        other = await _code(db_session, user, code_hash="c" * 64, purpose="PWD")

        count = await VerificationCodeRepository.invalidate_unused(
            db_session, user_id=user.id, purpose="REG", now=utcnow()
        )

        assert count == 2
        for record in (first, second, other):
            await db_session.refresh(record)
        assert first.superseded and second.superseded
        assert not other.used

    async def test_live_hash_exists(self, db_session):
        user = await _user(db_session)
        await _code(db_session, user, code_hash="d" * 64)

        assert await VerificationCodeRepository.live_hash_exists(
            db_session, code_hash="d" * 64, purpose="REG", now=utcnow()
        )
        assert not await VerificationCodeRepository.live_hash_exists(
            db_session,
            code_hash="d" * 64,
            purpose="REG",
            now=utcnow() + timedelta(minutes=5),
        )

    async def test_increment_resets_at_threshold(self, db_session):
        """Reaching the threshold sets locked_until and zeroes the counter."""
        user = await _user(db_session)
        record = await _code(db_session, user)
        locked_until = utcnow() + timedelta(minutes=15)

        for _ in range(3):
            await VerificationCodeRepository.increment_failed_attempts(
                db_session, record_id=record.id, threshold=3, locked_until=locked_until
            )
        await db_session.refresh(record)

        assert record.failed_attempts == 0
        assert record.locked_until is not None


class TestLoginChallengeRepository:
    """Tests for LoginChallengeRepository."""

    async def _challenge(self, db, *, ttl=300):
        user = await _user(db)
        return await LoginChallengeRepository.create(
            db,
            user_id=user.id,
            token_hash="t" * 64,
            code_hash="c" * 64,
            expires_at=utcnow() + timedelta(seconds=ttl),
        )

    async def test_lookup_by_token_hash(self, db_session):
        challenge = await self._challenge(db_session)
        found = await LoginChallengeRepository.get_by_token_hash(db_session, "t" * 64)
        assert found is not None and found.id == challenge.id

    async def test_consume_once(self, db_session):
        challenge = await self._challenge(db_session)

        first = await LoginChallengeRepository.consume(
            db_session, challenge_id=challenge.id, now=utcnow(), max_attempts=5
        )
        second = await LoginChallengeRepository.consume(
            db_session, challenge_id=challenge.id, now=utcnow(), max_attempts=5
        )

        assert (first, second) == (True, False)

    async def test_consume_refuses_expired(self, db_session):
        challenge = await self._challenge(db_session, ttl=-1)
        assert not await LoginChallengeRepository.consume(
            db_session, challenge_id=challenge.id, now=utcnow(), max_attempts=5
        )

    async def test_consume_refuses_locked(self, db_session):
        """A challenge at the attempt threshold is not consumable."""
        challenge = await self._challenge(db_session)
        for _ in range(5):
            await LoginChallengeRepository.increment_failed_attempts(
                db_session, challenge.id
            )

        assert not await LoginChallengeRepository.consume(
            db_session, challenge_id=challenge.id, now=utcnow(), max_attempts=5
        )
