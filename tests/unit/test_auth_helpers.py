"""Tests for auth helper functions.

JWT creation and decoding, challenge tokens, cookie management, and the
timing-safe dummy hash.
"""

import uuid
from datetime import UTC, datetime, timedelta

import bcrypt
import jwt
import pytest
from fastapi import Response

from tests.conftest import TEST_AUTH_SECRET, create_test_jwt, make_test_settings
from workradar.core.auth import (
    DUMMY_HASH,
    clear_auth_cookie,
    create_jwt,
    decode_jwt,
    generate_challenge_token,
    set_auth_cookie,
)

_USER_ID = "00000000-0000-0000-0000-000000000001"


class TestCreateJwt:
    """Tests for create_jwt()."""

    def test_contains_required_claims(self):
        """JWT has sub, aud, iss, exp, iat claims."""
        token = create_jwt(user_id=_USER_ID, settings=make_test_settings())
        payload = jwt.decode(
            token,
            TEST_AUTH_SECRET,
            algorithms=["HS256"],
            audience="workradar",
            issuer="workradar",
        )
        for claim in ("sub", "aud", "iss", "exp", "iat"):
            assert claim in payload, f"Missing claim: {claim}"
        assert payload["sub"] == _USER_ID

    def test_default_expiry_follows_session_ttl(self):
        """Expiration defaults to SESSION_TTL_MINUTES."""
        token = create_jwt(
            user_id=_USER_ID, settings=make_test_settings(session_ttl_minutes=30)
        )
        payload = decode_jwt(token, make_test_settings())
        seconds_until_exp = payload["exp"] - datetime.now(UTC).timestamp()
        assert 1780 < seconds_until_exp < 1810

    def test_custom_expiration(self):
        """Expiration can be customized via expires_delta."""
        token = create_jwt(
            user_id=_USER_ID,
            settings=make_test_settings(),
            expires_delta=timedelta(minutes=5),
        )
        payload = decode_jwt(token, make_test_settings())
        seconds_until_exp = payload["exp"] - datetime.now(UTC).timestamp()
        assert 280 < seconds_until_exp < 310


class TestDecodeJwt:
    """Tests for decode_jwt()."""

    def test_round_trip(self):
        token = create_test_jwt(uuid.UUID(_USER_ID))
        assert decode_jwt(token, make_test_settings())["sub"] == _USER_ID

    def test_wrong_secret_rejected(self):
        token = create_test_jwt(
            uuid.UUID(_USER_ID),
            secret="some-other-secret-that-is-32-characters-long",  # nosec B106
        )
        with pytest.raises(jwt.InvalidTokenError):
            decode_jwt(token, make_test_settings())

    def test_wrong_audience_rejected(self):
        token = create_test_jwt(uuid.UUID(_USER_ID), audience="someone-else")
        with pytest.raises(jwt.InvalidTokenError):
            decode_jwt(token, make_test_settings())

    def test_expired_rejected(self):
        token = create_test_jwt(
            uuid.UUID(_USER_ID),
            expires_delta=timedelta(seconds=-10),
            iat=datetime.now(UTC) - timedelta(minutes=5),
        )
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_jwt(token, make_test_settings())

    def test_missing_sub_rejected(self):
        token = jwt.encode(
            {
                "aud": "workradar",
                "iss": "workradar",
                "exp": datetime.now(UTC) + timedelta(hours=1),
                "iat": datetime.now(UTC),
            },
            TEST_AUTH_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(jwt.MissingRequiredClaimError):
            decode_jwt(token, make_test_settings())


class TestChallengeToken:
    """Tests for generate_challenge_token()."""

    def test_tokens_are_unique_and_long(self):
        tokens = {generate_challenge_token() for _ in range(100)}
        assert len(tokens) == 100
        assert all(len(t) >= 43 for t in tokens)


class TestCookies:
    """Tests for set_auth_cookie() and clear_auth_cookie()."""

    def test_set_cookie_flags(self):
        """Cookie is httpOnly, scoped to / and follows settings."""
        response = Response()
        set_auth_cookie(response, "tok", make_test_settings(auth_cookie_secure=True))

        header = response.headers["set-cookie"]
        assert header.startswith("workradar.session-token=tok")
        assert "HttpOnly" in header
        assert "Secure" in header
        assert "Path=/" in header
        assert "SameSite=lax" in header

    def test_clear_cookie(self):
        response = Response()
        clear_auth_cookie(response, make_test_settings())

        header = response.headers["set-cookie"]
        assert "workradar.session-token=" in header
        assert "Max-Age=0" in header


class TestDummyHash:
    """Tests for DUMMY_HASH."""

    def test_is_valid_bcrypt_hash(self):
        """DUMMY_HASH can be checked without error and never matches."""
        assert bcrypt.checkpw(b"anything", DUMMY_HASH) is False
