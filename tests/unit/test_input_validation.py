"""Tests for account input validation."""

import pytest

from workradar.core.errors import ValidationError
from workradar.core.input_validation import (
    contains_markup,
    contains_sql_injection,
    normalize_email,
    normalize_handle,
    validate_email,
    validate_handle,
    validate_profile_picture,
)


class TestNormalize:
    """Tests for normalize_email() and normalize_handle()."""

    def test_email_trimmed_and_lowered(self):
        assert normalize_email("  User@Example.COM ") == "user@example.com"

    def test_handle_trimmed_not_lowered(self):
        """Handles keep their case."""
        assert normalize_handle("  Alice ") == "Alice"

    def test_handle_nfkc(self):
        """Fullwidth forms fold to ASCII."""
        assert normalize_handle("ａｌｉｃｅ") == "alice"


class TestValidateEmail:
    """Tests for validate_email()."""

    @pytest.mark.parametrize(
        "email",
        ["alice@example.com", "a.b+tag@mail.example.co.uk", "x_y-z@example.io"],
    )
    def test_valid(self, email):
        validate_email(email)

    @pytest.mark.parametrize(
        "email",
        ["plainaddress", "@example.com", "alice@", "alice@example", "a b@example.com"],
    )
    def test_invalid(self, email):
        with pytest.raises(ValidationError, match="Invalid email format"):
            validate_email(email)

    def test_empty(self):
        with pytest.raises(ValidationError, match="Email is required"):
            validate_email("")

    def test_too_long(self):
        with pytest.raises(ValidationError):
            validate_email("a" * 250 + "@example.com")

    def test_allow_list(self):
        """Only listed domains pass when a list is configured."""
        validate_email("alice@example.com", ["example.com"])
        with pytest.raises(ValidationError, match="domain"):
            validate_email("alice@example.org", ["example.com"])

    def test_empty_allow_list_accepts_any(self):
        validate_email("alice@example.org", [])


class TestValidateHandle:
    """Tests for validate_handle() and the injection detectors."""

    @pytest.mark.parametrize("handle", ["alice", "Bob_99", "jean-luc", "Zoë"])
    def test_valid(self, handle):
        validate_handle(handle)

    def test_empty(self):
        with pytest.raises(ValidationError, match="Username is required"):
            validate_handle("")

    def test_length_limit(self):
        validate_handle("a" * 50)
        with pytest.raises(ValidationError, match="50"):
            validate_handle("a" * 51)

    @pytest.mark.parametrize(
        "value",
        [
            "<script>alert(1)</script>",
            "javascript:alert(1)",
            "x onmouseover=alert(1)",
            "a>b",
        ],
    )
    def test_markup_detected(self, value):
        assert contains_markup(value)
        with pytest.raises(ValidationError, match="invalid characters"):
            validate_handle(value)

    @pytest.mark.parametrize(
        "value",
        [
            "admin'--",
            "x' OR 'a'='a",
            "1 or 1=1",
            "x; DROP TABLE users",
            "UNION SELECT password FROM users",
            "/* comment */",
        ],
    )
    def test_sql_injection_detected(self, value):
        assert contains_sql_injection(value)
        with pytest.raises(ValidationError, match="invalid characters"):
            validate_handle(value)

    @pytest.mark.parametrize("value", ["orlando", "selecta", "andy", "drop_bear"])
    def test_keywords_inside_words_allowed(self, value):
        """Plain handles containing SQL keywords as substrings pass."""
        assert not contains_sql_injection(value)


class TestValidateProfilePicture:
    """Tests for validate_profile_picture()."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://cdn.example.com/a.png",
            "http://localhost:8080/avatars/1.jpg",
            "https://example.com",
        ],
    )
    def test_valid(self, url):
        validate_profile_picture(url)

    @pytest.mark.parametrize(
        "url",
        [
            "javascript:alert(1)",
            "ftp://example.com/a.png",
            "https://example.com/a.png\" onerror=\"x",
            "not a url",
        ],
    )
    def test_invalid(self, url):
        with pytest.raises(ValidationError):
            validate_profile_picture(url)

    def test_too_long(self):
        with pytest.raises(ValidationError, match="too long"):
            validate_profile_picture("https://example.com/" + "a" * 2048)
