"""Account input validation.

Security: handles are echoed back into HTML emails and client UIs, so
markup/script fragments and SQL-injection shaped strings are rejected at the
edge. Queries are always parameterized; these checks are defense-in-depth.

Pipeline:
- normalize_email / normalize_handle: trim (+ lower-case for email)
- validate_email: syntax, plus optional domain allow-list
- validate_handle: non-empty, length, no markup, no SQL fragments
"""

import re
import unicodedata

from workradar.core.errors import ValidationError

# Local part and dotted domain with a 2+ letter TLD
_EMAIL_PATTERN = re.compile(
    r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9](?:[A-Za-z0-9\-]*[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9\-]*[A-Za-z0-9])?)*\.[A-Za-z]{2,}"
)

_MAX_EMAIL_LENGTH = 255

_MAX_PROFILE_PICTURE_LENGTH = 2048

# Scheme, host, then no whitespace, quotes or angle brackets
_PROFILE_PICTURE_PATTERN = re.compile(
    r"https?://[A-Za-z0-9.\-]+(?::\d{1,5})?(?:/[^\s\"'<>]*)?"
)

# Markup, script URLs and inline event handlers
_XSS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<\s*/?\s*[a-z!]", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"vbscript\s*:", re.IGNORECASE),
    re.compile(r"data\s*:\s*text/html", re.IGNORECASE),
    re.compile(r"\bon[a-z]+\s*=", re.IGNORECASE),
    re.compile(r"[<>]"),
)

# Statement keywords in injection position, comment markers, tautologies
_SQL_INJECTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(?:union\s+(?:all\s+)?select|select\s+.+\s+from|insert\s+into|"
        r"delete\s+from|drop\s+(?:table|database)|update\s+\w+\s+set|"
        r"exec(?:ute)?\s*\()",
        re.IGNORECASE,
    ),
    re.compile(r"--|/\*|\*/|;"),
    re.compile(r"'\s*(?:or|and)\s+'?\w+'?\s*=\s*'?\w+", re.IGNORECASE),
    re.compile(r"\b(?:or|and)\s+\d+\s*=\s*\d+", re.IGNORECASE),
)


def normalize_email(email: str) -> str:
    """Trim and lower-case an email address."""
    return email.strip().lower()


def normalize_handle(handle: str) -> str:
    """Trim a handle and apply NFKC so lookalike forms compare equal."""
    return unicodedata.normalize("NFKC", handle.strip())


def contains_markup(value: str) -> bool:
    """True if value looks like HTML/script injection."""
    return any(p.search(value) for p in _XSS_PATTERNS)


def contains_sql_injection(value: str) -> bool:
    """True if value looks like an SQL-injection payload."""
    return any(p.search(value) for p in _SQL_INJECTION_PATTERNS)


def validate_email(email: str, allowed_domains: list[str] | None = None) -> None:
    """Validate an already-normalized email address.

    Args:
        email: Normalized address.
        allowed_domains: Accepted domains. Empty or None accepts any domain.

    Raises:
        ValidationError: If the address is empty, malformed or off-list.
    """
    if not email:
        raise ValidationError("Email is required")
    if len(email) > _MAX_EMAIL_LENGTH or not _EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("Invalid email format")
    if allowed_domains:
        domain = email.rsplit("@", 1)[1]
        if domain not in {d.strip().lower() for d in allowed_domains}:
            raise ValidationError(
                "Email domain is not allowed",
                details=[{"field": "email", "allowed": sorted(allowed_domains)}],
            )


def validate_handle(handle: str, max_length: int = 50) -> None:
    """Validate an already-normalized handle.

    Raises:
        ValidationError: If the handle is empty, too long or unsafe.
    """
    if not handle:
        raise ValidationError("Username is required")
    if len(handle) > max_length:
        raise ValidationError(f"Username must not exceed {max_length} characters")
    if contains_markup(handle):
        raise ValidationError("Username contains invalid characters")
    if contains_sql_injection(handle):
        raise ValidationError("Username contains invalid characters")


def validate_profile_picture(url: str) -> None:
    """Validate an avatar reference (absolute http(s) URL).

    Raises:
        ValidationError: If the value is too long or not an http(s) URL.
    """
    if len(url) > _MAX_PROFILE_PICTURE_LENGTH:
        raise ValidationError("Profile picture URL is too long")
    if not _PROFILE_PICTURE_PATTERN.fullmatch(url):
        raise ValidationError("Profile picture must be an http(s) URL")
