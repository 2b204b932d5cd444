"""One-time code generation and formatting.

A typed code has two renderings: the bare digits (``"482913"``) and the
prefixed form carrying its purpose tag (``"REG-482913"``). Codes are drawn
from the ``secrets`` CSPRNG; nothing here touches the database.

Accepted shapes (width N, default 6):
- exactly N ASCII digits
- ``TAG-`` followed by exactly N ASCII digits, TAG in {REG, PWD}
"""

import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass
from enum import Enum

DEFAULT_CODE_WIDTH = 6

_SEPARATOR = "-"


class OTPPurpose(str, Enum):
    """Closed set of purpose tags embedded in prefixed codes."""

    REGISTRATION = "REG"
    PASSWORD_RESET = "PWD"


_TAG_ALTERNATION = "|".join(p.value for p in OTPPurpose)


@dataclass(frozen=True)
class TypedCode:
    """A generated code bound to its purpose.

    Attributes:
        digits: Bare fixed-width decimal string.
        purpose: Flow the code belongs to.
    """

    digits: str
    purpose: OTPPurpose

    @property
    def prefixed(self) -> str:
        """Code rendered as ``TAG-NNNNNN``."""
        return f"{self.purpose.value}{_SEPARATOR}{self.digits}"

    def __str__(self) -> str:
        return self.prefixed


def _random_digits(width: int) -> str:
    # No leading zero: the full range is 10^(w-1) .. 10^w - 1
    low = 10 ** (width - 1)
    return str(low + secrets.randbelow(9 * low))


def generate(purpose: OTPPurpose, width: int = DEFAULT_CODE_WIDTH) -> TypedCode:
    """Generate an unpredictable code for a purpose.

    Args:
        purpose: Flow the code is issued for.
        width: Number of digits.

    Returns:
        TypedCode with bare and prefixed renderings.
    """
    return TypedCode(digits=_random_digits(width), purpose=purpose)


def generate_mfa_code(width: int = DEFAULT_CODE_WIDTH) -> str:
    """Generate bare digits for a login challenge."""
    return _random_digits(width)


def _shape_pattern(width: int, allow_prefixed: bool) -> re.Pattern[str]:
    digits = f"[0-9]{{{width}}}"
    if allow_prefixed:
        return re.compile(f"(?:(?:{_TAG_ALTERNATION}){_SEPARATOR})?{digits}")
    return re.compile(digits)


def validate_shape(
    code: str,
    allow_prefixed: bool = True,
    width: int = DEFAULT_CODE_WIDTH,
) -> bool:
    """Check that a code string is well-formed.

    ``\\d`` is deliberately avoided: it matches non-ASCII digits.

    Args:
        code: Candidate code string (already normalized).
        allow_prefixed: Accept the ``TAG-NNNNNN`` rendering.
        width: Required number of digits.

    Returns:
        True iff the string matches exactly one accepted shape.
    """
    if not isinstance(code, str):
        return False
    return _shape_pattern(width, allow_prefixed).fullmatch(code) is not None


def normalize_code(raw: str) -> str:
    """Strip surrounding whitespace and upper-case any purpose tag."""
    return raw.strip().upper()


def extract_digits(code: str) -> str:
    """Return the bare digit payload of either rendering."""
    return code.rsplit(_SEPARATOR, 1)[-1]


def extract_purpose(code: str) -> OTPPurpose | None:
    """Return the purpose tag carried by a prefixed code.

    Returns:
        The OTPPurpose, or None when the code carries no recognized prefix.
    """
    if _SEPARATOR not in code:
        return None
    tag = code.split(_SEPARATOR, 1)[0]
    try:
        return OTPPurpose(tag)
    except ValueError:
        return None


def hash_code(digits: str, pepper: str) -> str:
    """Keyed hash of bare digits for storage and lookup.

    Args:
        digits: Bare digit payload.
        pepper: Server-side secret from settings.

    Returns:
        HMAC-SHA256 hex digest.
    """
    return hmac.new(pepper.encode(), digits.encode(), hashlib.sha256).hexdigest()


def hash_token(token: str) -> str:
    """SHA-256 hex digest of an opaque challenge token."""
    return hashlib.sha256(token.encode()).hexdigest()
