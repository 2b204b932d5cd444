"""Email bodies for account notifications.

Each builder returns an EmailContent with subject, HTML and plain-text
renderings. User-provided text is HTML-escaped before interpolation.
"""

import html
from dataclasses import dataclass

_PRODUCT = "Workradar"

_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: sans-serif; background-color: #f5f5f5; padding: 24px;">
  <div style="max-width: 560px; margin: 0 auto; background: #ffffff; padding: 32px;">
    <h1 style="margin-top: 0;">{heading}</h1>
    {body}
    <p style="color: #9ca3af; font-size: 12px;">
      This email was sent automatically by {product}. Please do not reply.
    </p>
  </div>
</body>
</html>
"""

_CODE_BLOCK = (
    '<p style="font-size: 32px; letter-spacing: 8px; font-family: monospace;">'
    "<strong>{code}</strong></p>"
)


@dataclass(frozen=True)
class EmailContent:
    """Rendered email ready for dispatch."""

    subject: str
    html: str
    text: str


def _render(heading: str, body: str) -> str:
    return _LAYOUT.format(heading=heading, body=body, product=_PRODUCT)


def _minutes(ttl_seconds: int) -> str:
    minutes = max(1, ttl_seconds // 60)
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


def registration_code_email(code: str, ttl_seconds: int) -> EmailContent:
    """Account verification email carrying a registration code."""
    safe_code = html.escape(code)
    lifetime = _minutes(ttl_seconds)
    body = (
        "<p>Thanks for signing up. Enter this code to verify your email:</p>"
        + _CODE_BLOCK.format(code=safe_code)
        + f"<p>The code expires in {lifetime}. Never share it with anyone.</p>"
        + "<p>If you did not create an account, ignore this email.</p>"
    )
    return EmailContent(
        subject=f"{_PRODUCT} - Verify your account",
        html=_render("Verify your email", body),
        text=(
            f"Your {_PRODUCT} verification code is {code}.\n"
            f"It expires in {lifetime}."
        ),
    )


def password_reset_code_email(code: str, ttl_seconds: int) -> EmailContent:
    """Password reset email carrying a reset code."""
    safe_code = html.escape(code)
    lifetime = _minutes(ttl_seconds)
    body = (
        "<p>We received a request to reset your password. Use this code:</p>"
        + _CODE_BLOCK.format(code=safe_code)
        + f"<p>The code expires in {lifetime}. Never share it with anyone.</p>"
        + "<p>If you did not request a reset, ignore this email. "
        + "Your account is still safe.</p>"
    )
    return EmailContent(
        subject=f"{_PRODUCT} - Password reset code",
        html=_render("Reset your password", body),
        text=(
            f"Your {_PRODUCT} password reset code is {code}.\n"
            f"It expires in {lifetime}."
        ),
    )


def mfa_code_email(code: str, ttl_seconds: int) -> EmailContent:
    """Sign-in confirmation email carrying an MFA code."""
    safe_code = html.escape(code)
    lifetime = _minutes(ttl_seconds)
    body = (
        "<p>Enter this code to finish signing in:</p>"
        + _CODE_BLOCK.format(code=safe_code)
        + f"<p>The code expires in {lifetime}.</p>"
        + "<p>If this was not you, change your password now.</p>"
    )
    return EmailContent(
        subject=f"{_PRODUCT} - Sign-in code",
        html=_render("Confirm your sign-in", body),
        text=(
            f"Your {_PRODUCT} sign-in code is {code}.\nIt expires in {lifetime}."
        ),
    )


def welcome_email(username: str) -> EmailContent:
    """Welcome email sent once the address is verified."""
    safe_name = html.escape(username)
    body = (
        f"<p>Hi {safe_name}, your email is verified and your account is ready.</p>"
        "<p>Start organizing your tasks today.</p>"
    )
    return EmailContent(
        subject=f"Welcome to {_PRODUCT}",
        html=_render(f"Welcome to {_PRODUCT}", body),
        text=f"Hi {username}, your {_PRODUCT} account is ready.",
    )
