"""Application configuration loaded from environment variables.

Settings for database, API, authentication, one-time codes, and outbound
email. Uses pydantic-settings for validation and .env file support.

The settings value is handed to services explicitly (see get_settings());
business logic never reaches for a module-level singleton.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "workradar_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Minimum length for OTP_PEPPER in production
_MIN_OTP_PEPPER_LENGTH = 16


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "workradar"
    database_user: str = "workradar_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = False

    # Authentication
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "workradar"
    auth_audience: str = "workradar"
    session_ttl_minutes: int = 60 * 24
    auth_cookie_name: str = "workradar.session-token"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""
    bcrypt_rounds: int = 12
    # Login currently succeeds for unverified accounts; flip to gate sessions
    # behind email verification.
    require_verified_email: bool = False

    # One-time codes
    otp_ttl_seconds: int = 120
    otp_digits: int = 6
    otp_lockout_threshold: int = 5
    otp_lockout_minutes: int = 15
    otp_pepper: SecretStr = SecretStr("workradar-dev-otp-pepper")
    mfa_challenge_ttl_seconds: int = 300

    # Account policy
    max_handle_length: int = 50
    max_secret_length: int = 128
    # Empty list accepts any domain, e.g. ["gmail.com"] restricts sign-ups
    allowed_email_domains: list[str] = []

    # Email (Resend)
    resend_api_key: SecretStr = SecretStr("")
    email_from: str = "noreply@workradar.app"
    email_from_name: str = "Workradar"

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements and policy bounds.

        Checks:
        - OTP TTL, width, lockout threshold/window and challenge TTL are positive
        - SameSite=None requires the Secure flag (browser requirement)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        - OTP_PEPPER must be overridden in production
        """
        for name in (
            "otp_ttl_seconds",
            "otp_digits",
            "otp_lockout_threshold",
            "otp_lockout_minutes",
            "mfa_challenge_ttl_seconds",
            "session_ttl_minutes",
            "max_handle_length",
            "max_secret_length",
        ):
            value = getattr(self, name)
            if value <= 0:
                msg = f"{name.upper()} must be positive. Got: {value}"
                raise ValueError(msg)

        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

            pepper = self.otp_pepper.get_secret_value()
            if pepper == "workradar-dev-otp-pepper" or (
                len(pepper) < _MIN_OTP_PEPPER_LENGTH
            ):
                msg = "OTP_PEPPER must be set to a long random value in production."
                raise ValueError(msg)

        return self

    @property
    def email_configured(self) -> bool:
        """True when outbound email has an API key."""
        return bool(self.resend_api_key.get_secret_value())


settings = Settings()


def get_settings() -> Settings:
    """Dependency that provides the process settings.

    Tests override this dependency to inject their own Settings value.
    """
    return settings
