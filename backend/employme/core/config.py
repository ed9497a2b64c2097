"""Application configuration loaded from environment variables.

Settings for the database, HTTP surface, session cookies, credential policy,
federated providers, and outbound email. Uses pydantic-settings for
validation and .env file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "employme_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Floor for the configurable password policy. The legacy registration form
# accepted 6 characters; anything lower is rejected at startup.
_PASSWORD_MIN_LENGTH_FLOOR = 6


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
    database_name: str = "employme"
    database_user: str = "employme_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:5173"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Sessions
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "employme"
    auth_audience: str = "employme"
    auth_cookie_name: str = "employme.session-token"
    auth_cookie_secure: bool = True
    # None = strict in production, lax elsewhere
    auth_cookie_samesite: Literal["lax", "strict", "none"] | None = None
    auth_cookie_domain: str = ""
    session_ttl_days: int = 30

    # Credential policy
    password_min_length: int = 8
    bcrypt_rounds: int = 12
    verification_code_ttl_minutes: int = 15
    reset_code_ttl_minutes: int = 15

    # Federated providers
    google_client_id: str = ""
    google_client_secret: SecretStr = SecretStr("")
    google_callback_url: str = ""
    linkedin_client_id: str = ""
    linkedin_client_secret: SecretStr = SecretStr("")
    linkedin_callback_url: str = ""
    facebook_client_id: str = ""
    facebook_client_secret: SecretStr = SecretStr("")
    facebook_callback_url: str = ""

    # Email
    email_from: str = "EmployMe <noreply@employme.com>"
    resend_api_key: SecretStr = SecretStr("")

    # Frontend URL (OAuth callbacks redirect back here)
    frontend_url: str = "http://localhost:5173"

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def session_cookie_samesite(self) -> Literal["lax", "strict", "none"]:
        """Effective SameSite policy for the session cookie."""
        if self.auth_cookie_samesite is not None:
            return self.auth_cookie_samesite
        return "strict" if self.environment == "production" else "lax"

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate security requirements.

        Checks:
        - SameSite=None requires Secure flag (browser requirement)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Password policy must not drop below the legacy floor
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        """
        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "Session cookies are incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.password_min_length < _PASSWORD_MIN_LENGTH_FLOOR:
            msg = (
                f"PASSWORD_MIN_LENGTH must be at least {_PASSWORD_MIN_LENGTH_FLOOR}. "
                f"Got: {self.password_min_length}"
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
                    "characters in production. Generate with: "
                    'python -c "import secrets; print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

        return self


settings = Settings()
