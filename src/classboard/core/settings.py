"""Application settings and configuration.

This module defines all configuration options for the Classboard application.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ONE_YEAR_SECONDS = 365 * 24 * 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Classboard", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Seeded administrator account
    admin_email: str | None = Field(default=None, alias="ADMIN_EMAIL")
    admin_name: str = Field(default="Administrator", alias="ADMIN_NAME")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Visitor identity (signed cookie and fingerprint hashing)
    visitor_cookie_secret: str | None = Field(default=None, alias="VISITOR_COOKIE_SECRET")
    visitor_cookie_name: str = Field(default="__vid", alias="VISITOR_COOKIE_NAME")
    visitor_cookie_max_age: int = Field(
        default=ONE_YEAR_SECONDS,
        alias="VISITOR_COOKIE_MAX_AGE",
    )
    trust_proxy: bool = Field(default=True, alias="TRUST_PROXY")

    # Database configuration
    database_url: str = Field(default="sqlite:///./classboard.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Realtime delivery
    ws_outbound_queue_size: int = Field(default=100, alias="WS_OUTBOUND_QUEUE_SIZE")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["http://localhost:3001"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "HEAD", "POST", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["Content-Type", "Authorization", "X-Requested-With"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Return True when running with production cookie and proxy rules."""
        return self.environment.lower() == "production"

    @property
    def identity_secret(self) -> str:
        """Return the secret used for visitor cookies and fingerprints.

        Falls back to the JWT signing secret when no dedicated secret is set.
        """
        return self.visitor_cookie_secret or self.secret_key

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url


settings = Settings()  # type: ignore[call-arg]
