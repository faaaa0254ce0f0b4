"""Configuration management for the Book Club API.

Settings are read once from the environment (prefix ``BOOK_CLUB_``) or a
``.env`` file and validated with Pydantic v2:
1. Service Metadata - name and version reported by the health endpoint
2. HTTP Configuration - bind address and CORS origins
3. Security - token signing secret and password hashing cost
4. Persistence - SQLite path or a full SQLAlchemy URL
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Book Club API configuration.

    Every field can be overridden with an environment variable, e.g.
    ``BOOK_CLUB_HTTP_PORT=8080`` or ``BOOK_CLUB_JWT_SECRET=...``.
    """

    model_config = SettingsConfigDict(
        env_prefix="BOOK_CLUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    # === Service Metadata ===

    app_name: str = Field(
        default="book-club-api",
        description="Service name reported by the health endpoint",
        pattern=r"^[a-z0-9-]+$",
    )

    app_version: str = Field(
        default="0.1.0",
        description="Service version",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    environment: str = Field(
        default="production",
        description="Deployment environment; development exposes error details",
        pattern=r"^(development|production)$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/book_club.db"),
        description="SQLite database file path",
    )

    database_url: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL; takes precedence over database_path",
    )

    # === HTTP Configuration ===

    http_host: str = Field(
        default="127.0.0.1",
        description="Address the HTTP server binds to",
    )

    http_port: int = Field(
        default=3001,
        description="Port the HTTP server listens on",
        ge=1024,
        le=65535,
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware",
    )

    # === Security Configuration ===

    jwt_secret: str = Field(
        default="change-me-book-club-development-secret",
        description="Secret used to sign bearer tokens",
        min_length=16,
        repr=False,
    )

    token_ttl_hours: int = Field(
        default=24,
        description="Lifetime of issued bearer tokens",
        ge=1,
        le=720,
    )

    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor for password hashes",
        ge=4,
        le=16,
    )

    # === Observability ===

    logfire_token: str | None = Field(
        default=None,
        description="Logfire write token",
        repr=False,
    )

    logfire_send: bool = Field(
        default=False,
        description="Export spans to Logfire",
    )

    logfire_console: bool = Field(
        default=False,
        description="Print spans to the console",
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("app_name")
    @classmethod
    def validate_app_name(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("App name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("App name must not exceed 50 characters")
        return v

    @field_validator("http_port")
    @classmethod
    def validate_http_port(cls, v: int) -> int:
        """Refuse ports that usually belong to other services."""
        reserved_ports = {3306, 5432, 6379, 27017}
        if v in reserved_ports:
            raise ValueError(f"Port {v} is commonly reserved, choose another")
        return v

    # === Computed Properties ===

    @property
    def is_development(self) -> bool:
        """Development mode exposes internal error details in responses."""
        return self.environment == "development" or self.debug

    @property
    def server_info(self) -> dict[str, str]:
        return {
            "name": self.app_name,
            "version": self.app_version,
            "environment": self.environment,
        }

    def get_database_url(self) -> str:
        """Get the SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.database_path}"


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: Settings | None = None


def get_config() -> Settings:
    """Get or create the process-wide settings instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = Settings()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
