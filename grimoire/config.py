"""
Application Configuration Module

This module uses Pydantic Settings for type-safe configuration management.

Settings are read from environment variables (case-insensitive) and fall
back to a local .env file, then to the defaults declared below. Invalid
values fail at startup rather than at request time.

PATTERN: Settings Singleton
===========================
A single Settings instance is cached with @lru_cache so every module sees
the same configuration and the .env file is read once.

Usage:
    from grimoire.config import get_settings

    settings = get_settings()
    print(settings.app_name)
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    SECURITY NOTE:
    ==============
    - secret_key has a validator that rejects placeholder values
    - The Cloudinary backend refuses to start without credentials
    """

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = Field(
        default="Grimoire Books API",
        description="Application name displayed in docs and logs"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (detailed errors, auto-reload)"
    )
    api_version: str = Field(
        default="1.0.0",
        description="API version shown in the OpenAPI document"
    )
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the server to"
    )
    port: int = Field(
        default=4000,
        description="Port to bind the server to"
    )
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production"
    )

    # -------------------------------------------------------------------------
    # Database Settings
    # -------------------------------------------------------------------------
    database_url: str = Field(
        default="sqlite:///./grimoire.db",
        description="SQLAlchemy connection URL (SQLite or PostgreSQL)"
    )
    db_pool_size: int = Field(
        default=5,
        description="Number of permanent database connections (server databases only)"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Maximum additional connections during high load"
    )

    # -------------------------------------------------------------------------
    # Security Settings
    # -------------------------------------------------------------------------
    secret_key: str = Field(
        default="REPLACE_WITH_YOUR_GENERATED_SECRET_KEY",
        description="Secret key used to sign JWT access tokens"
    )
    access_token_expire_minutes: int = Field(
        default=24 * 60,
        ge=1,
        description="Lifetime of access tokens in minutes"
    )
    allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins"
    )

    # -------------------------------------------------------------------------
    # Logging Settings
    # -------------------------------------------------------------------------
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # -------------------------------------------------------------------------
    # Rate Limiting Settings
    # -------------------------------------------------------------------------
    # Limit strings use the slowapi/limits syntax; several limits can be
    # combined with ";".
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable request rate limiting"
    )
    rate_limit_default: str = Field(
        default="100/second",
        description="Global limit applied to every route"
    )
    rate_limit_auth: str = Field(
        default="10 per 5 seconds;50 per 30 minutes",
        description="Limits for signup and login"
    )
    rate_limit_books: str = Field(
        default="5000/minute",
        description="Limits for book routes"
    )

    # -------------------------------------------------------------------------
    # Ranking Settings
    # -------------------------------------------------------------------------
    best_rated_limit: int = Field(
        default=3,
        ge=1,
        description="Number of books returned by /books/bestrating"
    )

    # -------------------------------------------------------------------------
    # Image Storage Settings
    # -------------------------------------------------------------------------
    image_storage: str = Field(
        default="local",
        description="Image backend: local or cloudinary"
    )
    images_dir: str = Field(
        default="images",
        description="Directory for locally stored images"
    )
    public_url: str = Field(
        default="http://localhost:4000",
        description="Public base URL used to build local image URLs"
    )
    cloudinary_cloud_name: str | None = Field(default=None)
    cloudinary_api_key: str | None = Field(default=None)
    cloudinary_api_secret: str | None = Field(default=None)
    cloudinary_folder: str = Field(
        default="MonVieuxGrimoire",
        description="Cloudinary folder receiving uploaded covers"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------
    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """
        Validate that secret_key is not a placeholder value.

        The application will fail to start if SECRET_KEY is not properly set.

        Raises:
            ValueError: If secret key is a placeholder or too short
        """
        placeholder_indicators = [
            "REPLACE_WITH",
            "change-me",
            "your-secret",
            "generate-with",
        ]

        for indicator in placeholder_indicators:
            if indicator.lower() in v.lower():
                raise ValueError(
                    "SECRET_KEY contains a placeholder value. "
                    "Generate a secure key with: openssl rand -hex 32"
                )

        if len(v) < 32:
            raise ValueError(
                "SECRET_KEY must be at least 32 characters long. "
                "Generate a secure key with: openssl rand -hex 32"
            )

        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        valid_envs = {"development", "staging", "production"}
        if v.lower() not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}")
        return v.lower()

    @field_validator("image_storage")
    @classmethod
    def validate_image_storage(cls, v: str) -> str:
        """Validate the image backend name."""
        valid_backends = {"local", "cloudinary"}
        if v.lower() not in valid_backends:
            raise ValueError(f"image_storage must be one of {valid_backends}")
        return v.lower()

    @field_validator("public_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_cloudinary_credentials(self) -> "Settings":
        """The Cloudinary backend needs a cloud name, an API key and a secret."""
        if self.image_storage == "cloudinary":
            missing = [
                name
                for name in ("cloudinary_cloud_name", "cloudinary_api_key", "cloudinary_api_secret")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"image_storage=cloudinary requires: {', '.join(missing)}"
                )
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    The first call creates the Settings instance, loads .env and validates;
    later calls return the cached instance.

    Returns:
        Cached Settings instance
    """
    return Settings()
