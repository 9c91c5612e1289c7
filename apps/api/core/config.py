"""
Settings for the Daybook API, read from the environment (and .env).

Settings are resolved once at import time; tests set their environment
before importing anything from the app.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (e.g. sqlite:///./daybook.db for local runs).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="daybook")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour
    # Upper bound for a single statement; a timed-out hydration rolls back whole.
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=5000, ge=100)

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://redis:6379/0")

    # Bearer token verification. Required; shared with the account service.
    SECRET_KEY: str = Field(default=..., min_length=32, description="HS256 key for bearer tokens")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Cache Configuration
    CACHE_ENABLED: bool = Field(default=True)
    # Active template lookups are read-heavy and invalidated on activation.
    CACHE_TTL_ACTIVE_TEMPLATE: int = Field(default=60)

    # Content templates
    # Comma-separated list of roles that may own a content template.
    TEMPLATE_ROLES: str = Field(default="public,admin")
    DEFAULT_ROLE: str = Field(default="public")

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    @property
    def template_roles(self) -> List[str]:
        return [r.strip() for r in self.TEMPLATE_ROLES.split(",") if r.strip()]

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:"
            f"{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )


# Global settings instance
settings = Settings()
