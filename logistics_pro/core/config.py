"""
Application configuration

SECURITY: Defaults are fail-safe for production.
- DEBUG defaults to False
- SECRET_KEY and DATABASE_URL have no defaults (will fail if not set)
- Runtime validation catches insecure configurations
"""
import json
import os
import logging
from typing import List
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Default CORS origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App - defaults are PRODUCTION safe
    APP_NAME: str = "Logistics Pro"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    # Database - NO DEFAULT (will fail if not set)
    # postgresql+asyncpg://... in production, sqlite+aiosqlite:///... for local runs
    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600
    DB_AUTO_CREATE_TABLES: bool = False

    # Auth - NO DEFAULT SECRET KEY (will fail if not set)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # CORS - accepts JSON array or comma-separated string
    CORS_ORIGINS: List[str] = DEFAULT_CORS_ORIGINS

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            if not v or v.strip() == "":
                return DEFAULT_CORS_ORIGINS
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Tracking numbers
    TRACKING_NUMBER_PREFIX: str = "SH"
    TRACKING_NUMBER_RANDOM_LENGTH: int = 4
    TRACKING_NUMBER_MAX_ATTEMPTS: int = 5

    # Push notifications (empty URL = log only)
    PUSH_GATEWAY_URL: str = ""
    PUSH_GATEWAY_API_KEY: str = ""
    PUSH_TIMEOUT_SECONDS: float = 5.0

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/minute"
    RATE_LIMIT_AUTH: str = "5/minute"
    RATE_LIMIT_TRACKING: str = "30/minute"

    @field_validator("TRACKING_NUMBER_PREFIX")
    @classmethod
    def validate_tracking_prefix(cls, v):
        if not v.isalpha():
            raise ValueError("TRACKING_NUMBER_PREFIX must be alphabetic")
        return v.upper()

    @model_validator(mode="after")
    def validate_production_config(self):
        """Runtime validation to catch insecure production configurations."""
        if self.ENVIRONMENT == "production":
            errors = []

            if self.DEBUG:
                errors.append(
                    "DEBUG=True is forbidden in production. "
                    "Set DEBUG=false or ENVIRONMENT=development"
                )

            insecure_secrets = [
                "your-secret-key",
                "change-in-production",
                "secret",
                "password",
                "changeme",
            ]
            if any(bad in self.SECRET_KEY.lower() for bad in insecure_secrets):
                errors.append(
                    "Insecure SECRET_KEY detected in production. "
                    "Generate a secure key: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
                )

            if "localhost" in self.DATABASE_URL or "127.0.0.1" in self.DATABASE_URL:
                errors.append(
                    "Localhost DATABASE_URL detected in production. "
                    "Configure proper database connection."
                )

            cors_warnings = []
            for origin in self.CORS_ORIGINS:
                if origin == "*":
                    cors_warnings.append("Wildcard '*' CORS origin is insecure in production")
                elif "localhost" in origin or "127.0.0.1" in origin:
                    cors_warnings.append(f"Localhost CORS origin '{origin}' should be removed in production")

            if cors_warnings:
                logger.warning(
                    "CORS WARNINGS in production:\n" +
                    "\n".join(f"  - {w}" for w in cors_warnings)
                )

            if errors:
                raise ValueError(
                    "PRODUCTION SECURITY VIOLATIONS:\n" + "\n".join(f"  - {e}" for e in errors)
                )

        return self


# Try to load settings, provide helpful error on failure
try:
    settings = Settings()
except Exception:
    # In development, allow fallback defaults
    if os.getenv("ENVIRONMENT", "development") == "development":
        logger.warning(
            "Settings validation failed, using development defaults. "
            "Set DATABASE_URL and SECRET_KEY in .env file."
        )
        os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./logistics_pro.db")
        os.environ.setdefault("SECRET_KEY", "dev-only-signing-key-not-for-production")
        os.environ.setdefault("ENVIRONMENT", "development")
        settings = Settings()
    else:
        raise
