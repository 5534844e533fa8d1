"""Application configuration management"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent

OIDC_REQUIRED_VARS = ("OKTA_ISSUER", "OKTA_CLIENT_ID", "OKTA_CLIENT_SECRET", "AUTH_URL")


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "SaaS Control"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database - empty DATABASE_URL runs the console on in-memory mock data
    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    DB_INIT_MODE: str = "migrate"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    # Session security
    SECRET_KEY: str = "dev-secret-key-change-in-production-use-openssl-rand-hex-32"
    ALGORITHM: str = "HS256"
    SESSION_EXPIRE_HOURS: int = 24
    SESSION_COOKIE_NAME: str = "saas_control_session"

    # Authentication gate (OIDC via Okta)
    AUTH_ENABLED: bool = False
    OKTA_ISSUER: str = ""
    OKTA_CLIENT_ID: str = ""
    OKTA_CLIENT_SECRET: str = ""
    AUTH_URL: str = ""

    # Rate Limiting
    SIGN_IN_RATE_LIMIT_PER_MINUTE: int = 10
    SIGN_IN_RATE_LIMIT_PER_HOUR: int = 50

    # Exports
    EXPORT_MAX_ROWS: int = 50000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:3000","http://example.com"]
            CORS_ORIGINS=http://localhost:3000,http://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @property
    def use_database(self) -> bool:
        """True when a relational store is configured"""
        return bool(self.DATABASE_URL.strip())

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "app.log")
        return p

    def safe_auth_host(self) -> str:
        """Host part of AUTH_URL for display, without path or credentials"""
        if not self.AUTH_URL:
            return "not configured"
        host = self.AUTH_URL.split("://", 1)[-1].split("/", 1)[0]
        return host.rsplit("@", 1)[-1] or "invalid URL"

    def validate_auth_settings(self) -> None:
        """
        Validate the authentication gate configuration.

        Does nothing while AUTH_ENABLED is false.

        Raises:
            ValueError: If AUTH_ENABLED is true and OIDC variables are missing.
        """
        if not self.AUTH_ENABLED:
            return

        missing = [name for name in OIDC_REQUIRED_VARS if not getattr(self, name)]
        if missing:
            raise ValueError(
                f"AUTH_ENABLED=true but missing required env vars: {', '.join(missing)}"
            )

    def validate_security_settings(self) -> None:
        """
        Validate runtime security defaults in production.

        Raises:
            ValueError: If insecure defaults are detected.
        """
        if self.ENVIRONMENT.lower() != "production":
            return

        insecure_secret_markers = {
            "",
            "dev-secret-key-change-in-production-use-openssl-rand-hex-32",
            "change-me",
        }

        if self.SECRET_KEY in insecure_secret_markers or len(self.SECRET_KEY) < 32:
            raise ValueError(
                "Insecure SECRET_KEY for production. Use a strong key (e.g. `openssl rand -hex 32`)."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
