"""
core/config.py
--------------
Centralised settings management using pydantic-settings.
All configuration is loaded from environment variables / .env file.
This is the single source of truth for application configuration.
"""

import json
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── App ──────────────────────────────────────────────────────────────
    APP_NAME: str = "PHROFS Backend"
    APP_ENV: str = "development"
    DEBUG: bool = False

    # ── Security ─────────────────────────────────────────────────────────
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    ADMIN_TOKEN_EXPIRE_MINUTES: int = 60 * 8
    # Lifetime of the OAuth session cookie and of a pending handshake
    SESSION_MAX_AGE_SECONDS: int = 600

    # Legacy shared-password admin access, one password per role.
    # An empty value disables that role's password.
    ADMIN_PASSWORD: str = ""
    MODERATOR_PASSWORD: str = ""
    VIEWER_PASSWORD: str = ""

    # ── Tenants ──────────────────────────────────────────────────────────
    SCHOOLS: List[str] = ["dlsu", "ateneo", "up", "benilde"]
    DEFAULT_SCHOOL: str = "dlsu"

    # ── Storage ──────────────────────────────────────────────────────────
    DATABASE_DIR: str = "databases"
    STORE_CACHE_KIB: int = 20000
    STORE_BUSY_TIMEOUT_MS: int = 5000
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024

    # ── OAuth ────────────────────────────────────────────────────────────
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/auth/google/callback"
    OAUTH_SUCCESS_REDIRECT: str = "/auth-success.html"

    # ── CORS ─────────────────────────────────────────────────────────────
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    @field_validator("ALLOWED_ORIGINS", "SCHOOLS", mode="before")
    @classmethod
    def parse_list(cls, v):
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator("SCHOOLS")
    @classmethod
    def normalise_schools(cls, v: List[str]) -> List[str]:
        return [s.strip().lower() for s in v if s.strip()]

    def role_passwords(self) -> dict[str, str]:
        """Configured legacy passwords keyed by role, highest role first."""
        pairs = {
            "admin": self.ADMIN_PASSWORD,
            "moderator": self.MODERATOR_PASSWORD,
            "viewer": self.VIEWER_PASSWORD,
        }
        return {role: pw for role, pw in pairs.items() if pw}


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings factory.
    Use this everywhere to avoid re-reading .env on every call.
    """
    return Settings()


settings = get_settings()
