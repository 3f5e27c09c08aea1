"""
core/config.py
--------------
Centralised settings management using pydantic-settings.
All configuration is loaded from environment variables / .env file.
This is the single source of truth for application configuration.
"""

from functools import lru_cache
from typing import List, Literal

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
    APP_NAME: str = "Letter Numbering Service"
    APP_ENV: str = "development"
    DEBUG: bool = False

    # ── Security ─────────────────────────────────────────────────────────
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    # Claims probed in order for the principal's user principal name
    PRINCIPAL_CLAIMS: List[str] = ["preferred_username", "upn", "email", "sub"]

    # ── Access control ───────────────────────────────────────────────────
    # When True, an empty access list grants Admin to everyone (first run).
    ACCESS_BOOTSTRAP_MODE: bool = True

    # ── Backends ─────────────────────────────────────────────────────────
    RECORD_STORE_BACKEND: Literal["memory", "database", "graph"] = "memory"
    BLOB_STORE_BACKEND: Literal["memory", "graph", "s3"] = "memory"

    # ── Collections ──────────────────────────────────────────────────────
    COMPANY_LIST_NAME: str = "LetterCompanies"
    LETTER_LIST_NAME: str = "LetterNumbers"
    USER_ACCESS_LIST_NAME: str = "LetterUserAccess"
    LIST_PAGE_SIZE: int = 500

    # ── Attachments ──────────────────────────────────────────────────────
    LETTER_LIBRARY_NAME: str = "Documents"
    LETTER_LIBRARY_ROOT: str = ""

    # ── Database ─────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./letters.db"

    # ── Microsoft Graph / SharePoint ─────────────────────────────────────
    GRAPH_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_AUTHORITY: str = "https://login.microsoftonline.com"
    GRAPH_TENANT_ID: str = ""
    GRAPH_CLIENT_ID: str = ""
    GRAPH_CLIENT_SECRET: str = ""
    GRAPH_TIMEOUT_SECONDS: float = 30.0
    SHAREPOINT_SITE_URL: str = ""

    # ── S3 ───────────────────────────────────────────────────────────────
    AWS_REGION: str = "eu-central-1"
    S3_BUCKET: str = "letter-numbering-dev"
    S3_PRESIGN_EXPIRY_SECONDS: int = 3600

    # ── Allocation ───────────────────────────────────────────────────────
    ALLOCATION_REFRESH_BEFORE_CREATE: bool = True

    # ── CORS ─────────────────────────────────────────────────────────────
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    @field_validator("ALLOWED_ORIGINS", "PRINCIPAL_CLAIMS", mode="before")
    @classmethod
    def parse_list(cls, v):
        if isinstance(v, str):
            import json
            return json.loads(v)
        return v


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings factory.
    Use this everywhere to avoid re-reading .env on every call.
    """
    return Settings()


settings = get_settings()
