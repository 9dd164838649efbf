"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Prompt Log"
    DEBUG: bool = False
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    RECENT_LOGS_DEFAULT_LIMIT: int = 10

    # Database (unset -> in-memory store, development only)
    DATABASE_URL: Optional[str] = None
    DB_ECHO: bool = False
    DB_AUTO_CREATE: bool = True

    # Sessions
    SESSION_SECRET: str = "super-secret-session-key-change-in-production"
    SESSION_ALGORITHM: str = "HS256"
    SESSION_TTL_DAYS: int = 7
    COOKIE_SECURE: bool = False

    # Google OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    OAUTH_CALLBACK_URL: str = "http://localhost:8000/api/auth/google/callback"

    # Access policy when no identity provider is configured
    ANONYMOUS_WRITES_ALLOWED: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def identity_configured(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)


settings = Settings()
