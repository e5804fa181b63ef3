"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Google generative-language API
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash-001"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # Timeouts (seconds) and retry policy for the two suspension points
    request_timeout: float = 60.0
    max_retries: int = 1
    pdf_timeout: float = 30.0

    # Limits
    max_upload_bytes: int = 10 * 1024 * 1024
    max_sessions: int = 1000

    # Frontend origins allowed by CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Debug flags
    use_mock_ai: bool = False
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the backend directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
