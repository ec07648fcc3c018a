"""
Application Configuration
Loads settings from environment variables.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "FanAI API"
    DEBUG: bool = False

    # Database - SQLite for local dev, PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./fanai.db"

    # Image analysis (Gemini)
    GEMINI_API_KEY: str = ""
    GEMINI_VISION_MODEL: str = "gemini-2.5-flash"
    GEMINI_TIMEOUT: float = 30.0  # Seconds per analysis call

    # Blob store: "github" (production) or "local" (filesystem, for dev)
    BLOB_STORE_BACKEND: str = "github"
    GITHUB_TOKEN: str = ""
    GITHUB_OWNER: str = "Sumanradhadas"
    GITHUB_REPO: str = "fan-ai-celebs"
    GITHUB_BRANCH: str = "main"
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_REPO_PREFIX: str = "fan-ai-celebs"  # Name prefix for rotated repositories
    LOCAL_BLOB_PATH: str = "./blobstore"

    # Durable record of the active storage target (survives restarts after rotation)
    STORAGE_TARGET_FILE: str = "./storage_targets.json"

    # Local storage for uploads and the processed-image fallback
    LOCAL_STORAGE_PATH: str = "./uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Reference dataset cache
    CELEBRITY_CACHE_TTL: int = 86400  # 24 hours
    TEMPLATE_CACHE_TTL: int = 43200  # 12 hours

    # Artifact lookup: number of date folders probed when the write date is unknown
    ARTIFACT_LOOKBACK_DAYS: int = 7

    # Generation pipeline
    JOB_TIMEOUT_GENERATION: int = 300
    COMPOSITE_TARGET_HEIGHT: int = 800
    COMPOSITE_GAP: int = 40
    TRIM_THRESHOLD: int = 10
    WATERMARK_TEXT: str = "FanAI"

    # Admin routes
    ADMIN_TOKEN: str = ""

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator('GEMINI_API_KEY', 'GITHUB_TOKEN', 'ADMIN_TOKEN', mode='before')
    @classmethod
    def strip_secrets(cls, v):
        """Strip whitespace and newlines from secrets loaded from files."""
        if isinstance(v, str):
            return v.strip()
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
