"""Application configuration"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_IDENTITY_SECRET = "dev-identity-secret-change-me"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = "Student Association MemberHub API"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Storage
    database_path: str = "/app/data/db/memberhub.json"
    uploads_dir: str = "/app/data/uploads"
    uploads_base_url: str = "/uploads"
    max_upload_size: int = 5 * 1024 * 1024  # 5MB

    # Identity provider
    identity_secret: str = DEFAULT_IDENTITY_SECRET
    identity_algorithm: str = "HS256"
    identity_audience: Optional[str] = None
    admin_uids: List[str] = []
    access_token_expire_minutes: int = 60 * 24

    # Broadcast channel
    broadcast_queue_size: int = Field(default=100, ge=1)
    redis_url: Optional[str] = None
    redis_channel: str = "memberhub:broadcast"

    # Pagination
    members_page_size: int = 12
    events_page_size: int = 5
    posts_page_size: int = 10
    max_page_size: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def validate_production_settings(settings: Settings) -> list:
    """Validate that all required settings are configured for production"""
    errors = []

    if settings.identity_secret == DEFAULT_IDENTITY_SECRET:
        errors.append("IDENTITY_SECRET must be changed from default value")

    if not settings.admin_uids:
        errors.append("ADMIN_UIDS is empty, nobody can add members or edit roles")

    if "*" in settings.cors_origins:
        errors.append("CORS_ORIGINS should not allow every origin")

    return errors


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    settings = Settings()

    if not settings.debug:
        for error in validate_production_settings(settings):
            logger.warning(f"Production config warning: {error}")

    return settings
