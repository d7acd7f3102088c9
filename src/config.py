"""
Engine configuration loaded from environment variables / .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ──
    DATABASE_URL: str = "sqlite:///./signing.db"

    # ── Storage ──
    STORAGE_PATH: str = "./storage"
    MAX_FILE_SIZE_MB: int = 50

    # ── Signing workflow ──
    SIGNING_TOKEN_EXPIRATION_DAYS: int = 7
    MAX_SIGNATURE_DATA_BYTES: int = 5 * 1024 * 1024

    # ── Certificates ──
    CERTIFICATE_VALIDITY_YEARS: int = 10
    VERIFICATION_BASE_URL: Optional[str] = None

    # ── Jobs ──
    REMINDER_INTERVAL_HOURS: int = 24

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
