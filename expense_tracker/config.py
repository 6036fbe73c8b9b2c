"""
Application settings.
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    # Database
    DATABASE_URL: str = "sqlite:///./data/expense_tracker.db"
    SQL_ECHO: bool = False

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # File storage
    DATA_DIR: str = "./data"
    UPLOAD_DIR: str = "./data/uploads"
    PUBLIC_UPLOAD_URL: str = "http://localhost:8000/uploads"

    # Upload policy
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    ALLOWED_MIME_TYPES: List[str] = [
        "image/jpeg",
        "image/png",
        "image/jpg",
        "image/webp",
        "image/gif",
        "application/pdf",
    ]

    # Image transforms applied before storage
    IMAGE_MAX_WIDTH: int = 1500
    IMAGE_MAX_HEIGHT: int = 2000
    IMAGE_QUALITY: int = 85

    # OCR
    OCR_LANGUAGE: str = "eng"
    OCR_TIMEOUT_SECONDS: int = 0  # 0 = no timeout
    TESSERACT_CMD: str = ""

    # Expenses
    DEFAULT_CURRENCY: str = "USD"

    # Receipts left pending by a crash get one fresh OCR run at startup
    RECOVER_PENDING_ON_STARTUP: bool = True
    PENDING_RECOVERY_MINUTES: int = 10


settings = Settings()
