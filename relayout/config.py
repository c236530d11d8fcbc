"""
Configuration management using pydantic-settings.
Loads from environment variables and .env file.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class RelayoutConfig(BaseSettings):
    """
    Pipeline settings.

    These settings can be overridden with environment variables.
    """
    # API settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Relayout API"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # CORS settings (comma-separated string)
    BACKEND_CORS_ORIGINS: str = "*"

    # Completion provider (Gemini)
    GCP_PROJECT: str = ""
    GCP_LOCATION: str = "us-east4"
    GEMINI_MODEL: str = "gemini-2.0-flash-001"
    GEMINI_API_KEY: Optional[str] = None  # If set, use API Key instead of VertexAI
    COMPLETION_TEMPERATURE: float = 0.0

    # OCR Configuration
    DEFAULT_OCR_BACKEND: str = "vision"  # vision / rapid
    OCR_BAND_MAX_HEIGHT: int = 200

    # Inpaint Configuration
    DEFAULT_INPAINT_BACKEND: str = "opencv"  # opencv / lama / none
    LAMA_DEVICE: str = "auto"
    INPAINT_RADIUS: int = 3
    MASK_PADDING: int = 8

    # Translation orchestration
    TRANSLATE_BATCH_SIZE: int = 2
    TRANSLATE_MAX_RETRIES: int = 4
    TRANSLATE_RETRY_INTERVAL_MS: int = 500
    TRANSLATE_MAX_CONCURRENCY: int = 8

    # Fonts
    FONT_DIR: str = "fonts"
    DEFAULT_FONT_SIZE: float = 12.0

    # Storage (best-effort before/after artifacts)
    STORAGE_BACKEND: str = "local"  # local / none
    STORAGE_DIR: str = "output"
    TO_IMAGE_BUCKET: str = "to-image"
    TO_MARKDOWN_BUCKET: str = "to-markdown"

    # URL downloads
    DOWNLOAD_TIMEOUT: float = 30.0

    # Few-shot examples
    EXAMPLES_DIR: str = "examples"

    @field_validator("TRANSLATE_BATCH_SIZE", "TRANSLATE_MAX_CONCURRENCY", mode="before")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """
        Batch size and concurrency must be at least 1.
        """
        if int(v) < 1:
            logger.warning(f"Invalid value {v}, falling back to 1")
            return 1
        return int(v)

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Allow extra fields in .env


class Settings(RelayoutConfig):
    """
    Combined application settings.
    """
    pass


# Create settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
