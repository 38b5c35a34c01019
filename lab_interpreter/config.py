"""Application configuration settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database - shared with main back office
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "lab_back_office"

    # OpenAI
    OPENAI_API_KEY: str
    OPENAI_MODEL: str = "gpt-4"
    OPENAI_TEMPERATURE: float = 0.3
    OPENAI_MAX_TOKENS: int = 2000
    OPENAI_TIMEOUT_SECONDS: float = 60.0

    # Application
    APP_NAME: str = "Lab Interpretation Service"
    API_V1_PREFIX: str = "/api/v1"
    PORT: int = 8002  # Separate from main back office

    # CORS - allow main back office and frontends
    BACKEND_CORS_ORIGINS: str = '["http://localhost:3000", "http://localhost:5173", "http://localhost:5000"]'

    # File storage
    UPLOAD_DIR: str = "/tmp/lab_interpretations"
    MAX_UPLOAD_SIZE_MB: int = 10

    # Interpretation pipeline
    INTERPRETATION_MAX_ATTEMPTS: int = 3
    INTERPRETATION_RETRY_DELAY_SECONDS: float = 2.0
    MIN_EXTRACTED_CHARS: int = 50
    SHUTDOWN_GRACE_SECONDS: float = 30.0

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from shared .env
    )

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from JSON string."""
        try:
            return json.loads(self.BACKEND_CORS_ORIGINS)
        except json.JSONDecodeError:
            return ["http://localhost:3000"]

    @property
    def max_upload_bytes(self) -> int:
        """Upload size limit in bytes."""
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024


settings = Settings()
