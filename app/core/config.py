"""Configuration settings for the face matching service."""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    Attributes:
        DATABASE_URL: SQLAlchemy async URL of the match database
        MATCH_THRESHOLD: Minimum confidence (0-1) for accepting a face match
        DUPLICATE_MATCH_POLICY: "keep_highest" or "allow" for repeated (photo, person) matches
        RECORD_FAILURE_POLICY: "collect" or "abort" when a match write fails mid-batch
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",  # No prefix for environment variables
        env_nested_delimiter="__"  # Use double underscore for nested settings
    )

    # Core Settings
    PROJECT_NAME: str = "Event Photo Face Matching Service"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"

    # CORS Settings
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins(self) -> List[str]:
        """Get list of allowed origins."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Auth gateway forwards the authenticated user id in this header
    CALLER_ID_HEADER: str = "X-Caller-Id"

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./facematch.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_TIMEOUT: int = 30
    SQLITE_BUSY_TIMEOUT: float = 30.0

    # Descriptor Extraction Settings
    MODEL_NAME: str = "buffalo_l"
    MODEL_CACHE_DIR: str = ".model_cache"
    DETECTION_SIZE: int = 640
    MAX_IMAGE_PIXELS: int = 1920 * 1080  # ~2MP (Full HD)
    MAX_FACES_PER_IMAGE: int = 50

    # Matching Settings
    MATCH_THRESHOLD: float = 0.6
    DUPLICATE_MATCH_POLICY: str = "keep_highest"
    RECORD_FAILURE_POLICY: str = "collect"

    # Enrollment Settings
    ENROLLMENT_MIN_SAMPLES: int = 3
    ENROLLMENT_MAX_SAMPLES: int = 5

    # Optional settings with defaults
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000


settings = Settings()
