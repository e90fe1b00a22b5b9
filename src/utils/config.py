"""Configuration management for Menu Matcher Service.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os
from typing import Optional

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        # Model used for quiz generation and recommendations (text in, JSON out)
        self.GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        # Extraction Model: vision-capable model that reads menu photos
        self.EXTRACTION_MODEL: str = os.getenv("EXTRACTION_MODEL", "gemini-2.5-flash")
        # Server Port
        self.PORT: int = int(os.getenv("PORT", "7777"))
        # Environment: "development" or "production"
        # Upstream error details are only returned to callers outside production
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").lower()
        # Upper bound (seconds) for a single model call. Timeouts surface as upstream errors.
        self.MODEL_TIMEOUT_SECONDS: float = float(os.getenv("MODEL_TIMEOUT_SECONDS", "60"))
        # Temperature: 0.2 keeps JSON output stable while leaving room for a friendly rationale
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.2"))
        # Max Output Tokens: large menus produce long menuItems arrays
        self.MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "8192"))
        # Maximum raw image size (in MB) accepted before normalization. Default: 20 MB
        self.MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "20"))
        # Largest image side (px) sent to the extraction model
        self.MAX_IMAGE_DIMENSION: int = int(os.getenv("MAX_IMAGE_DIMENSION", "700"))
        # Image Normalization: downsample oversized images before extraction
        self.NORMALIZE_IMAGES: bool = _env_bool("NORMALIZE_IMAGES", "true")
        # Timeout (seconds) for fetching imageUrl inputs
        self.IMAGE_FETCH_TIMEOUT_SECONDS: int = int(os.getenv("IMAGE_FETCH_TIMEOUT_SECONDS", "10"))
        # Rate limit for model-backed endpoints: requests per window per client
        self.RATE_LIMIT_REQUESTS: int = int(os.getenv("RATE_LIMIT_REQUESTS", "10"))
        self.RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
        # Rate limit for non-model endpoints (uploads)
        self.GENERAL_RATE_LIMIT_REQUESTS: int = int(os.getenv("GENERAL_RATE_LIMIT_REQUESTS", "30"))
        # Static root; uploaded menus are served from STATIC_DIR/uploads
        self.STATIC_DIR: str = os.getenv("STATIC_DIR", "public")
        self.UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", os.path.join(self.STATIC_DIR, "uploads"))
        # Local file references (localFilePath) are a development convenience.
        # Disable in production deployments.
        self.ALLOW_LOCAL_FILE_PATHS: bool = _env_bool("ALLOW_LOCAL_FILE_PATHS", "true")
        # Recommendation Mode: "ai" (Gemini) or "keyword" (offline keyword matcher)
        self.RECOMMENDATION_MODE: str = os.getenv("RECOMMENDATION_MODE", "ai").lower()
        # Optional path to a text file replacing the built-in extraction prompt
        self.EXTRACTION_PROMPT_FILE: Optional[str] = os.getenv("EXTRACTION_PROMPT_FILE") or None

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def validate(self) -> None:
        """Validate required configuration.

        Raises:
            ValueError: If required API keys are missing or invalid values provided.
        """
        if not self.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY environment variable is required")
        if self.ENVIRONMENT not in ("development", "production", "test"):
            raise ValueError(
                f"ENVIRONMENT must be 'development', 'production' or 'test', got: {self.ENVIRONMENT}"
            )
        if self.RECOMMENDATION_MODE not in ("ai", "keyword"):
            raise ValueError(
                f"RECOMMENDATION_MODE must be 'ai' or 'keyword', got: {self.RECOMMENDATION_MODE}"
            )
        if not (0.0 <= self.TEMPERATURE <= 1.0):
            raise ValueError(
                f"TEMPERATURE must be between 0.0 and 1.0, got: {self.TEMPERATURE}"
            )
        if self.MAX_OUTPUT_TOKENS < 512:
            raise ValueError(
                f"MAX_OUTPUT_TOKENS must be at least 512, got: {self.MAX_OUTPUT_TOKENS}"
            )
        if self.MODEL_TIMEOUT_SECONDS <= 0:
            raise ValueError(
                f"MODEL_TIMEOUT_SECONDS must be positive, got: {self.MODEL_TIMEOUT_SECONDS}"
            )
        if self.MAX_IMAGE_DIMENSION < 64:
            raise ValueError(
                f"MAX_IMAGE_DIMENSION must be at least 64, got: {self.MAX_IMAGE_DIMENSION}"
            )
        if self.RATE_LIMIT_REQUESTS < 1 or self.GENERAL_RATE_LIMIT_REQUESTS < 1:
            raise ValueError("Rate limits must allow at least 1 request per window")
        if self.RATE_LIMIT_WINDOW_SECONDS < 1:
            raise ValueError(
                f"RATE_LIMIT_WINDOW_SECONDS must be at least 1 second, got: {self.RATE_LIMIT_WINDOW_SECONDS}"
            )


# Create module-level config instance and validate immediately
config = Config()
config.validate()
