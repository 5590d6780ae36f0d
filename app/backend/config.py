"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Provider credentials (empty or missing means "not configured")
    mistral_api_key: str | None = None
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None

    # Provider priority per capability
    ocr_providers: list[str] = ["mistral", "claude", "openai"]
    analysis_providers: list[str] = ["claude", "mistral", "openai"]

    # Retry / fallback policy
    max_retries: int = 3
    fallback_max_retries: int = 2
    retry_base_delay_ms: int = 1000
    request_timeout_seconds: float = 30.0

    # Upstream models
    mistral_ocr_model: str = "pixtral-large-latest"
    mistral_analysis_model: str = "mistral-small-latest"
    claude_model: str = "claude-3-5-sonnet-20241022"
    openai_ocr_model: str = "gpt-4o"
    openai_analysis_model: str = "gpt-3.5-turbo"

    # Character budgets for analysis input
    analysis_char_budget_mistral: int = 3000
    analysis_char_budget_claude: int = 4000
    analysis_char_budget_openai: int = 3000

    # Uploads
    max_image_dimension: int = 2048

    # Debug flags
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
