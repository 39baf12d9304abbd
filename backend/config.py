"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Text generation (Google Gemini) ---
    # Without GEMINI_API_KEY the analysis endpoints answer with a configuration
    # error; indicator endpoints keep working.
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_TIMEOUT_SECONDS: float = 30.0
    GEMINI_TEMPERATURE: float = 0.3
    GEMINI_MAX_OUTPUT_TOKENS: int = 2048

    # --- Market data sources ---
    VNDIRECT_API_BASE: str = "https://api-finfo.vndirect.com.vn/v4"
    DNSE_API_BASE: str = "https://api-bo.dnse.com.vn/senses-api"
    DATA_SOURCE_TIMEOUT_SECONDS: float = 30.0
    PRICE_HISTORY_SESSIONS: int = 270  # ~52 weeks of trading sessions

    # Session dates are compared against "today" in this timezone
    MARKET_TIMEZONE: str = "Asia/Ho_Chi_Minh"

    # Application
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    @property
    def llm_configured(self) -> bool:
        """Whether an API key for the text-generation service is present."""
        return bool(self.GEMINI_API_KEY)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
