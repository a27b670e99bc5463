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
    APP_NAME: str = "Knock Persona Pipeline"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database - SQLite for local dev, PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./knock.db"

    # Text LLM used by Agent 1 (need vectors) and Agent 2 (character profile)
    LLM_PROVIDER: str = "gemini"  # gemini | groq
    GEMINI_API_KEY: str = ""
    GEMINI_TEXT_MODEL: str = "gemini-2.5-flash"
    GROQ_API_KEY: str = ""
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    AGENT1_TEMPERATURE: float = 0.3  # Low temperature for consistent scoring
    AGENT2_TEMPERATURE: float = 0.7  # Higher for creative profiles
    LLM_MAX_TOKENS: int = 4000

    # Room image generation (Agent 5)
    USE_AI_IMAGE_GENERATION: bool = False
    GEMINI_IMAGE_MODEL: str = "gemini-2.5-flash-image"
    IMAGE_GENERATION_TIMEOUT: float = 60.0  # Seconds before falling back to a preset

    # Local storage for generated room images
    LOCAL_STORAGE_PATH: str = "./uploads"

    # Pipeline defaults
    DEFAULT_LANGUAGE: str = "ko"
    DEFAULT_TEMPLATE_ID: str = "default-template-v1"
    SEED_DATA_POOLS: bool = True

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator('GEMINI_API_KEY', 'GROQ_API_KEY', mode='before')
    @classmethod
    def strip_api_keys(cls, v):
        """Strip whitespace and newlines from API keys loaded from secrets."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator('LLM_PROVIDER', mode='before')
    @classmethod
    def normalize_provider(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
