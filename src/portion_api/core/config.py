"""Application configuration using Pydantic Settings."""

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    GEMINI = "gemini"


class FoodRecognitionProvider(str, Enum):
    """Supported food identification backends."""
    LLM = "llm"  # Vision-capable chat model from the LLM provider
    OLLAMA = "ollama"  # Local Ollama vision model


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Segmentation (Replicate predictions API)
    replicate_api_token: str = ""
    replicate_model_version: str = ""
    replicate_base_url: str = "https://api.replicate.com/v1"
    segmentation_timeout: float = 30.0  # Per HTTP call, not the whole poll loop

    # Plate geometry
    plate_diameter_cm: float = 25.0  # Average dinner plate
    assumed_height_cm: float = 2.5  # Typical food height on a plate

    # LLM Provider Selection
    llm_provider: LLMProvider = LLMProvider.OPENAI

    # OpenAI Configuration
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    # Google Gemini Configuration
    google_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    # LLM Settings
    llm_temperature: float = 0.0
    llm_timeout: float = 60.0

    # Food identification
    food_recognition_provider: FoodRecognitionProvider = FoodRecognitionProvider.LLM
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llava:7b"
    ollama_timeout: float = 60.0

    # App
    debug: bool = False
    log_level: str = "INFO"
    app_name: str = "Portion Estimation API"
    api_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 3001

    @property
    def is_llm_configured(self) -> bool:
        """Check if the selected LLM provider is configured."""
        if self.llm_provider == LLMProvider.OPENAI:
            return bool(self.openai_api_key)
        elif self.llm_provider == LLMProvider.GEMINI:
            return bool(self.google_api_key)
        return False

    @property
    def is_segmentation_configured(self) -> bool:
        """Check if the Replicate credentials and model version are set."""
        return bool(self.replicate_api_token and self.replicate_model_version)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
