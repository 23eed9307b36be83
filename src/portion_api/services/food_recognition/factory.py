"""
Factory for creating food identification service instances.

Takes explicit settings and returns the appropriate provider.
"""

import logging

from portion_api.agents.llm import get_llm
from portion_api.core.config import FoodRecognitionProvider, LLMProvider, Settings

from .base import FoodRecognitionError, FoodRecognitionService
from .llm_provider import LLMFoodRecognition
from .ollama_provider import OllamaFoodRecognition

logger = logging.getLogger(__name__)


def create_food_recognition_service(settings: Settings) -> FoodRecognitionService:
    """
    Build the configured food identification service.

    Settings used:
    - food_recognition_provider: "llm" (default) or "ollama"
    - llm_provider / openai_* / google_* for the "llm" provider
    - ollama_base_url / ollama_model / ollama_timeout for the "ollama" provider

    Returns:
        Configured FoodRecognitionService instance

    Raises:
        FoodRecognitionError: If the provider cannot be configured
    """
    provider = settings.food_recognition_provider

    logger.info(f"Initializing food recognition provider: {provider.value}")

    if provider == FoodRecognitionProvider.OLLAMA:
        logger.info(
            f"Configuring Ollama provider: {settings.ollama_base_url}, model={settings.ollama_model}"
        )
        return OllamaFoodRecognition(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            timeout=settings.ollama_timeout,
        )

    try:
        llm = get_llm(settings)
    except ValueError as e:
        raise FoodRecognitionError(
            message=str(e),
            error_code="INVALID_PROVIDER",
            provider=settings.llm_provider.value,
        ) from e

    model_name = (
        settings.gemini_model
        if settings.llm_provider == LLMProvider.GEMINI
        else settings.openai_model
    )
    return LLMFoodRecognition(llm=llm, model_name=model_name)
