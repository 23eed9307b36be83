"""
Food Recognition Service - Facade pattern for food identification APIs.

Provides an abstraction layer over the image-understanding collaborator,
with a LangChain chat model as the default provider and Ollama/LLaVA as a
local alternative.
"""

from .base import (
    FoodIdentification,
    FoodRecognitionError,
    FoodRecognitionService,
)
from .factory import create_food_recognition_service
from .llm_provider import LLMFoodRecognition
from .ollama_provider import OllamaFoodRecognition

__all__ = [
    "FoodIdentification",
    "FoodRecognitionError",
    "FoodRecognitionService",
    "LLMFoodRecognition",
    "OllamaFoodRecognition",
    "create_food_recognition_service",
]
