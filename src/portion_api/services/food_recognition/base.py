"""
Base classes and models for food identification.

Defines the abstract interface that all providers must implement,
plus the standardized result model.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from portion_api.core.exceptions import UpstreamError

FOOD_IDENTIFICATION_PROMPT = (
    "Identify the primary food or dish in this image. Reply with a short name only, "
    "e.g. 'chicken curry with rice'. No extra explanation."
)


class FoodIdentification(BaseModel):
    """Result of naming the dish in a photo."""

    food_name: str = Field(..., min_length=1, description="Short dish name, trimmed")
    raw_response: str = Field(
        "", description="Raw response from the provider (for debugging)"
    )
    provider: str = Field(..., description="Provider that generated this result")
    processing_time_ms: int = Field(
        0, ge=0, description="Time taken to process in milliseconds"
    )


class FoodRecognitionError(UpstreamError):
    """Error during food identification."""

    def __init__(
        self,
        message: str,
        error_code: str = "RECOGNITION_ERROR",
        provider: str = "unknown",
        details: dict[str, Any] | None = None,
    ):
        self.error_code = error_code
        self.provider = provider
        super().__init__(
            message,
            details={"error_code": error_code, "provider": provider, **(details or {})},
        )


def clean_food_name(raw_response: str) -> str:
    """Trim whitespace, surrounding quotes and a trailing period from a reply."""
    name = raw_response.strip().strip("\"'`").strip()
    return name.rstrip(".").strip()


class FoodRecognitionService(ABC):
    """
    Abstract base class for food identification services.

    All providers (LLM, Ollama, ...) must implement this interface.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider."""
        ...

    @abstractmethod
    async def identify(
        self,
        image_data: bytes,
        media_type: str = "image/jpeg",
    ) -> FoodIdentification:
        """
        Name the primary food in an image.

        Args:
            image_data: Raw image bytes (JPEG or PNG)
            media_type: MIME type of the image

        Returns:
            FoodIdentification with a non-empty food name

        Raises:
            FoodRecognitionError: If the provider fails or returns no name
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the provider is available and healthy.

        Returns:
            True if the provider is ready to accept requests
        """
        ...

    async def close(self) -> None:
        """Release provider resources."""
