"""
Ollama/LLaVA provider for food identification.

Uses a local Ollama instance with a vision model to name the dish in an image.
"""

import base64
import logging
import time

import httpx

from .base import (
    FOOD_IDENTIFICATION_PROMPT,
    FoodIdentification,
    FoodRecognitionError,
    FoodRecognitionService,
    clean_food_name,
)

logger = logging.getLogger(__name__)


class OllamaFoodRecognition(FoodRecognitionService):
    """
    Food identification using Ollama with a LLaVA vision model.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llava:7b",
        timeout: float = 60.0,
    ):
        """
        Initialize Ollama provider.

        Args:
            base_url: Ollama API base URL
            model: Vision model to use (default: llava:7b)
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout)

    @property
    def provider_name(self) -> str:
        return f"ollama/{self.model}"

    async def identify(
        self,
        image_data: bytes,
        media_type: str = "image/jpeg",
    ) -> FoodIdentification:
        """
        Name the food in an image using LLaVA.
        """
        start_time = time.time()

        request_body = {
            "model": self.model,
            "prompt": FOOD_IDENTIFICATION_PROMPT,
            "images": [base64.b64encode(image_data).decode("utf-8")],
            "stream": False,
            "options": {
                "temperature": 0.0,
                "num_predict": 50,  # A dish name is a handful of tokens
            },
        }

        logger.info(f"Sending food identification request to Ollama ({self.model})")

        try:
            response = await self._client.post(
                f"{self.base_url}/api/generate",
                json=request_body,
            )
        except httpx.RequestError as e:
            raise FoodRecognitionError(
                message=f"Failed to connect to Ollama: {e}",
                error_code="CONNECTION_ERROR",
                provider=self.provider_name,
            ) from e

        if response.status_code != 200:
            raise FoodRecognitionError(
                message=f"Ollama API error: {response.status_code}",
                error_code="PROVIDER_ERROR",
                provider=self.provider_name,
                details={"status_code": response.status_code, "body": response.text},
            )

        try:
            raw_response = response.json().get("response", "")
        except ValueError as e:
            raise FoodRecognitionError(
                message=f"Ollama returned invalid JSON: {e}",
                error_code="INVALID_RESPONSE",
                provider=self.provider_name,
            ) from e
        logger.debug(f"Raw Ollama response: {raw_response[:200]}")

        food_name = clean_food_name(raw_response)
        if not food_name:
            raise FoodRecognitionError(
                message="Ollama returned an empty food name",
                error_code="EMPTY_RESPONSE",
                provider=self.provider_name,
                details={"raw_response": raw_response},
            )

        return FoodIdentification(
            food_name=food_name,
            raw_response=raw_response,
            provider=self.provider_name,
            processing_time_ms=int((time.time() - start_time) * 1000),
        )

    async def health_check(self) -> bool:
        """Check if Ollama is available and has the required model."""
        try:
            response = await self._client.get(f"{self.base_url}/api/tags")
            if response.status_code != 200:
                return False

            tags = response.json()
            models = [m.get("name", "") for m in tags.get("models", [])]

            # Exact or family match (e.g., "llava:7b" vs "llava:7b-v1.6")
            model_available = any(
                self.model in m or m.startswith(self.model.split(":")[0])
                for m in models
            )

            if not model_available:
                logger.warning(
                    f"Model {self.model} not found. Available: {models}"
                )
                return False

            return True

        except httpx.HTTPError as e:
            logger.error(f"Ollama health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
