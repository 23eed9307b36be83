"""
Chat-model provider for food identification.

Sends the photo as an inline image part to a vision-capable LangChain chat
model (OpenAI gpt-4o-mini by default) and reads back a short dish name.
"""

import base64
import logging
import time

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from portion_api.agents.llm import message_text

from .base import (
    FOOD_IDENTIFICATION_PROMPT,
    FoodIdentification,
    FoodRecognitionError,
    FoodRecognitionService,
    clean_food_name,
)

logger = logging.getLogger(__name__)


class LLMFoodRecognition(FoodRecognitionService):
    """Food identification using a multimodal chat model."""

    def __init__(self, llm: BaseChatModel, model_name: str = "chat-model"):
        """
        Initialize the provider.

        Args:
            llm: Vision-capable chat model
            model_name: Model name, used for logging and error reports
        """
        self.llm = llm
        self.model_name = model_name

    @property
    def provider_name(self) -> str:
        return f"llm/{self.model_name}"

    async def identify(
        self,
        image_data: bytes,
        media_type: str = "image/jpeg",
    ) -> FoodIdentification:
        start_time = time.time()

        image_b64 = base64.b64encode(image_data).decode("utf-8")
        message = HumanMessage(
            content=[
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{media_type};base64,{image_b64}"},
                },
                {"type": "text", "text": FOOD_IDENTIFICATION_PROMPT},
            ]
        )

        logger.info(f"Sending food identification request to {self.provider_name}")

        try:
            response = await self.llm.ainvoke([message])
        except Exception as e:
            logger.error(f"Food identification failed: {e}")
            raise FoodRecognitionError(
                message=f"Food identification request failed: {e}",
                error_code="PROVIDER_ERROR",
                provider=self.provider_name,
            ) from e

        raw_response = message_text(response)
        food_name = clean_food_name(raw_response)

        if not food_name:
            raise FoodRecognitionError(
                message="Food identification returned an empty name",
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
        """The hosted model has no cheap health check; a configured client counts as healthy."""
        return self.llm is not None
