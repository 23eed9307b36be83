"""Unit tests for the food identification providers."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from langchain_core.messages import AIMessage

from portion_api.core.config import FoodRecognitionProvider, LLMProvider, Settings
from portion_api.core.exceptions import UpstreamError
from portion_api.services.food_recognition import (
    FoodRecognitionError,
    LLMFoodRecognition,
    OllamaFoodRecognition,
    create_food_recognition_service,
)
from portion_api.services.food_recognition.base import clean_food_name

IMAGE = b"\xff\xd8\xff\xe0fake-jpeg"


class TestCleanFoodName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("rice", "rice"),
            ("  Chicken curry with rice.\n", "Chicken curry with rice"),
            ('"pad thai"', "pad thai"),
            ("'caesar salad.'", "caesar salad"),
            ("   ", ""),
        ],
    )
    def test_cleans_reply(self, raw, expected):
        assert clean_food_name(raw) == expected


class TestLLMFoodRecognition:
    """Tests for LLMFoodRecognition."""

    @pytest.fixture
    def llm(self):
        mock = MagicMock()
        mock.ainvoke = AsyncMock(return_value=AIMessage(content="Chicken curry with rice."))
        return mock

    async def test_identify_success(self, llm):
        provider = LLMFoodRecognition(llm=llm, model_name="gpt-4o-mini")

        result = await provider.identify(IMAGE, "image/jpeg")

        assert result.food_name == "Chicken curry with rice"
        assert result.raw_response == "Chicken curry with rice."
        assert result.provider == "llm/gpt-4o-mini"

    async def test_sends_image_as_data_url(self, llm):
        provider = LLMFoodRecognition(llm=llm)

        await provider.identify(IMAGE, "image/png")

        message = llm.ainvoke.call_args.args[0][0]
        image_part, text_part = message.content
        assert image_part["type"] == "image_url"
        assert image_part["image_url"]["url"].startswith("data:image/png;base64,")
        assert "short name only" in text_part["text"]

    async def test_provider_error(self, llm):
        llm.ainvoke.side_effect = RuntimeError("rate limited")
        provider = LLMFoodRecognition(llm=llm)

        with pytest.raises(FoodRecognitionError) as exc_info:
            await provider.identify(IMAGE)

        assert exc_info.value.error_code == "PROVIDER_ERROR"
        assert exc_info.value.status_code == 502
        assert isinstance(exc_info.value, UpstreamError)

    async def test_empty_reply(self, llm):
        llm.ainvoke.return_value = AIMessage(content='  "" ')
        provider = LLMFoodRecognition(llm=llm)

        with pytest.raises(FoodRecognitionError) as exc_info:
            await provider.identify(IMAGE)

        assert exc_info.value.error_code == "EMPTY_RESPONSE"

    async def test_health_check(self, llm):
        assert await LLMFoodRecognition(llm=llm).health_check() is True


class TestOllamaFoodRecognition:
    """Tests for OllamaFoodRecognition."""

    @pytest.fixture
    def provider(self):
        return OllamaFoodRecognition(base_url="http://localhost:11434/", model="llava:7b")

    def _response(self, status_code=200, **kwargs):
        return httpx.Response(
            status_code,
            request=httpx.Request("POST", "http://localhost:11434/api/generate"),
            **kwargs,
        )

    async def test_identify_success(self, provider):
        with patch.object(
            provider._client,
            "post",
            AsyncMock(return_value=self._response(json={"response": " Beef stew. "})),
        ) as mock_post:
            result = await provider.identify(IMAGE)

        assert result.food_name == "Beef stew"
        assert result.provider == "ollama/llava:7b"

        url = mock_post.call_args.args[0]
        body = mock_post.call_args.kwargs["json"]
        assert url == "http://localhost:11434/api/generate"
        assert body["model"] == "llava:7b"
        assert body["stream"] is False
        assert len(body["images"]) == 1

    async def test_connection_error(self, provider):
        with patch.object(
            provider._client, "post", AsyncMock(side_effect=httpx.ConnectError("refused"))
        ):
            with pytest.raises(FoodRecognitionError) as exc_info:
                await provider.identify(IMAGE)

        assert exc_info.value.error_code == "CONNECTION_ERROR"

    async def test_error_status(self, provider):
        with patch.object(
            provider._client,
            "post",
            AsyncMock(return_value=self._response(500, text="model not loaded")),
        ):
            with pytest.raises(FoodRecognitionError) as exc_info:
                await provider.identify(IMAGE)

        assert exc_info.value.error_code == "PROVIDER_ERROR"
        assert exc_info.value.details["status_code"] == 500

    async def test_invalid_json(self, provider):
        with patch.object(
            provider._client, "post", AsyncMock(return_value=self._response(text="<html>"))
        ):
            with pytest.raises(FoodRecognitionError) as exc_info:
                await provider.identify(IMAGE)

        assert exc_info.value.error_code == "INVALID_RESPONSE"

    async def test_empty_name(self, provider):
        with patch.object(
            provider._client, "post", AsyncMock(return_value=self._response(json={"response": ""}))
        ):
            with pytest.raises(FoodRecognitionError) as exc_info:
                await provider.identify(IMAGE)

        assert exc_info.value.error_code == "EMPTY_RESPONSE"

    async def test_health_check_finds_model_family(self, provider):
        tags = httpx.Response(
            200,
            json={"models": [{"name": "llava:7b-v1.6"}]},
            request=httpx.Request("GET", "http://localhost:11434/api/tags"),
        )
        with patch.object(provider._client, "get", AsyncMock(return_value=tags)):
            assert await provider.health_check() is True

    async def test_health_check_unreachable(self, provider):
        with patch.object(
            provider._client, "get", AsyncMock(side_effect=httpx.ConnectError("refused"))
        ):
            assert await provider.health_check() is False


class TestFactory:
    """Tests for create_food_recognition_service."""

    def test_default_is_llm_provider(self):
        settings = Settings(_env_file=None, openai_api_key="sk-test")

        service = create_food_recognition_service(settings)

        assert isinstance(service, LLMFoodRecognition)
        assert service.provider_name == "llm/gpt-4o-mini"

    def test_ollama_provider(self):
        settings = Settings(
            _env_file=None,
            food_recognition_provider=FoodRecognitionProvider.OLLAMA,
            ollama_model="llava:13b",
        )

        service = create_food_recognition_service(settings)

        assert isinstance(service, OllamaFoodRecognition)
        assert service.provider_name == "ollama/llava:13b"

    def test_missing_key_is_recognition_error(self):
        settings = Settings(_env_file=None, llm_provider=LLMProvider.OPENAI, openai_api_key="")

        with pytest.raises(FoodRecognitionError) as exc_info:
            create_food_recognition_service(settings)

        assert exc_info.value.error_code == "INVALID_PROVIDER"
        assert "OPENAI_API_KEY" in exc_info.value.message
