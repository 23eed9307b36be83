"""Pytest configuration and fixtures."""

import base64
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import cv2
import numpy as np
import pytest
from httpx import ASGITransport, AsyncClient

from portion_api.api import dependencies
from portion_api.core.config import Settings, get_settings
from portion_api.main import app
from portion_api.models.portion import SegmentationResult
from portion_api.services.food_recognition import FoodIdentification
from portion_api.services.pixel_fraction import MaskLoader

MASK_URL = "https://replicate.delivery/pbxt/abc/mask.png"


def encode_png(pixels: np.ndarray) -> bytes:
    """Encode a uint8 array (gray, BGR or BGRA) as PNG bytes."""
    ok, buffer = cv2.imencode(".png", pixels)
    assert ok
    return buffer.tobytes()


def to_data_url(data: bytes, media_type: str = "image/png") -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('utf-8')}"


@pytest.fixture
def make_mask() -> Callable[..., bytes]:
    """
    Build a BGRA PNG mask.

    Usage:
        make_mask(10, 10, (0, 0, 255, 255))             # uniform
        make_mask(10, 10, (0, 0, 0, 0), left=(255,) * 4)  # left half differs
    """

    def _make(width: int, height: int, fill: tuple, left: tuple | None = None) -> bytes:
        pixels = np.zeros((height, width, 4), dtype=np.uint8)
        pixels[:, :] = fill
        if left is not None:
            pixels[:, : width // 2] = left
        return encode_png(pixels)

    return _make


@pytest.fixture
def photo_bytes() -> bytes:
    """A 400x300 photo (plain grey JPEG)."""
    pixels = np.full((300, 400, 3), 128, dtype=np.uint8)
    ok, buffer = cv2.imencode(".jpg", pixels)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def half_mask(make_mask) -> bytes:
    """Mask matching the photo: left half opaque red, right half transparent."""
    return make_mask(400, 300, (0, 0, 0, 0), left=(0, 0, 255, 255))


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        replicate_api_token="test-token",
        replicate_model_version="test-version",
        openai_api_key="sk-test",
        plate_diameter_cm=25.0,
        assumed_height_cm=2.5,
    )


@pytest.fixture
def recognizer() -> MagicMock:
    mock = MagicMock()
    mock.provider_name = "fake/vision"
    mock.identify = AsyncMock(
        return_value=FoodIdentification(food_name="rice", provider="fake/vision")
    )
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def segmenter() -> MagicMock:
    mock = MagicMock()
    mock.segment = AsyncMock(
        return_value=SegmentationResult(
            prediction={"id": "p1", "status": "succeeded", "output": {"mask": MASK_URL}},
            mask_url=MASK_URL,
        )
    )
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def density_estimator() -> MagicMock:
    mock = MagicMock()
    mock.estimate = AsyncMock(return_value=0.9)
    return mock


@pytest.fixture
def mask_loader(half_mask) -> MagicMock:
    mock = MagicMock(spec=MaskLoader)
    mock.load = AsyncMock(return_value=half_mask)
    return mock


@pytest.fixture
async def client(
    test_settings, recognizer, segmenter, density_estimator, mask_loader
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create async test client with fake collaborators.

    Usage:
        async def test_endpoint(client: AsyncClient):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[dependencies.get_food_recognition_service] = lambda: recognizer
    app.dependency_overrides[dependencies.get_segmentation_client] = lambda: segmenter
    app.dependency_overrides[dependencies.get_density_estimator] = lambda: density_estimator
    app.dependency_overrides[dependencies.get_mask_loader] = lambda: mask_loader

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
