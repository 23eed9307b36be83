"""Unit tests for pixel fraction measurement and mask loading."""

import base64
from unittest.mock import AsyncMock, patch

import httpx
import numpy as np
import pytest

from conftest import encode_png, to_data_url
from portion_api.core.exceptions import LoadError
from portion_api.services.pixel_fraction import (
    MaskLoader,
    display_size,
    image_size,
    measure_pixel_fraction,
)


class TestMeasurePixelFraction:
    """Tests for the two-tier alpha / brightness rule."""

    def test_all_opaque_red_is_full_coverage(self, make_mask):
        mask = make_mask(32, 24, (0, 0, 255, 255))

        assert measure_pixel_fraction(mask, 32, 24) == 1.0

    def test_all_transparent_black_is_empty(self, make_mask):
        mask = make_mask(32, 24, (0, 0, 0, 0))

        assert measure_pixel_fraction(mask, 32, 24) == 0.0

    def test_half_opaque_mask(self, make_mask):
        mask = make_mask(40, 20, (0, 0, 0, 0), left=(0, 0, 255, 255))

        assert measure_pixel_fraction(mask, 40, 20) == 0.5

    def test_low_alpha_bright_pixels_count_as_food(self, make_mask):
        mask = make_mask(40, 20, (0, 0, 0, 5), left=(255, 255, 255, 5))

        assert measure_pixel_fraction(mask, 40, 20) == 0.5

    def test_alpha_threshold_is_exclusive(self, make_mask):
        at_threshold = make_mask(10, 10, (0, 0, 0, 10))
        above_threshold = make_mask(10, 10, (0, 0, 0, 11))

        assert measure_pixel_fraction(at_threshold, 10, 10) == 0.0
        assert measure_pixel_fraction(above_threshold, 10, 10) == 1.0

    def test_brightness_threshold_is_exclusive(self, make_mask):
        sum_ten = make_mask(10, 10, (4, 3, 3, 10))
        sum_eleven = make_mask(10, 10, (4, 4, 3, 10))

        assert measure_pixel_fraction(sum_ten, 10, 10) == 0.0
        assert measure_pixel_fraction(sum_eleven, 10, 10) == 1.0

    def test_fully_transparent_colour_is_ignored(self, make_mask):
        # Canvas readback returns (0, 0, 0, 0) for fully transparent pixels
        mask = make_mask(10, 10, (255, 255, 255, 0))

        assert measure_pixel_fraction(mask, 10, 10) == 0.0

    def test_grayscale_mask_is_opaque(self):
        mask = encode_png(np.zeros((8, 8), dtype=np.uint8))

        assert measure_pixel_fraction(mask, 8, 8) == 1.0

    def test_mask_is_resampled_to_reference_grid(self, make_mask):
        tiny = make_mask(1, 1, (0, 0, 255, 255))

        assert measure_pixel_fraction(tiny, 120, 80) == 1.0

    def test_upscaled_half_mask_stays_close_to_half(self, make_mask):
        mask = make_mask(20, 10, (0, 0, 0, 0), left=(0, 0, 255, 255))

        fraction = measure_pixel_fraction(mask, 40, 20)

        assert fraction == pytest.approx(0.5, abs=0.05)

    def test_undecodable_mask_raises_load_error(self):
        with pytest.raises(LoadError):
            measure_pixel_fraction(b"not an image", 10, 10)

    def test_empty_reference_grid_raises_load_error(self, make_mask):
        with pytest.raises(LoadError):
            measure_pixel_fraction(make_mask(4, 4, (0, 0, 255, 255)), 0, 10)


class TestDisplaySize:
    """Tests for the display grid."""

    def test_small_images_are_unchanged(self):
        assert display_size(640, 480) == (640, 480)
        assert display_size(800, 1200) == (800, 1200)

    def test_wide_images_are_scaled_to_800(self):
        assert display_size(1600, 1200) == (800, 600)
        assert display_size(4032, 3024) == (800, 600)
        assert display_size(1000, 333) == (800, 266)

    def test_extreme_aspect_ratio_keeps_one_pixel(self, make_mask):
        assert display_size(10000, 4) == (800, 1)

        mask = make_mask(10, 10, (0, 0, 255, 255))
        assert measure_pixel_fraction(mask, *display_size(10000, 4)) == 1.0

    def test_image_size_reads_dimensions(self, photo_bytes):
        assert image_size(photo_bytes) == (400, 300)

    def test_image_size_rejects_garbage(self):
        with pytest.raises(LoadError):
            image_size(b"\x00\x01\x02")


class TestMaskLoader:
    """Tests for MaskLoader."""

    async def test_loads_base64_data_url(self, make_mask):
        mask = make_mask(4, 4, (0, 0, 255, 255))

        assert await MaskLoader().load(to_data_url(mask)) == mask

    async def test_malformed_data_url(self):
        with pytest.raises(LoadError):
            await MaskLoader().load("data:image/png;base64")

    async def test_invalid_base64(self):
        with pytest.raises(LoadError):
            await MaskLoader().load("data:image/png;base64,@@@not-base64@@@")

    async def test_rejects_other_schemes(self):
        with pytest.raises(LoadError):
            await MaskLoader().load("file:///etc/passwd")

    async def test_downloads_http_url(self, make_mask):
        mask = make_mask(4, 4, (0, 0, 255, 255))
        url = "https://replicate.delivery/mask.png"
        loader = MaskLoader()

        mock_http_client = AsyncMock()
        mock_http_client.get = AsyncMock(
            return_value=httpx.Response(200, content=mask, request=httpx.Request("GET", url))
        )

        with patch.object(loader, "_get_client", AsyncMock(return_value=mock_http_client)):
            data = await loader.load(url)

        assert data == mask
        mock_http_client.get.assert_called_once_with(url)

    async def test_download_error_status(self):
        url = "https://replicate.delivery/expired.png"
        loader = MaskLoader()

        mock_http_client = AsyncMock()
        mock_http_client.get = AsyncMock(
            return_value=httpx.Response(404, request=httpx.Request("GET", url))
        )

        with patch.object(loader, "_get_client", AsyncMock(return_value=mock_http_client)):
            with pytest.raises(LoadError) as exc_info:
                await loader.load(url)

        assert exc_info.value.details["status_code"] == 404

    async def test_round_trip_through_data_url_measures(self, make_mask):
        mask = make_mask(10, 10, (0, 0, 0, 0), left=(0, 255, 0, 255))
        data_url = "data:image/png;base64," + base64.b64encode(mask).decode()

        data = await MaskLoader().load(data_url)

        assert measure_pixel_fraction(data, 10, 10) == 0.5
