"""Pixel fraction measurement for segmentation masks.

The fraction is defined on the grid of the *displayed* photo, not the mask's
native resolution: the web client draws the photo scaled down to at most
800 px wide and stretches the mask over it. The meter reproduces that grid,
resamples the mask onto it and counts food pixels.
"""

import base64
import binascii
import logging
import urllib.parse

import cv2
import httpx
import numpy as np

from portion_api.core.exceptions import LoadError

logger = logging.getLogger(__name__)

# Classification thresholds
ALPHA_THRESHOLD = 10  # alpha > 10/255 means food
BRIGHTNESS_THRESHOLD = 10  # r + g + b > 10 means food when alpha is low

DISPLAY_MAX_WIDTH = 800


def display_size(width: int, height: int, max_width: int = DISPLAY_MAX_WIDTH) -> tuple[int, int]:
    """
    Size the web client renders a photo at.

    Args:
        width: Native image width in pixels
        height: Native image height in pixels
        max_width: Widest allowed display width

    Returns:
        (width, height) of the display grid
    """
    if width <= max_width:
        return width, height
    scale = max_width / width
    return max(1, round(width * scale)), max(1, round(height * scale))


def image_size(image_data: bytes) -> tuple[int, int]:
    """
    Decode an image just to read its dimensions.

    Raises:
        LoadError: If the bytes are not a decodable image
    """
    nparr = np.frombuffer(image_data, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise LoadError("Failed to decode image")
    height, width = image.shape[:2]
    return width, height


def decode_mask_rgba(mask_data: bytes) -> np.ndarray:
    """
    Decode mask bytes to a (H, W, 4) uint8 BGRA array.

    Grayscale and BGR masks have no alpha channel and are treated as opaque.
    Fully transparent pixels read back with zero colour, matching what a
    browser canvas returns for them.

    Raises:
        LoadError: If the bytes are not a decodable image
    """
    nparr = np.frombuffer(mask_data, np.uint8)
    mask = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)

    if mask is None:
        raise LoadError("Failed to decode mask image")

    if mask.dtype != np.uint8:
        # 16-bit PNGs: keep the most significant byte
        mask = (mask >> 8).astype(np.uint8) if mask.dtype == np.uint16 else mask.astype(np.uint8)

    if mask.ndim == 2:
        mask = cv2.cvtColor(mask, cv2.COLOR_GRAY2BGRA)
    elif mask.shape[2] == 3:
        mask = cv2.cvtColor(mask, cv2.COLOR_BGR2BGRA)
    elif mask.shape[2] != 4:
        raise LoadError(f"Unsupported mask channel count: {mask.shape[2]}")

    mask = mask.copy()
    mask[mask[..., 3] == 0, :3] = 0
    return mask


def measure_pixel_fraction(
    mask_data: bytes,
    reference_width: int,
    reference_height: int,
) -> float:
    """
    Fraction of the reference grid covered by food according to the mask.

    Args:
        mask_data: Encoded mask image (PNG, JPEG, WebP)
        reference_width: Width of the displayed photo in pixels
        reference_height: Height of the displayed photo in pixels

    Returns:
        Food pixels / total pixels, in [0, 1]

    Raises:
        LoadError: If the mask cannot be decoded or the grid is empty
    """
    if reference_width <= 0 or reference_height <= 0:
        raise LoadError(
            "Reference dimensions must be positive",
            details={"width": reference_width, "height": reference_height},
        )

    mask = decode_mask_rgba(mask_data)
    resized = cv2.resize(
        mask, (reference_width, reference_height), interpolation=cv2.INTER_LINEAR
    )

    alpha = resized[..., 3]
    brightness = resized[..., :3].astype(np.uint16).sum(axis=-1)
    food = (alpha > ALPHA_THRESHOLD) | (brightness > BRIGHTNESS_THRESHOLD)

    fraction = float(np.count_nonzero(food)) / food.size

    logger.debug(
        f"Mask {mask.shape[1]}x{mask.shape[0]} -> {reference_width}x{reference_height}: "
        f"{fraction:.2%} food"
    )
    return fraction


class MaskLoader:
    """Fetch mask image bytes from a data URL or an HTTP(S) URL."""

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def load(self, mask_url: str) -> bytes:
        """
        Load mask bytes.

        Raises:
            LoadError: On malformed data URLs, unsupported schemes or download errors
        """
        if mask_url.startswith("data:"):
            return self._decode_data_url(mask_url)

        if not mask_url.startswith(("http://", "https://")):
            raise LoadError("Mask URL must be a data URL or an http(s) URL")

        client = await self._get_client()
        try:
            response = await client.get(mask_url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise LoadError(
                f"Mask download failed with status {e.response.status_code}",
                details={"url": mask_url, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise LoadError(f"Mask download failed: {e}", details={"url": mask_url}) from e

        return response.content

    @staticmethod
    def _decode_data_url(mask_url: str) -> bytes:
        header, sep, payload = mask_url.partition(",")
        if not sep:
            raise LoadError("Malformed data URL for mask")
        try:
            if header.endswith(";base64"):
                return base64.b64decode(payload, validate=True)
            return urllib.parse.unquote_to_bytes(payload)
        except (binascii.Error, ValueError) as e:
            raise LoadError(f"Invalid base64 mask data: {e}") from e
