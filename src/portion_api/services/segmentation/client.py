"""HTTP client for the hosted segmentation model (Replicate predictions API)."""

import asyncio
import logging
from typing import Any

import httpx

from portion_api.core.config import Settings
from portion_api.core.exceptions import SegmentationTimeoutError, UpstreamError
from portion_api.models.portion import SegmentationResult

from .mask_locator import locate_mask_url

logger = logging.getLogger(__name__)

PENDING_STATUSES = frozenset({"starting", "processing"})
FAILED_STATUS = "failed"


class ReplicateSegmentationClient:
    """
    Client that runs a segmentation model version and waits for its output.

    A prediction is created with ``POST /predictions``. If the response is
    still pending, the ``urls.get`` location is polled once per interval until
    the status leaves the pending set or the poll cap is reached.
    """

    POLL_INTERVAL_SECONDS = 1.0
    MAX_POLLS = 60

    def __init__(
        self,
        api_token: str,
        model_version: str,
        base_url: str = "https://api.replicate.com/v1",
        timeout: float = 30.0,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_polls: int = MAX_POLLS,
    ) -> None:
        """
        Initialize the segmentation client.

        Args:
            api_token: Replicate API token
            model_version: Model version identifier to run
            base_url: Predictions API base URL
            timeout: Timeout for each HTTP call in seconds
            poll_interval: Delay between polls in seconds
            max_polls: Number of polls before giving up
        """
        self.api_token = api_token
        self.model_version = model_version
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Token {self.api_token}",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def segment(self, image_data_url: str) -> SegmentationResult:
        """
        Run the segmentation model on an image and locate its mask.

        Args:
            image_data_url: Image as a data URL (or any URL the model accepts)

        Returns:
            SegmentationResult with the full prediction and the derived mask URL.
            ``mask_url`` is None when the prediction holds nothing mask-shaped.

        Raises:
            SegmentationTimeoutError: If the prediction is still pending after the poll cap
            UpstreamError: On transport errors or a ``failed`` prediction
        """
        if not self.api_token:
            raise UpstreamError("Missing REPLICATE_API_TOKEN in environment")
        if not self.model_version:
            raise UpstreamError("Missing REPLICATE_MODEL_VERSION in environment")

        prediction = await self._create_prediction(image_data_url)
        poll_url = (prediction.get("urls") or {}).get("get")

        logger.info(
            f"Prediction {prediction.get('id')} created with status {prediction.get('status')}"
        )

        polls = 0
        while prediction.get("status") in PENDING_STATUSES:
            if not poll_url:
                raise UpstreamError(
                    "Segmentation prediction is pending but no poll location was returned",
                    details={"prediction": prediction},
                )
            if polls >= self.max_polls:
                logger.warning(
                    f"Prediction {prediction.get('id')} still {prediction.get('status')} after {polls} polls"
                )
                raise SegmentationTimeoutError(
                    polls=polls,
                    details={"prediction_id": prediction.get("id"), "status": prediction.get("status")},
                )

            logger.debug(
                f"Prediction {prediction.get('id')} {prediction.get('status')}: poll {polls + 1}/{self.max_polls}"
            )
            await asyncio.sleep(self.poll_interval)
            prediction = await self._request("GET", poll_url)
            polls += 1

        if prediction.get("status") == FAILED_STATUS:
            logger.error(f"Prediction {prediction.get('id')} failed: {prediction.get('error')}")
            raise UpstreamError(
                f"Segmentation prediction failed: {prediction.get('error') or 'unknown error'}",
                details={"prediction": prediction},
            )

        mask_url = locate_mask_url(prediction.get("output"))

        if mask_url is None:
            logger.warning(
                f"Prediction {prediction.get('id')} {prediction.get('status')} but no mask-like output was found"
            )
        else:
            logger.info(f"Prediction {prediction.get('id')} {prediction.get('status')} after {polls} polls")

        return SegmentationResult(prediction=prediction, mask_url=mask_url)

    async def _create_prediction(self, image_data_url: str) -> dict[str, Any]:
        body = {
            "version": self.model_version,
            "input": {"image": image_data_url},
        }
        return await self._request("POST", f"{self.base_url}/predictions", json=body)

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Send one request and return the decoded JSON prediction."""
        client = await self._get_client()

        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Segmentation API returned {e.response.status_code} for {method} {url}")
            raise UpstreamError(
                f"Segmentation API error: {e.response.status_code}",
                details={"status_code": e.response.status_code, "body": e.response.text},
            ) from e
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Segmentation API timed out: {e}", status_code=504) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to reach segmentation API: {e}") from e
        except ValueError as e:
            raise UpstreamError(f"Segmentation API returned invalid JSON: {e}") from e


def create_segmentation_client(settings: Settings) -> ReplicateSegmentationClient:
    """
    Build a segmentation client from explicit settings.

    Returns:
        ReplicateSegmentationClient configured from settings
    """
    return ReplicateSegmentationClient(
        api_token=settings.replicate_api_token,
        model_version=settings.replicate_model_version,
        base_url=settings.replicate_base_url,
        timeout=settings.segmentation_timeout,
    )
