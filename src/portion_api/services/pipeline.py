"""End-to-end portion estimation pipeline.

    IDLE -> IDENTIFIED -> SEGMENTED -> MEASURED -> ESTIMATED

Any non-terminal state can move to FAILED with a reason. Each collaborator is
called once and nothing is retried. The density request only needs the food
name, so it runs as a task alongside segmentation and measurement.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from portion_api.core.exceptions import (
    APIError,
    InputError,
    InvalidMeasurement,
    LoadError,
    UpstreamError,
)
from portion_api.models.portion import (
    ImageInput,
    PlateAssumptions,
    PortionEstimate,
    SegmentationResult,
)
from portion_api.services.density import DensityEstimator
from portion_api.services.food_recognition import FoodRecognitionService
from portion_api.services.pixel_fraction import (
    MaskLoader,
    display_size,
    image_size,
    measure_pixel_fraction,
)
from portion_api.services.portion import estimate_portion, validate_pixel_fraction
from portion_api.services.segmentation import ReplicateSegmentationClient

logger = logging.getLogger(__name__)

NO_MASK_MESSAGE = (
    "No mask returned by segmentation model. "
    "Check REPLICATE_MODEL_VERSION output format."
)


class PipelineState(str, Enum):
    """Stages of a single pipeline run."""

    IDLE = "idle"
    IDENTIFIED = "identified"
    SEGMENTED = "segmented"
    MEASURED = "measured"
    ESTIMATED = "estimated"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a run ended in FAILED."""

    INPUT_ERROR = "input_error"
    UPSTREAM_ERROR = "upstream_error"
    NO_MASK_FOUND = "no_mask_found"
    MASK_LOAD_ERROR = "mask_load_error"
    INVALID_MEASUREMENT = "invalid_measurement"


ALLOWED_TRANSITIONS: dict[PipelineState, PipelineState] = {
    PipelineState.IDLE: PipelineState.IDENTIFIED,
    PipelineState.IDENTIFIED: PipelineState.SEGMENTED,
    PipelineState.SEGMENTED: PipelineState.MEASURED,
    PipelineState.MEASURED: PipelineState.ESTIMATED,
}

TERMINAL_STATES = frozenset({PipelineState.ESTIMATED, PipelineState.FAILED})


@dataclass
class PipelineFailure:
    """Failure recorded on a run."""

    reason: FailureReason
    message: str
    status_code: int
    failed_in: PipelineState  # State the run was in when it failed
    details: Any = None


@dataclass
class PipelineRun:
    """State and artifacts of one pipeline run. Never shared between runs."""

    state: PipelineState = PipelineState.IDLE
    food_name: str | None = None
    segmentation: SegmentationResult | None = None
    pixel_fraction: float | None = None
    density_g_per_ml: float | None = None
    estimate: PortionEstimate | None = None
    failure: PipelineFailure | None = None
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.ESTIMATED

    def advance(self, next_state: PipelineState) -> None:
        """
        Move to the next stage.

        Raises:
            ValueError: If the transition is not the single allowed successor
        """
        if ALLOWED_TRANSITIONS.get(self.state) != next_state:
            raise ValueError(f"Illegal pipeline transition {self.state.value} -> {next_state.value}")
        self.state = next_state
        self.history.append(next_state)

    def fail(
        self,
        reason: FailureReason,
        message: str,
        status_code: int,
        details: Any = None,
    ) -> None:
        """Move to FAILED and drop any partial estimate."""
        if self.state in TERMINAL_STATES:
            raise ValueError(f"Cannot fail a run that is already {self.state.value}")
        self.failure = PipelineFailure(
            reason=reason,
            message=message,
            status_code=status_code,
            failed_in=self.state,
            details=details,
        )
        self.estimate = None
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)


def _reason_for(error: APIError) -> FailureReason:
    if isinstance(error, InvalidMeasurement):
        return FailureReason.INVALID_MEASUREMENT
    if isinstance(error, LoadError):
        return FailureReason.MASK_LOAD_ERROR
    if isinstance(error, UpstreamError):
        return FailureReason.UPSTREAM_ERROR
    return FailureReason.INPUT_ERROR


class PortionPipeline:
    """Sequences identification, segmentation, measurement and estimation."""

    def __init__(
        self,
        recognizer: FoodRecognitionService,
        segmenter: ReplicateSegmentationClient,
        density_estimator: DensityEstimator,
        mask_loader: MaskLoader,
        plate: PlateAssumptions | None = None,
    ) -> None:
        self.recognizer = recognizer
        self.segmenter = segmenter
        self.density_estimator = density_estimator
        self.mask_loader = mask_loader
        self.plate = plate or PlateAssumptions()

    async def run(self, image: ImageInput) -> PipelineRun:
        """
        Run every stage for one image.

        Returns:
            PipelineRun ending in ESTIMATED, or FAILED with a reason. A missing
            mask is reported as FAILED/NO_MASK_FOUND, not as an upstream error.
        """
        run = PipelineRun()
        density_task: asyncio.Task[float] | None = None

        try:
            reference_width, reference_height = self._display_grid(image)

            identification = await self.recognizer.identify(image.data, image.media_type)
            run.food_name = identification.food_name
            run.advance(PipelineState.IDENTIFIED)
            logger.info(f"Identified '{run.food_name}' via {identification.provider}")

            density_task = asyncio.create_task(self.density_estimator.estimate(run.food_name))

            run.segmentation = await self.segmenter.segment(image.data_url)
            if run.segmentation.mask_url is None:
                logger.warning("Segmentation succeeded without a mask; stopping pipeline")
                run.fail(
                    FailureReason.NO_MASK_FOUND,
                    NO_MASK_MESSAGE,
                    status_code=422,
                    details={"prediction": run.segmentation.prediction},
                )
                return run
            run.advance(PipelineState.SEGMENTED)

            mask_data = await self.mask_loader.load(run.segmentation.mask_url)
            fraction = measure_pixel_fraction(mask_data, reference_width, reference_height)
            run.pixel_fraction = validate_pixel_fraction(fraction)
            run.advance(PipelineState.MEASURED)

            run.density_g_per_ml = await density_task
            run.estimate = estimate_portion(run.pixel_fraction, run.density_g_per_ml, self.plate)
            run.advance(PipelineState.ESTIMATED)

            logger.info(
                "Pipeline complete",
                extra={
                    "food_name": run.food_name,
                    "pixel_fraction": run.pixel_fraction,
                    "density_g_per_ml": run.density_g_per_ml,
                    "portion_grams": run.estimate.portion_grams,
                },
            )

        except APIError as e:
            logger.warning(f"Pipeline failed in state {run.state.value}: {e.message}")
            run.fail(_reason_for(e), e.message, e.status_code, e.details)

        finally:
            if density_task is not None and not density_task.done():
                density_task.cancel()

        return run

    def _display_grid(self, image: ImageInput) -> tuple[int, int]:
        """Grid the pixel fraction is measured on."""
        if not image.data:
            raise InputError("Missing image")
        try:
            width, height = image_size(image.data)
        except LoadError as e:
            raise InputError("Image could not be decoded") from e
        return display_size(width, height)
