"""FastAPI dependency injection factories.

Settings are read once here and passed explicitly into every service.
Collaborator clients are cached per process; pipelines are built per request.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from portion_api.agents.llm import get_llm
from portion_api.core.config import Settings, get_settings
from portion_api.core.exceptions import UpstreamError
from portion_api.models.portion import PlateAssumptions
from portion_api.services.density import DensityEstimator
from portion_api.services.food_recognition import (
    FoodRecognitionService,
    create_food_recognition_service,
)
from portion_api.services.pipeline import PortionPipeline
from portion_api.services.pixel_fraction import MaskLoader
from portion_api.services.segmentation import (
    ReplicateSegmentationClient,
    create_segmentation_client,
)

logger = logging.getLogger(__name__)


# Type aliases for cleaner route signatures
SettingsDep = Annotated[Settings, Depends(get_settings)]


@lru_cache
def get_segmentation_client() -> ReplicateSegmentationClient:
    """Get the cached segmentation client."""
    return create_segmentation_client(get_settings())


@lru_cache
def get_food_recognition_service() -> FoodRecognitionService:
    """Get the cached food identification provider."""
    return create_food_recognition_service(get_settings())


@lru_cache
def get_density_estimator() -> DensityEstimator:
    """
    Get the cached density estimator.

    Raises:
        UpstreamError: If no chat model is configured
    """
    try:
        llm = get_llm(get_settings())
    except ValueError as e:
        raise UpstreamError(str(e), status_code=503) from e
    return DensityEstimator(llm)


@lru_cache
def get_mask_loader() -> MaskLoader:
    """Get the cached mask downloader."""
    return MaskLoader(timeout=get_settings().segmentation_timeout)


def get_plate_assumptions(settings: SettingsDep) -> PlateAssumptions:
    """Plate geometry from settings."""
    return PlateAssumptions(
        plate_diameter_cm=settings.plate_diameter_cm,
        assumed_height_cm=settings.assumed_height_cm,
    )


SegmentationClientDep = Annotated[ReplicateSegmentationClient, Depends(get_segmentation_client)]
FoodRecognitionDep = Annotated[FoodRecognitionService, Depends(get_food_recognition_service)]
DensityEstimatorDep = Annotated[DensityEstimator, Depends(get_density_estimator)]
MaskLoaderDep = Annotated[MaskLoader, Depends(get_mask_loader)]
PlateAssumptionsDep = Annotated[PlateAssumptions, Depends(get_plate_assumptions)]


def get_pipeline(
    recognizer: FoodRecognitionDep,
    segmenter: SegmentationClientDep,
    density_estimator: DensityEstimatorDep,
    mask_loader: MaskLoaderDep,
    plate: PlateAssumptionsDep,
) -> PortionPipeline:
    """
    Get a PortionPipeline for one request.

    Returns:
        PortionPipeline wired with the cached collaborators
    """
    return PortionPipeline(
        recognizer=recognizer,
        segmenter=segmenter,
        density_estimator=density_estimator,
        mask_loader=mask_loader,
        plate=plate,
    )


PipelineDep = Annotated[PortionPipeline, Depends(get_pipeline)]


async def close_clients() -> None:
    """Close HTTP clients of any collaborator that was created."""
    if get_segmentation_client.cache_info().currsize:
        await get_segmentation_client().close()
    if get_food_recognition_service.cache_info().currsize:
        await get_food_recognition_service().close()
    if get_mask_loader.cache_info().currsize:
        await get_mask_loader().close()
    logger.info("Collaborator clients closed")
