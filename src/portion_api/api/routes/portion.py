"""Portion estimation API routes.

Endpoints used by the web client, one per pipeline stage, plus a single-shot
endpoint that runs the whole pipeline server-side.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile

from portion_api.api.dependencies import (
    DensityEstimatorDep,
    FoodRecognitionDep,
    MaskLoaderDep,
    PipelineDep,
    PlateAssumptionsDep,
    SegmentationClientDep,
    get_food_recognition_service,
)
from portion_api.core.exceptions import APIError, InputError, LoadError
from portion_api.models.portion import (
    AnalyzeResponse,
    ErrorResponse,
    EstimatePortionRequest,
    IdentifyResponse,
    ImageInput,
    MeasureRequest,
    MeasureResponse,
    PortionEstimateResponse,
    SegmentRequest,
    SegmentResponse,
)
from portion_api.services.pixel_fraction import display_size, image_size, measure_pixel_fraction
from portion_api.services.portion import estimate_portion, validate_pixel_fraction

router = APIRouter()
logger = logging.getLogger(__name__)

# =============================================================================
# Validation Constants
# =============================================================================

MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10 MB

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or invalid input"},
    502: {"model": ErrorResponse, "description": "Upstream service failed"},
}


# =============================================================================
# Helpers
# =============================================================================


async def read_image_upload(upload: StarletteUploadFile | None) -> ImageInput:
    """
    Read an uploaded image into memory.

    Raises:
        InputError: If no file was sent, it is empty or too large
    """
    if upload is None:
        raise InputError("Missing file")

    data = await upload.read()
    if not data:
        raise InputError("Uploaded image is empty")
    if len(data) > MAX_IMAGE_SIZE:
        raise InputError(
            f"Image exceeds maximum size of {MAX_IMAGE_SIZE // (1024 * 1024)} MB",
            details={"size": len(data), "max_size": MAX_IMAGE_SIZE},
        )

    return ImageInput(data=data, media_type=upload.content_type or "image/jpeg")


# =============================================================================
# API Endpoints
# =============================================================================


@router.post("/identify", response_model=IdentifyResponse, responses=ERROR_RESPONSES)
async def identify(
    recognizer: FoodRecognitionDep,
    image: Annotated[UploadFile | None, File(description="Food photo")] = None,
) -> IdentifyResponse:
    """Name the primary food in an uploaded photo."""
    image_input = await read_image_upload(image)

    identification = await recognizer.identify(image_input.data, image_input.media_type)

    logger.info(
        "Food identified",
        extra={
            "food_name": identification.food_name,
            "provider": identification.provider,
            "processing_time_ms": identification.processing_time_ms,
        },
    )
    return IdentifyResponse(food_name=identification.food_name)


@router.post(
    "/segment",
    response_model=SegmentResponse,
    responses={**ERROR_RESPONSES, 504: {"model": ErrorResponse, "description": "Segmentation timed out"}},
)
async def segment(request: Request, segmenter: SegmentationClientDep) -> SegmentResponse:
    """
    Run the segmentation model and locate its mask.

    Accepts a multipart ``image`` upload or JSON ``{"imageBase64": "data:..."}``.
    ``segResult.maskUrl`` is null when the model answered but produced nothing
    mask-shaped; that is still a successful response.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("image")
        image_input = await read_image_upload(
            upload if isinstance(upload, StarletteUploadFile) else None
        )
        data_url = image_input.data_url
    else:
        try:
            body = SegmentRequest.model_validate(await request.json())
        except (ValueError, ValidationError) as e:
            raise InputError("Missing image") from e
        data_url = body.image_base64

    seg_result = await segmenter.segment(data_url)

    if seg_result.mask_url is None:
        logger.warning("Segmentation returned no mask-like output")

    return SegmentResponse(seg_result=seg_result)


@router.post(
    "/estimate-portion",
    response_model=PortionEstimateResponse,
    responses=ERROR_RESPONSES,
)
async def estimate_portion_endpoint(
    body: EstimatePortionRequest,
    density_estimator: DensityEstimatorDep,
    plate: PlateAssumptionsDep,
) -> PortionEstimateResponse:
    """
    Convert a client-measured pixel fraction into grams.

    The density for ``foodName`` comes from the language model, falling back
    to 1.0 g/mL when the model gives no usable number.
    """
    pixel_fraction = validate_pixel_fraction(body.pixel_fraction)

    density = await density_estimator.estimate(body.food_name)
    estimate = estimate_portion(pixel_fraction, density, plate)

    logger.info(
        "Portion estimated",
        extra={
            "food_name": body.food_name,
            "pixel_fraction": pixel_fraction,
            "density_g_per_ml": density,
            "portion_grams": estimate.portion_grams,
        },
    )
    return PortionEstimateResponse.from_estimate(body.food_name, estimate)


@router.post(
    "/measure",
    response_model=MeasureResponse,
    responses={**ERROR_RESPONSES, 422: {"model": ErrorResponse, "description": "Mask could not be loaded"}},
)
async def measure(body: MeasureRequest, mask_loader: MaskLoaderDep) -> MeasureResponse:
    """
    Compute the pixel fraction server-side.

    The grid is either given explicitly (``referenceWidth``/``referenceHeight``)
    or derived from ``imageBase64`` the same way the web client sizes its canvas.
    """
    if body.reference_width is not None and body.reference_height is not None:
        width, height = body.reference_width, body.reference_height
    elif body.image_base64:
        image_input = ImageInput.from_data_url(body.image_base64)
        try:
            width, height = display_size(*image_size(image_input.data))
        except LoadError as e:
            raise InputError("Image could not be decoded") from e
    else:
        raise InputError("Provide imageBase64 or both referenceWidth and referenceHeight")

    mask_data = await mask_loader.load(body.mask_url)
    fraction = measure_pixel_fraction(mask_data, width, height)

    return MeasureResponse(pixel_fraction=fraction, reference_width=width, reference_height=height)


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        **ERROR_RESPONSES,
        422: {"model": ErrorResponse, "description": "No mask found or mask unusable"},
        504: {"model": ErrorResponse, "description": "Segmentation timed out"},
    },
)
async def analyze(
    pipeline: PipelineDep,
    image: Annotated[UploadFile | None, File(description="Food photo")] = None,
):
    """Run identification, segmentation, measurement and estimation in one call."""
    image_input = await read_image_upload(image)

    run = await pipeline.run(image_input)

    if not run.succeeded:
        failure = run.failure
        return JSONResponse(
            status_code=failure.status_code,
            content=ErrorResponse(
                error=failure.message,
                details={
                    "reason": failure.reason.value,
                    "state": failure.failed_in.value,
                    "upstream": failure.details,
                },
            ).model_dump(),
        )

    return AnalyzeResponse.from_estimate(
        run.food_name,
        run.estimate,
        mask_url=run.segmentation.mask_url,
        state=run.state.value,
    )


@router.get(
    "/recognition/health",
    summary="Check food recognition provider health",
    description="Check if the configured food identification provider is available.",
)
async def check_recognition_health() -> dict:
    """
    Report whether the food identification provider can take requests.

    Returns:
        dict with status, provider and availability
    """
    try:
        service = get_food_recognition_service()
        is_healthy = await service.health_check()
    except APIError as e:
        logger.error(f"Recognition health check failed: {e.message}")
        return {
            "status": "error",
            "provider": "unknown",
            "available": False,
            "error": e.message,
        }

    return {
        "status": "healthy" if is_healthy else "unhealthy",
        "provider": service.provider_name,
        "available": is_healthy,
    }
