"""Pydantic models for the portion estimation pipeline and its API contract.

Domain models keep full floating precision. The response models round values
for display only, and use the camelCase field names the web client reads.
"""

import base64
import binascii
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from portion_api.core.exceptions import InputError

MAX_REFERENCE_DIMENSION = 8192  # Largest measurement grid side in pixels

# =============================================================================
# Domain Models
# =============================================================================


class ImageInput(BaseModel):
    """A single user-supplied photograph. Never persisted."""

    data: bytes = Field(..., description="Raw image bytes")
    media_type: str = Field("image/jpeg", description="Declared media type")

    @property
    def data_url(self) -> str:
        """Render the image as an inline data URL."""
        encoded = base64.b64encode(self.data).decode("utf-8")
        return f"data:{self.media_type};base64,{encoded}"

    @classmethod
    def from_data_url(cls, data_url: str) -> "ImageInput":
        """
        Parse a ``data:<type>;base64,<payload>`` string.

        Raises:
            InputError: If the string is not a base64 data URL
        """
        header, sep, payload = data_url.partition(",")
        if not sep or not header.startswith("data:") or not header.endswith(";base64"):
            raise InputError("Image must be a base64 data URL (data:image/...;base64,...)")

        media_type = header[len("data:"):-len(";base64")] or "image/jpeg"
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InputError(f"Invalid base64 image data: {e}") from e

        return cls(data=data, media_type=media_type)


class PlateAssumptions(BaseModel):
    """Fixed geometric model of a typical serving."""

    plate_diameter_cm: float = Field(25.0, gt=0, description="Plate diameter in cm")
    assumed_height_cm: float = Field(2.5, gt=0, description="Average food height in cm")

    @property
    def plate_area_cm2(self) -> float:
        """Area of the plate circle in cm²."""
        return math.pi * (self.plate_diameter_cm / 2.0) ** 2


class PortionEstimate(BaseModel):
    """Volume and mass estimate with every intermediate value kept for audit."""

    pixel_fraction: float = Field(..., gt=0, le=1, description="Fraction of image covered by food")
    plate: PlateAssumptions
    plate_area_cm2: float = Field(..., description="Plate area used in cm²")
    estimated_volume_ml: float = Field(..., ge=0, description="Estimated volume (1 mL = 1 cm³)")
    density_g_per_ml: float = Field(..., description="Density used for the mass conversion")
    portion_grams: float = Field(..., ge=0, description="Estimated mass in grams")


class SegmentationResult(BaseModel):
    """Raw segmentation prediction plus the mask URL derived from it."""

    model_config = ConfigDict(populate_by_name=True)

    prediction: Any = Field(None, description="Full prediction object from the segmentation service")
    mask_url: str | None = Field(
        None,
        alias="maskUrl",
        description="Mask image URL located in the prediction output, null if none was found",
    )


# =============================================================================
# Request Models
# =============================================================================


class SegmentRequest(BaseModel):
    """JSON body for /segment when no file is uploaded."""

    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(..., alias="imageBase64", min_length=1)


class EstimatePortionRequest(BaseModel):
    """JSON body for /estimate-portion. All four fields are required."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    image_base64: str = Field(..., alias="imageBase64", min_length=1)
    mask_url: str = Field(..., alias="maskUrl", min_length=1)
    food_name: str = Field(..., alias="foodName", min_length=1)
    pixel_fraction: float = Field(
        ...,
        alias="pixelFraction",
        strict=True,  # JSON numbers only; true and "0.3" are rejected
        description="Food pixels / displayed image pixels, in (0, 1]",
    )


class MeasureRequest(BaseModel):
    """JSON body for /measure (server-side pixel fraction)."""

    model_config = ConfigDict(populate_by_name=True)

    mask_url: str = Field(..., alias="maskUrl", min_length=1)
    image_base64: str | None = Field(
        None,
        alias="imageBase64",
        description="Photo the mask belongs to; used to derive the display grid",
    )
    reference_width: int | None = Field(
        None, alias="referenceWidth", gt=0, le=MAX_REFERENCE_DIMENSION
    )
    reference_height: int | None = Field(
        None, alias="referenceHeight", gt=0, le=MAX_REFERENCE_DIMENSION
    )


# =============================================================================
# Response Models
# =============================================================================


class IdentifyResponse(BaseModel):
    """Response from /identify."""

    model_config = ConfigDict(populate_by_name=True)

    food_name: str = Field(..., alias="foodName")


class SegmentResponse(BaseModel):
    """Response from /segment. ``segResult.maskUrl`` may be null."""

    model_config = ConfigDict(populate_by_name=True)

    seg_result: SegmentationResult = Field(..., alias="segResult")


class MeasureResponse(BaseModel):
    """Response from /measure."""

    model_config = ConfigDict(populate_by_name=True)

    pixel_fraction: float = Field(..., alias="pixelFraction")
    reference_width: int = Field(..., alias="referenceWidth")
    reference_height: int = Field(..., alias="referenceHeight")


class PlateAssumptionsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plate_diameter_cm: float = Field(..., alias="plateDiameterCm")
    assumed_height_cm: float = Field(..., alias="assumedHeightCm")
    plate_area_cm2: float = Field(..., alias="plateAreaCm2")


class PortionEstimateResponse(BaseModel):
    """Response from /estimate-portion, rounded for display."""

    model_config = ConfigDict(populate_by_name=True)

    food_name: str = Field(..., alias="foodName")
    pixel_fraction: float = Field(..., alias="pixelFraction")
    plate_assumptions: PlateAssumptionsResponse = Field(..., alias="plateAssumptions")
    estimated_volume_ml: float = Field(..., alias="estimatedVolumeMl")
    density_g_per_ml: float = Field(..., alias="density_g_per_ml")
    portion_estimate_g: float = Field(..., alias="portionEstimate_g")

    @classmethod
    def from_estimate(cls, food_name: str, estimate: PortionEstimate, **extra: Any):
        """Build the display payload from an unrounded estimate."""
        return cls(
            food_name=food_name,
            pixel_fraction=estimate.pixel_fraction,
            plate_assumptions=PlateAssumptionsResponse(
                plate_diameter_cm=estimate.plate.plate_diameter_cm,
                assumed_height_cm=estimate.plate.assumed_height_cm,
                plate_area_cm2=round(estimate.plate_area_cm2, 2),
            ),
            estimated_volume_ml=round(estimate.estimated_volume_ml, 2),
            density_g_per_ml=round(estimate.density_g_per_ml, 2),
            portion_estimate_g=round(estimate.portion_grams, 1),
            **extra,
        )


class AnalyzeResponse(PortionEstimateResponse):
    """Response from /analyze: the estimate plus the pipeline trace."""

    mask_url: str = Field(..., alias="maskUrl")
    state: str = Field(..., description="Final pipeline state")


class ErrorResponse(BaseModel):
    """Structured error payload returned by every failing endpoint."""

    error: str
    details: Any = None
