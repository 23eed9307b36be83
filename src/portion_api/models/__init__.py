"""Pydantic models for API schemas."""

from .portion import (
    AnalyzeResponse,
    ErrorResponse,
    EstimatePortionRequest,
    IdentifyResponse,
    ImageInput,
    MeasureRequest,
    MeasureResponse,
    PlateAssumptions,
    PortionEstimate,
    PortionEstimateResponse,
    SegmentationResult,
    SegmentRequest,
    SegmentResponse,
)

__all__ = [
    # Domain
    "ImageInput",
    "PlateAssumptions",
    "PortionEstimate",
    "SegmentationResult",
    # Requests
    "EstimatePortionRequest",
    "MeasureRequest",
    "SegmentRequest",
    # Responses
    "AnalyzeResponse",
    "ErrorResponse",
    "IdentifyResponse",
    "MeasureResponse",
    "PortionEstimateResponse",
    "SegmentResponse",
]
