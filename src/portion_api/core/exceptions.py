"""Custom exception classes for the API."""

from typing import Any


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int = 400, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class InputError(APIError):
    """Missing or malformed request fields."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message=message, status_code=400, details=details)


class UpstreamError(APIError):
    """An external service (identification, segmentation, transport) failed."""

    def __init__(self, message: str, details: Any = None, status_code: int = 502):
        super().__init__(message=message, status_code=status_code, details=details)


class SegmentationTimeoutError(UpstreamError):
    """The segmentation prediction never left a pending status."""

    def __init__(self, polls: int, details: Any = None):
        self.polls = polls
        super().__init__(
            message=f"Segmentation prediction still pending after {polls} polls",
            details=details,
            status_code=504,
        )


class LoadError(APIError):
    """A mask or photo could not be fetched or decoded."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message=message, status_code=422, details=details)


class InvalidMeasurement(APIError):
    """Pixel fraction outside (0, 1]."""

    def __init__(self, pixel_fraction: Any):
        super().__init__(
            message=f"pixelFraction must be in (0, 1], got {pixel_fraction!r}",
            status_code=400,
            details={"received": repr(pixel_fraction), "allowed": "(0, 1]"},
        )
