"""Business logic services."""

from .density import DensityEstimator, parse_density
from .pipeline import FailureReason, PipelineRun, PipelineState, PortionPipeline
from .pixel_fraction import MaskLoader, display_size, measure_pixel_fraction
from .portion import estimate_portion, validate_pixel_fraction

__all__ = [
    "DensityEstimator",
    "FailureReason",
    "MaskLoader",
    "PipelineRun",
    "PipelineState",
    "PortionPipeline",
    "display_size",
    "estimate_portion",
    "measure_pixel_fraction",
    "parse_density",
    "validate_pixel_fraction",
]
