"""Segmentation service client and mask locator."""

from .client import (
    ReplicateSegmentationClient,
    create_segmentation_client,
)
from .mask_locator import is_mask_reference, locate_mask_url

__all__ = [
    "ReplicateSegmentationClient",
    "create_segmentation_client",
    "is_mask_reference",
    "locate_mask_url",
]
