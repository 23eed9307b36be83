"""Locate a mask image reference inside a schema-unstable prediction output.

Segmentation models on Replicate do not agree on an output shape: some return
a bare URL, some a list of URLs, others an object with ``mask``/``masks``/
``overlay`` keys nested at varying depth. The search below is a deterministic
depth-first walk: well-known keys first, in a fixed order, then everything
else in insertion order. The first acceptable string wins.
"""

from collections.abc import Mapping
from typing import Any

# Keys most likely to hold the mask, searched in this order at every mapping level
PRIORITY_KEYS = ("mask", "masks", "segmentation", "segmented_image", "overlay")

IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "webp"})

DATA_URL_PREFIX = "data:"
HTTP_PREFIX = "http"  # Also matches https


def is_mask_reference(value: str) -> bool:
    """
    Check whether a string looks like a usable mask image reference.

    Inline data URLs are always accepted. HTTP(S) URLs are accepted only when
    the last path segment, without query string, has an image extension.
    """
    if value.startswith(DATA_URL_PREFIX):
        return True
    if not value.startswith(HTTP_PREFIX):
        return False

    last_segment = value.split("?", 1)[0].rsplit("/", 1)[-1]
    _, dot, extension = last_segment.rpartition(".")
    return bool(dot) and extension.lower() in IMAGE_EXTENSIONS


def locate_mask_url(structure: Any) -> str | None:
    """
    Search a prediction output for the first mask image reference.

    Args:
        structure: Arbitrary nesting of strings, lists/tuples and mappings

    Returns:
        The mask URL or data URL, or None if nothing in the structure qualifies
    """
    match structure:
        case str():
            return structure if is_mask_reference(structure) else None

        case list() | tuple():
            for item in structure:
                found = locate_mask_url(item)
                if found is not None:
                    return found
            return None

        case Mapping():
            for key in PRIORITY_KEYS:
                if structure.get(key):
                    found = locate_mask_url(structure[key])
                    if found is not None:
                        return found

            for key, value in structure.items():
                if key in PRIORITY_KEYS:
                    continue
                found = locate_mask_url(value)
                if found is not None:
                    return found
            return None

        case _:
            # Numbers, booleans, None
            return None
