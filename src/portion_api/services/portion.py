"""Portion estimation from pixel fraction, plate geometry and density.

The physical model: the food covers ``pixel_fraction``
of a standard plate, piled to a constant height, so

    volume_ml = pixel_fraction * plate_area_cm2 * height_cm    (1 mL = 1 cm³)
    grams     = volume_ml * density_g_per_ml
"""

import logging

from portion_api.core.exceptions import InvalidMeasurement
from portion_api.models.portion import PlateAssumptions, PortionEstimate

logger = logging.getLogger(__name__)


def validate_pixel_fraction(pixel_fraction: float) -> float:
    """
    Reject fractions outside (0, 1]. Never clamps.

    Raises:
        InvalidMeasurement: If the value is <= 0, > 1, NaN or not a number
    """
    if isinstance(pixel_fraction, bool) or not isinstance(pixel_fraction, (int, float)):
        raise InvalidMeasurement(pixel_fraction)
    if not 0 < pixel_fraction <= 1:
        raise InvalidMeasurement(pixel_fraction)
    return float(pixel_fraction)


def estimate_portion(
    pixel_fraction: float,
    density_g_per_ml: float,
    plate: PlateAssumptions | None = None,
) -> PortionEstimate:
    """
    Convert a pixel fraction into volume and mass.

    Args:
        pixel_fraction: Fraction of the displayed image covered by food, in (0, 1]
        density_g_per_ml: Food density
        plate: Plate geometry (defaults: 25 cm diameter, 2.5 cm height)

    Returns:
        PortionEstimate with the plate used and every intermediate value

    Raises:
        InvalidMeasurement: If pixel_fraction is outside (0, 1]
    """
    fraction = validate_pixel_fraction(pixel_fraction)
    plate = plate or PlateAssumptions()

    plate_area_cm2 = plate.plate_area_cm2
    estimated_volume_ml = fraction * plate_area_cm2 * plate.assumed_height_cm
    portion_grams = estimated_volume_ml * density_g_per_ml

    logger.debug(
        f"Portion: {fraction:.4f} x {plate_area_cm2:.2f}cm² x {plate.assumed_height_cm}cm "
        f"= {estimated_volume_ml:.2f}mL x {density_g_per_ml}g/mL = {portion_grams:.1f}g"
    )

    return PortionEstimate(
        pixel_fraction=fraction,
        plate=plate,
        plate_area_cm2=plate_area_cm2,
        estimated_volume_ml=estimated_volume_ml,
        density_g_per_ml=density_g_per_ml,
        portion_grams=portion_grams,
    )
