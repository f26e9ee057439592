"""Card-number region extraction.

The number on a card held in front of the camera usually falls in a horizontal
band across the middle of the frame. The extractor crops that band at full
frame width.
"""

import logging
import math

import numpy as np

from card_scanner.common.errors import RegionExtractionInvalid
from card_scanner.common.types import BBox

logger = logging.getLogger(__name__)

DEFAULT_START_FRACTION = 0.4
DEFAULT_HEIGHT_FRACTION = 0.3


def card_number_band(
    frame_width: int,
    frame_height: int,
    start_fraction: float = DEFAULT_START_FRACTION,
    height_fraction: float = DEFAULT_HEIGHT_FRACTION,
) -> BBox:
    """Compute the band believed to contain the card number.

    The band starts at ``start_fraction`` of the frame height and is
    ``height_fraction`` of the frame height tall (at least 1 px). A band that
    would overflow the frame is shrunk to end at the bottom edge.

    Args:
        frame_width: Frame width in pixels.
        frame_height: Frame height in pixels.
        start_fraction: Top edge as a fraction of frame height.
        height_fraction: Band height as a fraction of frame height.

    Returns:
        Band as a BBox in frame coordinates.

    Raises:
        RegionExtractionInvalid: If the frame has zero area or the band
            starts outside the frame.
    """
    if frame_width <= 0 or frame_height <= 0:
        raise RegionExtractionInvalid(
            f"Invalid frame provided to region extraction: "
            f"{frame_width}x{frame_height}"
        )

    region_height = max(1, math.floor(frame_height * height_fraction))
    region_y = math.floor(frame_height * start_fraction)

    if region_y >= frame_height:
        raise RegionExtractionInvalid(
            f"Region start {region_y} is outside frame height {frame_height}"
        )

    if region_y + region_height > frame_height:
        logger.warning(
            "Region extraction parameters exceed frame bounds, adjusting..."
        )
        region_height = max(1, frame_height - region_y)

    return BBox(
        x_min=0,
        y_min=region_y,
        x_max=frame_width,
        y_max=region_y + region_height,
    )


def extract_card_number_region(
    frame: np.ndarray,
    start_fraction: float = DEFAULT_START_FRACTION,
    height_fraction: float = DEFAULT_HEIGHT_FRACTION,
) -> np.ndarray:
    """Crop the card-number band out of a frame.

    Args:
        frame: Frame raster (H, W) or (H, W, C).
        start_fraction: Top edge as a fraction of frame height.
        height_fraction: Band height as a fraction of frame height.

    Returns:
        A copy of the band, full frame width.

    Raises:
        RegionExtractionInvalid: If the frame is missing or has zero area.

    Example:
        >>> frame = np.zeros((720, 1280, 3), dtype=np.uint8)
        >>> extract_card_number_region(frame).shape
        (216, 1280, 3)
    """
    if frame is None or frame.ndim < 2:
        raise RegionExtractionInvalid("Invalid frame provided to region extraction")

    band = card_number_band(
        frame_width=int(frame.shape[1]),
        frame_height=int(frame.shape[0]),
        start_fraction=start_fraction,
        height_fraction=height_fraction,
    )
    return frame[band.y_min : band.y_max, band.x_min : band.x_max].copy()
