"""Pixel transforms applied to the card-number region before OCR.

The preprocessor converts the cropped region to luma grayscale and stretches
contrast around mid-gray so printed digits separate from the card background.
All functions are pure: inputs are never modified.
"""

import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

CONTRAST_PIVOT = 128
CONTRAST_SHIFT = 50


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR(A) raster to luma grayscale.

    Uses ``0.299R + 0.587G + 0.114B`` rounded half-up to the nearest integer.

    Args:
        image: BGR (H, W, 3) or BGRA (H, W, 4) uint8 array.

    Returns:
        Grayscale (H, W) uint8 array.

    Raises:
        ValueError: If the image does not have 3 or 4 channels.
    """
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError(f"Expected BGR or BGRA image, got shape {image.shape}")

    red_w, green_w, blue_w = LUMA_WEIGHTS
    pixels = image.astype(np.float64)
    luma = red_w * pixels[..., 2] + green_w * pixels[..., 1] + blue_w * pixels[..., 0]
    return np.floor(luma + 0.5).astype(np.uint8)


def stretch_contrast(gray: np.ndarray) -> np.ndarray:
    """Push values away from mid-gray.

    Values below 128 are darkened by 50 (floored at 0), values at or above
    128 are brightened by 50 (capped at 255).

    Args:
        gray: Grayscale (H, W) uint8 array.

    Returns:
        Enhanced (H, W) uint8 array.
    """
    values = gray.astype(np.int16)
    enhanced = np.where(
        values < CONTRAST_PIVOT,
        np.maximum(0, values - CONTRAST_SHIFT),
        np.minimum(255, values + CONTRAST_SHIFT),
    )
    return enhanced.astype(np.uint8)


def preprocess_image(image: np.ndarray) -> np.ndarray:
    """Grayscale + contrast stretch, keeping the input's channel layout.

    All three color channels of the output carry the same enhanced value.
    An alpha channel, if present, is copied through unchanged.

    Args:
        image: BGR (H, W, 3) or BGRA (H, W, 4) uint8 array.

    Returns:
        New array of the same shape and dtype.

    Example:
        >>> region = np.full((10, 10, 3), 200, dtype=np.uint8)
        >>> preprocess_image(region)[0, 0].tolist()
        [250, 250, 250]
    """
    enhanced = stretch_contrast(to_grayscale(image))

    output = image.copy()
    output[..., 0] = enhanced
    output[..., 1] = enhanced
    output[..., 2] = enhanced
    return output


def encode_image(image: np.ndarray, ext: str = ".png") -> bytes:
    """Encode a raster into an exchangeable image blob.

    Args:
        image: uint8 raster accepted by ``cv2.imencode``.
        ext: Target format extension (default: PNG).

    Returns:
        Encoded image bytes.

    Raises:
        ValueError: If OpenCV cannot encode the image.
    """
    success, buffer = cv2.imencode(ext, image)
    if not success:
        raise ValueError(f"Failed to encode image with shape {image.shape} as {ext}")

    logger.debug(f"Encoded {image.shape[1]}x{image.shape[0]} region as {ext}")
    return buffer.tobytes()
