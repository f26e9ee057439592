"""Image processing for the card scanner.

Pure functions applied to each sampled frame:
    - region: crop the band that likely holds the card number
    - preprocessing: grayscale + contrast stretch, PNG encoding
    - overlay: repaint the detection overlay layer

Example:
    >>> from card_scanner.imaging import extract_card_number_region, preprocess_image
    >>> region = extract_card_number_region(frame)
    >>> processed = preprocess_image(region)
"""

from .overlay import composite_overlay, confidence_color, draw_detection_overlay
from .preprocessing import encode_image, preprocess_image, stretch_contrast, to_grayscale
from .region import card_number_band, extract_card_number_region

__all__ = [
    "card_number_band",
    "extract_card_number_region",
    "to_grayscale",
    "stretch_contrast",
    "preprocess_image",
    "encode_image",
    "confidence_color",
    "draw_detection_overlay",
    "composite_overlay",
]
