"""Detection overlay rendering.

The overlay is a transparent BGRA layer the size of the live frame. Each call
repaints it from scratch: a rectangle marking the card-number band, colored by
confidence, and a short confidence label above it.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# BGRA
HIGH_CONFIDENCE_COLOR: Tuple[int, int, int, int] = (129, 185, 16, 255)  # #10b981
LOW_CONFIDENCE_COLOR: Tuple[int, int, int, int] = (11, 158, 245, 255)  # #f59e0b

LABEL_OFFSET = 15
LABEL_FONT = cv2.FONT_HERSHEY_SIMPLEX
LABEL_SCALE = 0.7
LABEL_THICKNESS = 2


def confidence_color(
    confidence: float, threshold: float = 80.0
) -> Tuple[int, int, int, int]:
    """Pick the overlay color for a confidence value (strictly above threshold is high)."""
    return HIGH_CONFIDENCE_COLOR if confidence > threshold else LOW_CONFIDENCE_COLOR


def draw_detection_overlay(
    canvas: Optional[np.ndarray],
    frame_width: int,
    frame_height: int,
    card_number: str,
    confidence: float,
    width_fraction: float = 0.8,
    height_fraction: float = 0.3,
    top_fraction: float = 0.4,
    high_confidence_threshold: float = 80.0,
    line_thickness: int = 4,
) -> np.ndarray:
    """Repaint the detection overlay.

    Args:
        canvas: Existing BGRA overlay layer, or None. A layer whose size does
            not match the frame is replaced.
        frame_width: Live frame width in pixels.
        frame_height: Live frame height in pixels.
        card_number: Detected digits (not drawn).
        confidence: Recognition confidence in [0, 100].
        width_fraction: Rectangle width as a fraction of canvas width.
        height_fraction: Rectangle height as a fraction of canvas height.
        top_fraction: Rectangle top edge as a fraction of canvas height.
        high_confidence_threshold: Confidence above which the high color is used.
        line_thickness: Rectangle stroke width in pixels.

    Returns:
        The repainted BGRA canvas of shape (frame_height, frame_width, 4).
    """
    expected_shape = (frame_height, frame_width, 4)
    if canvas is None or canvas.shape != expected_shape:
        canvas = np.zeros(expected_shape, dtype=np.uint8)
    else:
        canvas[:] = 0

    color = confidence_color(confidence, high_confidence_threshold)

    box_width = frame_width * width_fraction
    box_height = frame_height * height_fraction
    box_x = (frame_width - box_width) / 2
    box_y = frame_height * top_fraction

    top_left = (int(round(box_x)), int(round(box_y)))
    bottom_right = (int(round(box_x + box_width)), int(round(box_y + box_height)))
    cv2.rectangle(canvas, top_left, bottom_right, color, line_thickness)

    label = f"{confidence:.1f}% Confidence"
    cv2.putText(
        canvas,
        label,
        (top_left[0], max(0, top_left[1] - LABEL_OFFSET)),
        LABEL_FONT,
        LABEL_SCALE,
        color,
        LABEL_THICKNESS,
        cv2.LINE_AA,
    )

    logger.debug(
        f"Overlay drawn for card ending {card_number[-4:]}: "
        f"confidence={confidence:.1f}, box={top_left}-{bottom_right}"
    )
    return canvas


def composite_overlay(frame: np.ndarray, overlay: Optional[np.ndarray]) -> np.ndarray:
    """Alpha-blend a BGRA overlay onto a BGR frame.

    Returns the frame unchanged (as a copy) when there is no overlay or its
    size does not match.
    """
    output = frame.copy()
    if overlay is None or overlay.shape[:2] != frame.shape[:2]:
        return output

    alpha = overlay[..., 3:4].astype(np.float32) / 255.0
    blended = output.astype(np.float32) * (1.0 - alpha) + overlay[
        ..., :3
    ].astype(np.float32) * alpha
    return blended.astype(np.uint8)
