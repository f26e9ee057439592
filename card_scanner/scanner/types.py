"""Type definitions for the scanner module."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from card_scanner.common.types import ImageBuffer


@dataclass
class FrameBuffer:
    """Rasters of one processing tick. Never outlives the tick.

    Attributes:
        frame: Snapshot of the live frame at native size
        region: Card-number band cropped from the frame
        processed: Preprocessed region handed to the encoder
    """

    frame: ImageBuffer
    region: Optional[ImageBuffer] = None
    processed: Optional[ImageBuffer] = None


@dataclass(frozen=True)
class DetectedCard:
    """An accepted card number.

    Immutable; a later detection replaces it wholesale.

    Attributes:
        number: 16-digit card number without spaces
        confidence: Recognition confidence in [0, 100]
        timestamp: When the detection was accepted
    """

    number: str
    confidence: float
    timestamp: datetime


@dataclass
class ScanState:
    """Scan loop flags.

    Attributes:
        is_scanning: Whether the sampling timer is running
        is_processing: Busy guard, true only while one tick's pipeline runs
    """

    is_scanning: bool = False
    is_processing: bool = False
