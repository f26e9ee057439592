"""
Common types and errors shared across all modules.
"""

from card_scanner.common.errors import (
    CaptureConstraintsUnsupported,
    CaptureDeviceBusy,
    CaptureDeviceMissing,
    CaptureError,
    CaptureOther,
    CapturePermissionDenied,
    CardScannerError,
    EngineAssetUnreachable,
    EngineConstructionFailed,
    EngineError,
    EngineNotReady,
    InitializationError,
    PlaybackError,
    RecognitionCallFailed,
    RecognitionError,
    RegionExtractionInvalid,
)
from card_scanner.common.types import BBox, ImageBuffer

__all__ = [
    "ImageBuffer",
    "BBox",
    "CardScannerError",
    "CaptureError",
    "CapturePermissionDenied",
    "CaptureDeviceMissing",
    "CaptureDeviceBusy",
    "CaptureConstraintsUnsupported",
    "CaptureOther",
    "PlaybackError",
    "EngineError",
    "EngineAssetUnreachable",
    "EngineConstructionFailed",
    "InitializationError",
    "RecognitionError",
    "EngineNotReady",
    "RecognitionCallFailed",
    "RegionExtractionInvalid",
]
