"""Scan loop for the card scanner.

Core Components:
    - types: DetectedCard and ScanState
    - config_loader: Cadence, threshold, region and overlay settings (Pydantic)
    - processor: ScanOrchestrator, the timer-driven detection pipeline
"""

from .config_loader import (
    Config,
    OverlayConfig,
    RegionConfig,
    ScannerConfig,
    get_default_config,
    load_config,
)
from .processor import CAMERA_NOT_READY_MESSAGE, ScanOrchestrator
from .types import DetectedCard, FrameBuffer, ScanState

__all__ = [
    "DetectedCard",
    "FrameBuffer",
    "ScanState",
    "Config",
    "ScannerConfig",
    "RegionConfig",
    "OverlayConfig",
    "load_config",
    "get_default_config",
    "ScanOrchestrator",
    "CAMERA_NOT_READY_MESSAGE",
]
