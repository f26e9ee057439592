"""Camera capture for the card scanner.

Core Components:
    - config_loader: Camera constraints and device mapping (Pydantic)
    - media_devices: OpenCV camera acquisition and error classification
    - video_sink: Playback events and the latest frame
    - manager: Capture session lifecycle with the relaxed-constraint retry
"""

from .config_loader import (
    CameraConstraints,
    CaptureConfig,
    Config,
    ResolutionRange,
    get_default_config,
    load_config,
)
from .manager import CaptureSessionManager
from .media_devices import MediaStream, OpenCVMediaDevices, VideoTrack, classify_open_failure
from .types import CaptureSession, ReadinessState, ReadyState
from .video_sink import VideoSink

__all__ = [
    "CameraConstraints",
    "CaptureConfig",
    "Config",
    "ResolutionRange",
    "get_default_config",
    "load_config",
    "CaptureSession",
    "ReadinessState",
    "ReadyState",
    "MediaStream",
    "VideoTrack",
    "OpenCVMediaDevices",
    "classify_open_failure",
    "VideoSink",
    "CaptureSessionManager",
]
