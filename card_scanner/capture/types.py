"""Type definitions for the capture module."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional


class ReadinessState(Enum):
    """Playback progress of the capture session.

    Scanning may only start from PLAYING.
    """

    NOT_STARTED = "not_started"
    REQUESTING = "requesting"
    STREAM_OBTAINED = "stream_obtained"
    METADATA_LOADED = "metadata_loaded"
    CAN_PLAY = "can_play"
    PLAYING = "playing"


class ReadyState(IntEnum):
    """Frame availability of a video sink (mirrors HTMLMediaElement.readyState)."""

    HAVE_NOTHING = 0
    HAVE_METADATA = 1
    HAVE_CURRENT_DATA = 2
    HAVE_FUTURE_DATA = 3
    HAVE_ENOUGH_DATA = 4


@dataclass
class CaptureSession:
    """State of the camera stream, owned by the capture session manager.

    Attributes:
        stream: Active media stream, None when stopped
        readiness: Playback progress
        last_error: User-facing error message, if any
        diagnostics: Track settings and other debug values
        status: Human-readable status line
    """

    stream: Optional[Any] = None
    readiness: ReadinessState = ReadinessState.NOT_STARTED
    last_error: Optional[str] = None
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    status: str = "Not started"
