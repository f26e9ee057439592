"""Error taxonomy for the card scanner.

Capture and engine errors are recovered locally by their managers up to their
retry policies and only surface as user-facing messages after exhaustion.
Per-tick errors (region extraction, recognition) are swallowed at the tick
boundary by the scan orchestrator.
"""

from typing import Optional


class CardScannerError(Exception):
    """Base class for all card scanner errors."""


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


class CaptureError(CardScannerError):
    """Camera acquisition failure with a user-facing message.

    Attributes:
        message: Human-readable explanation suitable for the operator.
        detail: Underlying error text, if any.
    """

    default_message = "Unable to access camera."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class CapturePermissionDenied(CaptureError):
    default_message = (
        "Camera access denied. Please allow camera permissions and try again."
    )


class CaptureDeviceMissing(CaptureError):
    default_message = "No camera found. Please connect a camera and try again."


class CaptureDeviceBusy(CaptureError):
    default_message = "Camera is already in use by another application."


class CaptureConstraintsUnsupported(CaptureError):
    default_message = (
        "Camera constraints not supported. Trying with default settings..."
    )


class CaptureOther(CaptureError):
    pass


class PlaybackError(CaptureError):
    """Explicit playback request was rejected."""


# ---------------------------------------------------------------------------
# Recognition engine
# ---------------------------------------------------------------------------


class EngineError(CardScannerError):
    """Base class for recognition engine errors."""


class EngineAssetUnreachable(EngineError):
    """A remote engine asset failed the accessibility probe."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Asset not reachable: {url} ({reason})")


class EngineConstructionFailed(EngineError):
    """The OCR backend could not be constructed."""


class InitializationError(EngineError):
    """Terminal initialization failure after all retries were exhausted.

    Attributes:
        attempts: Number of attempts made.
        last_error: Message of the last underlying failure.
    """

    def __init__(self, attempts: int, last_error: str):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to initialize OCR engine after {attempts} attempts: {last_error}"
        )


class RecognitionError(EngineError):
    """Base class for errors raised by a recognition call."""


class EngineNotReady(RecognitionError):
    """Recognition was requested before a backend was installed."""


class RecognitionCallFailed(RecognitionError):
    """The backend raised while recognizing an image."""


# ---------------------------------------------------------------------------
# Imaging
# ---------------------------------------------------------------------------


class RegionExtractionInvalid(CardScannerError, ValueError):
    """Source frame has zero area or the band starts outside the frame."""
