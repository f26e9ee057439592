"""Type definitions for the OCR module."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

ProgressLogger = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class RecognitionResult:
    """Text and confidence returned by one recognition call.

    Attributes:
        text: Recognized text, lines separated by newlines
        confidence: Mean word confidence in [0, 100]
    """

    text: str
    confidence: float


@dataclass
class BackendOptions:
    """Options passed to the backend constructor.

    Attributes:
        logger: Progress callback receiving ``{"status", "progress"}`` dicts
        worker_path: Tesseract executable
        core_path: Primary language model, local path or URL
        lang_path: Tessdata directory or remote base URL
        extra: Tier-specific engine options
        cache_dir: Where remote models are downloaded
    """

    logger: Optional[ProgressLogger] = None
    worker_path: Optional[str] = None
    core_path: Optional[str] = None
    lang_path: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    cache_dir: Optional[str] = None


@dataclass
class RecognitionEngineHandle:
    """Lifecycle state of the recognition engine.

    At most one live backend exists at a time; it is owned by the engine
    manager and terminated on dispose or when superseded.

    Attributes:
        backend: Installed OCR backend, None until initialization succeeds
        initializing: Whether an initialization run is in flight
        retry_count: Failed attempts in the current run
        last_error: Terminal error message, if initialization gave up
        tier_name: Tier the installed backend was built from
    """

    backend: Optional[Any] = None
    initializing: bool = False
    retry_count: int = 0
    last_error: Optional[str] = None
    tier_name: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        """Check if a backend is installed."""
        return self.backend is not None
