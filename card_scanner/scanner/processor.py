"""Scan orchestrator: the frame-sampling loop and detection state machine.

While scanning, a fixed-period timer attempts one pipeline tick:

    1. SNAPSHOT: copy the current frame from the video sink
    2. EXTRACT: crop the card-number band
    3. PREPROCESS: grayscale + contrast stretch, encode as PNG
    4. RECOGNIZE: run the OCR engine on the encoded region
    5. VALIDATE: accept a grouped 16-digit run above the confidence threshold
    6. DETECT: store a new DetectedCard and repaint the overlay

A busy guard keeps at most one tick in flight; a timer firing while a tick
runs is skipped, never queued. Errors inside a tick are logged and the guard
is always cleared, so a failing tick never blocks later ones.

Example:
    >>> orchestrator = ScanOrchestrator(capture, engine)
    >>> await orchestrator.open()
    >>> await orchestrator.start_camera()
    >>> orchestrator.toggle_scanning()
    True
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Set

import numpy as np

from card_scanner.capture.manager import CaptureSessionManager
from card_scanner.capture.types import ReadyState
from card_scanner.common.errors import (
    CaptureError,
    RecognitionError,
    RegionExtractionInvalid,
)
from card_scanner.common.types import ImageBuffer
from card_scanner.imaging.overlay import draw_detection_overlay
from card_scanner.imaging.preprocessing import encode_image, preprocess_image
from card_scanner.imaging.region import extract_card_number_region
from card_scanner.ocr.manager import RecognitionEngineManager
from card_scanner.ocr.validator import mask_card_number, validate_card_number

from .config_loader import ScannerConfig, get_default_config
from .types import DetectedCard, FrameBuffer, ScanState

logger = logging.getLogger(__name__)

CAMERA_NOT_READY_MESSAGE = (
    "Please wait for the camera to load completely before scanning."
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScanOrchestrator:
    """Top-level control loop of the card scanner.

    The capture and recognition managers are injected and owned by the
    orchestrator from then on: ``close()`` releases both.

    Args:
        capture: Capture session manager providing frames.
        engine: Recognition engine manager.
        config: Scan loop configuration. If None, uses the bundled defaults.
        clock: Returns the timestamp for new detections.

    Attributes:
        state: Scanning flag and busy guard.
        detected_card: Most recent accepted card, if any.
        overlay: BGRA overlay layer from the most recent detection.
        reveal_number: Whether the full number is shown instead of the mask.
        notice: Last operator-facing notice (e.g. why scanning did not start).
    """

    def __init__(
        self,
        capture: CaptureSessionManager,
        engine: RecognitionEngineManager,
        config: Optional[ScannerConfig] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.capture = capture
        self.engine = engine
        self.config = config if config is not None else get_default_config().scanner
        self._clock = clock

        self.state = ScanState()
        self.detected_card: Optional[DetectedCard] = None
        self.overlay: Optional[np.ndarray] = None
        self.reveal_number = False
        self.notice: Optional[str] = None

        self._timer: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def error(self) -> Optional[str]:
        """Operator-facing error: camera first, then OCR engine."""
        return self.capture.last_error or self.engine.last_error

    @property
    def display_number(self) -> Optional[str]:
        """Detected number, masked unless revealed."""
        if self.detected_card is None:
            return None
        if self.reveal_number:
            return self.detected_card.number
        return mask_card_number(self.detected_card.number)

    def frame_ready(self) -> bool:
        """Check that the sink holds a frame with non-zero dimensions."""
        sink = self.capture.sink
        return (
            sink.ready_state >= ReadyState.HAVE_CURRENT_DATA
            and sink.video_width > 0
            and sink.video_height > 0
        )

    def can_start_scanning(self) -> bool:
        return self.capture.is_ready and self.frame_ready()

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Start recognition engine initialization in the background."""
        self.engine.start()

    async def start_camera(self) -> bool:
        """Start the camera. Returns False if it failed (see ``error``)."""
        try:
            await self.capture.start()
        except CaptureError as e:
            logger.warning(f"Camera start failed: {e.message}")
            return False
        return True

    def stop_camera(self) -> None:
        self.capture.stop()

    async def force_play(self) -> bool:
        return await self.capture.force_play()

    def retry_ocr(self) -> asyncio.Task:
        return self.engine.retry()

    def toggle_reveal(self) -> bool:
        self.reveal_number = not self.reveal_number
        return self.reveal_number

    def toggle_scanning(self) -> bool:
        """Start or stop scanning.

        Scanning only starts when the video is playing and has a frame;
        otherwise nothing changes and ``notice`` explains why.

        Returns:
            Whether scanning is active after the call.
        """
        if self.state.is_scanning:
            self.stop_scanning()
            return False

        if not self.can_start_scanning():
            logger.warning(CAMERA_NOT_READY_MESSAGE)
            self.notice = CAMERA_NOT_READY_MESSAGE
            return False

        self.notice = None
        self.state.is_scanning = True
        self.detected_card = None
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())
        logger.info(f"Scanning started (interval={self.config.interval_seconds}s)")
        return True

    def stop_scanning(self) -> None:
        """Cancel the timer. An in-flight tick finishes on its own."""
        self.state.is_scanning = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info("Scanning stopped")

    async def close(self) -> None:
        """Stop scanning and release the camera and the OCR engine. Idempotent."""
        if self._closed:
            return
        self._closed = True

        self.stop_scanning()
        self.capture.close()
        await self.engine.aclose()

        if self._ticks:
            await asyncio.gather(*self._ticks, return_exceptions=True)
        logger.info("ScanOrchestrator closed")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def process_frame(self) -> Optional[DetectedCard]:
        """Run one pipeline tick.

        Skipped (returns None, nothing changes) while another tick is in
        flight, before the engine is ready, or when the frame is not ready.

        Returns:
            The new DetectedCard if this tick accepted one, else None.
        """
        if self.state.is_processing or not self.engine.is_ready:
            return None

        if not self.frame_ready():
            sink = self.capture.sink
            logger.debug(
                f"Video not ready for processing: readyState={int(sink.ready_state)}, "
                f"videoWidth={sink.video_width}, videoHeight={sink.video_height}"
            )
            return None

        self.state.is_processing = True
        try:
            return await self._run_pipeline()
        except RegionExtractionInvalid as e:
            logger.error(f"Error extracting card region: {e}")
        except RecognitionError as e:
            logger.error(f"OCR processing error: {e}")
        except Exception as e:
            logger.error(f"Frame processing error: {e}", exc_info=True)
        finally:
            self.state.is_processing = False
        return None

    async def _run_pipeline(self) -> Optional[DetectedCard]:
        frame = self.capture.sink.current_frame()
        if frame is None:
            raise RegionExtractionInvalid("No frame available")
        buffer = FrameBuffer(frame=ImageBuffer(data=frame))

        region_config = self.config.region
        buffer.region = ImageBuffer(
            data=extract_card_number_region(
                buffer.frame.data,
                start_fraction=region_config.start_fraction,
                height_fraction=region_config.height_fraction,
            )
        )
        buffer.processed = ImageBuffer(data=preprocess_image(buffer.region.data))
        blob = encode_image(buffer.processed.data, self.config.image_format)

        result = await self.engine.recognize(blob)
        logger.debug(
            f"Recognized text: {result.text!r} (confidence={result.confidence:.1f})"
        )

        number = validate_card_number(
            result.text, result.confidence, self.config.min_confidence
        )
        if number is None:
            return None

        card = DetectedCard(
            number=number, confidence=result.confidence, timestamp=self._clock()
        )
        self.detected_card = card

        overlay_config = self.config.overlay
        self.overlay = draw_detection_overlay(
            self.overlay,
            buffer.frame.width,
            buffer.frame.height,
            number,
            result.confidence,
            width_fraction=overlay_config.width_fraction,
            height_fraction=overlay_config.height_fraction,
            top_fraction=overlay_config.top_fraction,
            high_confidence_threshold=overlay_config.high_confidence_threshold,
            line_thickness=overlay_config.line_thickness,
        )

        logger.info(
            f"Card detected: {mask_card_number(number)} "
            f"(confidence={result.confidence:.1f})"
        )
        return card

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def _run_timer(self) -> None:
        while self.state.is_scanning:
            await asyncio.sleep(self.config.interval_seconds)
            if not self.state.is_scanning:
                return
            if self.capture.stream is None:
                continue
            self._fire_tick()

    def _fire_tick(self) -> None:
        if self.state.is_processing:
            logger.debug("Previous frame still processing, skipping tick")
            return

        task = asyncio.get_running_loop().create_task(self.process_frame())
        self._ticks.add(task)
        task.add_done_callback(self._ticks.discard)
