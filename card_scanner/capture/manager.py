"""Camera capture session management.

The manager requests a camera stream with default constraints merged with
caller overrides, attaches it to a video sink and follows the sink's
playback events through the readiness states:

    NOT_STARTED -> REQUESTING -> STREAM_OBTAINED -> METADATA_LOADED
                -> CAN_PLAY -> PLAYING

Failures are classified into user-facing messages. Unsatisfiable
constraints are retried once with an unconstrained request before giving up.

Example:
    >>> manager = CaptureSessionManager()
    >>> await manager.start()
    >>> manager.is_ready
    True
    >>> manager.stop()
"""

import logging
from typing import Any, Dict, Optional

from card_scanner.common.errors import (
    CaptureConstraintsUnsupported,
    CaptureError,
    CaptureOther,
    PlaybackError,
)

from .config_loader import CaptureConfig, get_default_config
from .media_devices import MediaStream, OpenCVMediaDevices
from .types import CaptureSession, ReadinessState
from .video_sink import VideoSink

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "Camera access is not supported on this system"
RELAXED_RETRY_FAILED_MESSAGE = "Camera access failed with simplified settings."
VIDEO_ERROR_MESSAGE = "Video loading error. Please check your camera and try again."


class CaptureSessionManager:
    """Owns the camera stream lifecycle.

    Args:
        config: Capture configuration. If None, uses the bundled defaults.
        media_devices: Camera acquisition boundary. Defaults to OpenCV.
        sink: Video sink the stream is attached to.

    Attributes:
        session: Current CaptureSession state.
        sink: Video sink holding the latest frame.
    """

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        media_devices: Optional[Any] = None,
        sink: Optional[VideoSink] = None,
    ):
        self.config = config if config is not None else get_default_config().capture
        self.media_devices = media_devices or OpenCVMediaDevices(
            devices=self.config.devices,
            default_device=self.config.default_device,
            api_preference=self.config.api_preference,
        )
        self.sink = sink if sink is not None else VideoSink(autoplay=self.config.autoplay)
        self.session = CaptureSession()
        self._generation = 0

        self.sink.add_listener("loadedmetadata", self._on_loaded_metadata)
        self.sink.add_listener("canplay", self._on_can_play)
        self.sink.add_listener("playing", self._on_playing)
        self.sink.add_listener("error", self._on_video_error)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def stream(self) -> Optional[MediaStream]:
        return self.session.stream

    @property
    def readiness(self) -> ReadinessState:
        return self.session.readiness

    @property
    def is_ready(self) -> bool:
        """Check if the video is playing (the only state scanning may start from)."""
        return self.session.readiness == ReadinessState.PLAYING

    @property
    def last_error(self) -> Optional[str]:
        return self.session.last_error

    @property
    def status(self) -> str:
        return self.session.status

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def start(self, constraints: Optional[Dict[str, Any]] = None) -> None:
        """Request a camera stream and attach it to the sink.

        A stream that is already installed is stopped first, so a failed
        restart leaves no camera running.

        Args:
            constraints: Constraint fields overriding the configured defaults.

        Raises:
            CaptureError: With a user-facing ``message`` when the camera
                cannot be acquired (after the relaxed retry, if applicable).
        """
        if self.session.stream is not None:
            logger.info("Restarting camera, stopping the current stream")
            self.stop()

        generation = self._generation
        self.session.last_error = None
        self.session.readiness = ReadinessState.REQUESTING
        self.session.status = "Requesting camera access..."

        try:
            if not self.media_devices.is_supported():
                raise CaptureOther(UNSUPPORTED_MESSAGE)
            merged = self.config.constraints.merged(constraints)
            stream = await self.media_devices.get_user_media(merged)

        except CaptureConstraintsUnsupported as e:
            logger.warning(f"Camera constraints not supported ({e.detail}), relaxing")
            self.session.last_error = e.message
            try:
                stream = await self.media_devices.get_user_media(None)
            except CaptureError as retry_error:
                error = CaptureOther(
                    RELAXED_RETRY_FAILED_MESSAGE,
                    detail=retry_error.detail or retry_error.message,
                )
                self._fail(error)
                raise error from retry_error
            self.session.last_error = None

        except CaptureError as e:
            self._fail(e)
            raise

        except Exception as e:
            error = CaptureOther(f"Camera error: {e}", detail=str(e))
            self._fail(error)
            raise error from e

        if generation != self._generation:
            logger.info("Camera stopped while the stream was being requested, releasing it")
            self._stop_tracks(stream)
            return

        await self._install(stream)

    def stop(self) -> None:
        """Stop all tracks and reset readiness. Idempotent."""
        self._generation += 1
        stream = self.session.stream
        self.session.stream = None
        if stream is not None:
            self._stop_tracks(stream)

        self.sink.detach()
        self.session.readiness = ReadinessState.NOT_STARTED
        self.session.status = "Camera stopped"

    def close(self) -> None:
        """Release the camera on teardown."""
        self.stop()

    async def force_play(self) -> bool:
        """Explicitly start playback where autoplay is blocked.

        Returns:
            True if playback started; otherwise ``last_error`` holds the reason.
        """
        logger.info("Forcing video play...")
        try:
            await self.sink.play()
        except PlaybackError as e:
            message = f"Manual video play failed: {e.detail or e.message}"
            logger.error(message)
            self.session.last_error = message
            return False

        logger.info("Manual video play successful")
        self.session.status = "Video manually started"
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _install(self, stream: MediaStream) -> None:
        video_tracks = stream.get_video_tracks()
        if video_tracks:
            track_settings = video_tracks[0].get_settings()
            logger.info(f"Video track settings: {track_settings}")
            self.session.diagnostics["track_settings"] = track_settings

        previous = self.session.stream
        if previous is not None and previous is not stream:
            self._stop_tracks(previous)
        self.session.stream = stream
        self.session.readiness = ReadinessState.STREAM_OBTAINED
        self.session.status = "Camera stream obtained, setting up video..."

        await self.sink.attach(stream)

    def _fail(self, error: CaptureError) -> None:
        logger.error(f"Camera access error: {error.message} ({error.detail})")
        self.session.last_error = error.message
        self.session.readiness = ReadinessState.NOT_STARTED

    @staticmethod
    def _stop_tracks(stream: MediaStream) -> None:
        for track in stream.get_tracks():
            track.stop()

    def _on_loaded_metadata(self) -> None:
        if self.session.stream is None:
            return
        logger.info(
            f"Video metadata loaded: videoWidth={self.sink.video_width}, "
            f"videoHeight={self.sink.video_height}, readyState={int(self.sink.ready_state)}"
        )
        self.session.readiness = ReadinessState.METADATA_LOADED
        self.session.status = "Video metadata loaded, starting playback..."

    def _on_can_play(self) -> None:
        if self.session.stream is None:
            return
        logger.info("Video can play")
        self.session.readiness = ReadinessState.CAN_PLAY
        self.session.status = "Camera ready"

    def _on_playing(self) -> None:
        if self.session.stream is None:
            return
        logger.info("Video is playing")
        self.session.readiness = ReadinessState.PLAYING
        self.session.status = "Camera active"

    def _on_video_error(self) -> None:
        if self.session.stream is None:
            return
        logger.error(f"Video error: {self.sink.error}")
        self.session.last_error = VIDEO_ERROR_MESSAGE
