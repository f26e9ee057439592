"""Video sink: playback state and latest frame of a media stream.

The sink plays the role of a video element. Attaching a stream reads the
first frame and fires ``loadstart``, ``loadedmetadata``, ``loadeddata`` and
``canplay``; playback (automatic or via ``play()``) fires ``playing`` and
keeps the latest frame fresh from a background reader. A track that stops
delivering frames fires ``error`` and drops back to HAVE_METADATA; the
sink's ``error`` attribute holds the cause.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional

import numpy as np

from card_scanner.common.errors import PlaybackError

from .media_devices import MediaStream, VideoTrack
from .types import ReadyState

logger = logging.getLogger(__name__)

EVENTS = (
    "loadstart",
    "loadedmetadata",
    "loadeddata",
    "canplay",
    "playing",
    "pause",
    "error",
)


class VideoSink:
    """Renders a media stream into an always-current frame.

    Args:
        autoplay: Start playback as soon as the stream can play.
        poll_interval: Seconds between frame reads while playing.
    """

    def __init__(self, autoplay: bool = True, poll_interval: float = 1 / 30):
        self.autoplay = autoplay
        self.poll_interval = poll_interval
        self.src: Optional[MediaStream] = None
        self.ready_state = ReadyState.HAVE_NOTHING
        self.video_width = 0
        self.video_height = 0
        self.paused = True
        self.error: Optional[Exception] = None
        self._frame: Optional[np.ndarray] = None
        self._reader: Optional[asyncio.Task] = None
        self._listeners: Dict[str, List[Callable[[], None]]] = defaultdict(list)

    def add_listener(self, event: str, callback: Callable[[], None]) -> None:
        """Register a zero-argument callback for a playback event."""
        if event not in EVENTS:
            raise ValueError(f"Unknown event '{event}', expected one of {EVENTS}")
        self._listeners[event].append(callback)

    def _emit(self, event: str) -> None:
        for callback in list(self._listeners[event]):
            callback()

    @property
    def _track(self) -> Optional[VideoTrack]:
        if self.src is None:
            return None
        tracks = self.src.get_video_tracks()
        return tracks[0] if tracks else None

    async def attach(self, stream: MediaStream) -> None:
        """Load a stream and, with autoplay, start playing it."""
        self.detach()
        self.src = stream
        self.error = None
        self._emit("loadstart")

        track = self._track
        frame = None
        if track is not None:
            frame = await asyncio.get_running_loop().run_in_executor(None, track.read)

        if self.src is not stream:
            # Detached while the first frame was being read
            return

        if frame is None:
            self.error = PlaybackError("Video loading error", detail="No frame received")
            logger.error("Video error: stream delivered no frames")
            self._emit("error")
            return

        self._store_frame(frame)
        self.ready_state = ReadyState.HAVE_METADATA
        self._emit("loadedmetadata")
        self.ready_state = ReadyState.HAVE_CURRENT_DATA
        self._emit("loadeddata")
        self.ready_state = ReadyState.HAVE_ENOUGH_DATA
        self._emit("canplay")

        if self.autoplay:
            try:
                await self.play()
            except PlaybackError as e:
                logger.warning(f"Autoplay failed: {e}")

    async def play(self) -> None:
        """Start playback.

        Raises:
            PlaybackError: If no stream is loaded or it has no frame yet.
        """
        if self.src is None or self.ready_state < ReadyState.HAVE_CURRENT_DATA:
            raise PlaybackError(
                "Manual video play failed", detail="No video source is loaded"
            )
        if not self.paused:
            return

        self.paused = False
        self._reader = asyncio.get_running_loop().create_task(self._read_loop())
        self._emit("playing")

    def pause(self) -> None:
        if self.paused:
            return
        self.paused = True
        self._cancel_reader()
        self._emit("pause")

    def detach(self) -> None:
        """Drop the stream and reset to HAVE_NOTHING. Does not stop tracks."""
        self._cancel_reader()
        self.src = None
        self.paused = True
        self.ready_state = ReadyState.HAVE_NOTHING
        self.video_width = 0
        self.video_height = 0
        self._frame = None

    def current_frame(self) -> Optional[np.ndarray]:
        """Copy of the latest frame, or None before the first frame."""
        if self._frame is None:
            return None
        return self._frame.copy()

    def _store_frame(self, frame: np.ndarray) -> None:
        self._frame = frame
        self.video_height, self.video_width = int(frame.shape[0]), int(frame.shape[1])

    def _cancel_reader(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            self._reader = None

    async def _read_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while not self.paused:
            track = self._track
            if track is None:
                return
            frame = await loop.run_in_executor(None, track.read)
            if self.paused or self._track is not track:
                return
            if frame is None:
                self.error = PlaybackError("Video loading error", detail="Track ended")
                self.paused = True
                self.ready_state = ReadyState.HAVE_METADATA
                self._reader = None
                logger.error("Video error: track stopped delivering frames")
                self._emit("error")
                return
            self._store_frame(frame)
            await asyncio.sleep(self.poll_interval)
