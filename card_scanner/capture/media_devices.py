"""OpenCV camera acquisition.

Wraps ``cv2.VideoCapture`` behind a small media-stream interface: a request
with constraints returns a stream of tracks, and failures are raised as
distinguishable capture errors (permission, missing device, busy device,
unsatisfiable constraints).
"""

import asyncio
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import cv2
import numpy as np

from card_scanner.common.errors import (
    CaptureConstraintsUnsupported,
    CaptureDeviceBusy,
    CaptureDeviceMissing,
    CaptureError,
    CapturePermissionDenied,
)

from .config_loader import CameraConstraints

logger = logging.getLogger(__name__)


class VideoTrack:
    """A single camera track backed by an open ``cv2.VideoCapture``.

    Reads and stop are serialized so a stop from the event loop never
    races a read running in the executor.
    """

    kind = "video"

    def __init__(self, capture: Any, device_id: int, facing_mode: Optional[str] = None):
        self._capture = capture
        self._lock = threading.Lock()
        self.device_id = device_id
        self.facing_mode = facing_mode
        self.ready_state = "live"

    def get_settings(self) -> Dict[str, Any]:
        """Negotiated track settings."""
        with self._lock:
            if self.ready_state != "live":
                return {"device_id": self.device_id, "facing_mode": self.facing_mode}
            return {
                "device_id": self.device_id,
                "facing_mode": self.facing_mode,
                "width": int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
                "height": int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
                "frame_rate": float(self._capture.get(cv2.CAP_PROP_FPS)),
            }

    def read(self) -> Optional[np.ndarray]:
        """Grab the next frame, or None if the track has ended or the read failed."""
        with self._lock:
            if self.ready_state != "live":
                return None
            ok, frame = self._capture.read()
        return frame if ok else None

    def stop(self) -> None:
        """Release the device. Idempotent."""
        with self._lock:
            if self.ready_state == "ended":
                return
            self.ready_state = "ended"
            self._capture.release()
        logger.info(f"Camera track stopped (device {self.device_id})")


class MediaStream:
    """A set of tracks obtained from one capture request."""

    def __init__(self, tracks: List[VideoTrack]):
        self._tracks = list(tracks)

    def get_tracks(self) -> List[VideoTrack]:
        return list(self._tracks)

    def get_video_tracks(self) -> List[VideoTrack]:
        return [track for track in self._tracks if track.kind == "video"]

    @property
    def active(self) -> bool:
        return any(track.ready_state == "live" for track in self._tracks)


def device_node(device_id: int) -> Optional[Path]:
    """V4L2 device node for an index on Linux, None elsewhere."""
    if sys.platform.startswith("linux"):
        return Path(f"/dev/video{device_id}")
    return None


def classify_open_failure(device_id: int, node: Optional[Path]) -> CaptureError:
    """Map a failed ``VideoCapture`` open to a capture error kind.

    On Linux the device node tells the cases apart: a missing node means no
    camera, an inaccessible node means permission denied, and an accessible
    node that still cannot be opened is held by another process.
    """
    if node is None:
        return CaptureDeviceMissing(detail=f"Camera {device_id} could not be opened")
    if not node.exists():
        return CaptureDeviceMissing(detail=f"{node} does not exist")
    if not os.access(node, os.R_OK | os.W_OK):
        return CapturePermissionDenied(detail=f"No read/write access to {node}")
    return CaptureDeviceBusy(detail=f"{node} could not be opened")


class OpenCVMediaDevices:
    """Camera acquisition through OpenCV.

    Args:
        devices: Device index per facing mode.
        default_device: Device index for unconstrained requests.
        api_preference: Optional OpenCV capture backend id.
        capture_factory: ``cv2.VideoCapture``-compatible constructor.
    """

    def __init__(
        self,
        devices: Optional[Dict[str, int]] = None,
        default_device: int = 0,
        api_preference: Optional[int] = None,
        capture_factory: Callable[..., Any] = cv2.VideoCapture,
    ):
        self.devices = dict(devices or {})
        self.default_device = default_device
        self.api_preference = api_preference
        self._capture_factory = capture_factory

    @staticmethod
    def is_supported() -> bool:
        """Check that this OpenCV build can capture video."""
        return hasattr(cv2, "VideoCapture")

    async def get_user_media(
        self, constraints: Optional[CameraConstraints] = None
    ) -> MediaStream:
        """Open a camera stream.

        Args:
            constraints: Requested constraints, or None for the default
                device with no resolution requirements.

        Returns:
            MediaStream with one video track.

        Raises:
            CapturePermissionDenied, CaptureDeviceMissing, CaptureDeviceBusy,
            CaptureConstraintsUnsupported: Depending on the failure.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._open, constraints)

    def _open(self, constraints: Optional[CameraConstraints]) -> MediaStream:
        if constraints is None:
            device_id = self.default_device
            facing_mode = None
        else:
            device_id = self.devices.get(constraints.facing_mode, self.default_device)
            facing_mode = constraints.facing_mode

        logger.info(f"Opening camera {device_id} (facing_mode={facing_mode})")
        if self.api_preference is not None:
            capture = self._capture_factory(device_id, self.api_preference)
        else:
            capture = self._capture_factory(device_id)

        if not capture.isOpened():
            capture.release()
            raise classify_open_failure(device_id, device_node(device_id))

        if constraints is not None:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width.ideal)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height.ideal)
            width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
            height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
            if width < constraints.width.min or height < constraints.height.min:
                capture.release()
                raise CaptureConstraintsUnsupported(
                    detail=(
                        f"Negotiated {width}x{height}, need at least "
                        f"{constraints.width.min}x{constraints.height.min}"
                    )
                )

        ok, _ = capture.read()
        if not ok:
            capture.release()
            raise CaptureDeviceBusy(detail=f"Camera {device_id} opened but returned no frames")

        return MediaStream([VideoTrack(capture, device_id, facing_mode)])
