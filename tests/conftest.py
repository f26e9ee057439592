"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules. Camera, OCR backend and network boundaries are replaced
with in-memory fakes so no hardware, tesseract binary or network is needed.
"""

from typing import List, Optional

import numpy as np
import pytest

from card_scanner.ocr.types import RecognitionResult


class FakeCapture:
    """Stand-in for cv2.VideoCapture returning a fixed frame."""

    def __init__(self, frame: Optional[np.ndarray], opened: bool = True):
        self.frame = frame
        self.opened = opened
        self.released = False
        self.props = {}

    def isOpened(self):
        return self.opened

    def read(self):
        if self.released or self.frame is None:
            return False, None
        return True, self.frame.copy()

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def get(self, prop):
        import cv2

        if prop == cv2.CAP_PROP_FRAME_WIDTH:
            return float(self.frame.shape[1]) if self.frame is not None else 0.0
        if prop == cv2.CAP_PROP_FRAME_HEIGHT:
            return float(self.frame.shape[0]) if self.frame is not None else 0.0
        if prop == cv2.CAP_PROP_FPS:
            return 30.0
        return 0.0

    def release(self):
        self.released = True


class FakeTrack:
    """Video track delivering a fixed frame until stopped."""

    kind = "video"

    def __init__(self, frame: Optional[np.ndarray]):
        self.frame = frame
        self.ready_state = "live"
        self.stop_calls = 0

    def get_settings(self):
        if self.frame is None:
            return {}
        return {"width": self.frame.shape[1], "height": self.frame.shape[0]}

    def read(self):
        if self.ready_state != "live" or self.frame is None:
            return None
        return self.frame.copy()

    def stop(self):
        self.stop_calls += 1
        self.ready_state = "ended"


class FakeStream:
    def __init__(self, tracks: List[FakeTrack]):
        self.tracks = tracks

    def get_tracks(self):
        return list(self.tracks)

    def get_video_tracks(self):
        return [t for t in self.tracks if t.kind == "video"]


class FakeMediaDevices:
    """Media devices whose get_user_media outcomes are scripted per call.

    Each entry of ``outcomes`` is either a stream to return or an exception
    to raise. The last entry repeats.
    """

    def __init__(self, outcomes, supported: bool = True):
        self.outcomes = list(outcomes)
        self.supported = supported
        self.calls = []

    def is_supported(self):
        return self.supported

    async def get_user_media(self, constraints=None):
        self.calls.append(constraints)
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeBackend:
    """OCR backend returning scripted results."""

    def __init__(self, results=None, tier: str = "fake"):
        self.results = list(results or [RecognitionResult("", 0.0)])
        self.tier = tier
        self.calls = 0
        self.terminated = 0

    async def recognize(self, image_blob: bytes) -> RecognitionResult:
        index = min(self.calls, len(self.results) - 1)
        self.calls += 1
        outcome = self.results[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def terminate(self):
        self.terminated += 1


@pytest.fixture
def sample_frame():
    """Fixture providing a 1280x720 BGR frame with a light band in the middle."""
    frame = np.full((720, 1280, 3), 40, dtype=np.uint8)
    frame[288:504, :, :] = 200
    return frame


@pytest.fixture
def small_frame():
    """Fixture providing a 64x48 BGR frame."""
    return np.full((48, 64, 3), 100, dtype=np.uint8)


@pytest.fixture
def fake_stream_factory():
    """Fixture building single-track fake streams from a frame."""

    def _factory(frame: Optional[np.ndarray]) -> FakeStream:
        return FakeStream([FakeTrack(frame)])

    return _factory


@pytest.fixture
def fake_capture_cls():
    """Fixture providing the FakeCapture class."""
    return FakeCapture


@pytest.fixture
def make_media_devices():
    """Fixture building scripted media devices."""

    def _factory(outcomes, supported: bool = True) -> FakeMediaDevices:
        return FakeMediaDevices(outcomes, supported=supported)

    return _factory


@pytest.fixture
def make_backend():
    """Fixture building fake OCR backends from scripted results."""

    def _factory(results=None, tier: str = "fake") -> FakeBackend:
        return FakeBackend(results, tier=tier)

    return _factory


@pytest.fixture
def no_probe():
    """Fixture providing an asset probe that always succeeds."""

    async def _probe(tier, timeout):
        return None

    return _probe
