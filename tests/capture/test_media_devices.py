"""Unit tests for OpenCV camera acquisition.

``cv2.VideoCapture`` is replaced with an in-memory fake via ``capture_factory``.
"""

from unittest.mock import patch

import numpy as np
import pytest

from card_scanner.capture.config_loader import CameraConstraints
from card_scanner.capture.media_devices import (
    MediaStream,
    OpenCVMediaDevices,
    VideoTrack,
    classify_open_failure,
)
from card_scanner.common.errors import (
    CaptureConstraintsUnsupported,
    CaptureDeviceBusy,
    CaptureDeviceMissing,
    CapturePermissionDenied,
)


class TestClassifyOpenFailure:
    """Test mapping of open failures to error kinds."""

    def test_no_device_node(self):
        error = classify_open_failure(0, None)
        assert isinstance(error, CaptureDeviceMissing)
        assert error.message == "No camera found. Please connect a camera and try again."

    def test_missing_node(self, tmp_path):
        error = classify_open_failure(0, tmp_path / "video0")
        assert isinstance(error, CaptureDeviceMissing)

    def test_inaccessible_node(self, tmp_path):
        node = tmp_path / "video0"
        node.touch()
        with patch("card_scanner.capture.media_devices.os.access", return_value=False):
            error = classify_open_failure(0, node)
        assert isinstance(error, CapturePermissionDenied)
        assert "allow camera permissions" in error.message

    def test_accessible_node_is_busy(self, tmp_path):
        node = tmp_path / "video0"
        node.touch()
        with patch("card_scanner.capture.media_devices.os.access", return_value=True):
            error = classify_open_failure(0, node)
        assert isinstance(error, CaptureDeviceBusy)
        assert error.message == "Camera is already in use by another application."


class TestOpenCVMediaDevices:
    """Test get_user_media."""

    @pytest.mark.asyncio
    async def test_opens_device_for_facing_mode(self, fake_capture_cls, sample_frame):
        opened = []

        def factory(device_id):
            opened.append(device_id)
            return fake_capture_cls(sample_frame)

        devices = OpenCVMediaDevices(
            devices={"environment": 2, "user": 1}, capture_factory=factory
        )

        stream = await devices.get_user_media(CameraConstraints())

        assert opened == [2]
        track = stream.get_video_tracks()[0]
        assert track.facing_mode == "environment"
        settings = track.get_settings()
        assert (settings["width"], settings["height"]) == (1280, 720)
        assert settings["device_id"] == 2

    @pytest.mark.asyncio
    async def test_requests_ideal_resolution(self, fake_capture_cls, sample_frame):
        import cv2

        capture = fake_capture_cls(sample_frame)
        devices = OpenCVMediaDevices(capture_factory=lambda device_id: capture)

        await devices.get_user_media(CameraConstraints())

        assert capture.props[cv2.CAP_PROP_FRAME_WIDTH] == 1280
        assert capture.props[cv2.CAP_PROP_FRAME_HEIGHT] == 720

    @pytest.mark.asyncio
    async def test_api_preference_passed(self, fake_capture_cls, sample_frame):
        calls = []

        def factory(*args):
            calls.append(args)
            return fake_capture_cls(sample_frame)

        devices = OpenCVMediaDevices(api_preference=200, capture_factory=factory)
        await devices.get_user_media(None)

        assert calls == [(0, 200)]

    @pytest.mark.asyncio
    async def test_resolution_below_minimum(self, fake_capture_cls):
        capture = fake_capture_cls(np.zeros((240, 320, 3), dtype=np.uint8))
        devices = OpenCVMediaDevices(capture_factory=lambda device_id: capture)

        with pytest.raises(CaptureConstraintsUnsupported) as exc_info:
            await devices.get_user_media(CameraConstraints())

        assert "320x240" in exc_info.value.detail
        assert capture.released

    @pytest.mark.asyncio
    async def test_unconstrained_accepts_any_resolution(self, fake_capture_cls):
        capture = fake_capture_cls(np.zeros((240, 320, 3), dtype=np.uint8))
        devices = OpenCVMediaDevices(capture_factory=lambda device_id: capture)

        stream = await devices.get_user_media(None)

        assert stream.active
        assert capture.props == {}

    @pytest.mark.asyncio
    async def test_not_opened(self, fake_capture_cls):
        capture = fake_capture_cls(None, opened=False)
        devices = OpenCVMediaDevices(capture_factory=lambda device_id: capture)

        with patch(
            "card_scanner.capture.media_devices.device_node", return_value=None
        ):
            with pytest.raises(CaptureDeviceMissing):
                await devices.get_user_media(None)
        assert capture.released

    @pytest.mark.asyncio
    async def test_no_first_frame(self, fake_capture_cls):
        capture = fake_capture_cls(None)
        devices = OpenCVMediaDevices(capture_factory=lambda device_id: capture)

        with pytest.raises(CaptureDeviceBusy):
            await devices.get_user_media(None)


class TestVideoTrack:
    """Test track reads and stop."""

    def test_stop_releases_once(self, fake_capture_cls, small_frame):
        capture = fake_capture_cls(small_frame)
        track = VideoTrack(capture, device_id=0)
        stream = MediaStream([track])

        assert track.read().shape == small_frame.shape
        track.stop()
        track.stop()

        assert capture.released
        assert track.ready_state == "ended"
        assert track.read() is None
        assert not stream.active
