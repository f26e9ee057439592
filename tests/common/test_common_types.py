"""Unit tests for shared types and the error taxonomy."""

import numpy as np
import pytest
from pydantic import ValidationError

from card_scanner.common.errors import (
    CaptureConstraintsUnsupported,
    CaptureError,
    CaptureOther,
    EngineError,
    InitializationError,
    RegionExtractionInvalid,
)
from card_scanner.common.types import BBox, ImageBuffer


class TestImageBuffer:
    """Test raster validation."""

    def test_color_frame(self, sample_frame):
        buffer = ImageBuffer(data=sample_frame)

        assert (buffer.height, buffer.width, buffer.channels) == (720, 1280, 3)
        assert buffer.to_numpy() is sample_frame

    def test_grayscale(self):
        assert ImageBuffer(data=np.zeros((4, 5), dtype=np.uint8)).channels == 1

    def test_rejects_float(self):
        with pytest.raises(ValidationError, match="uint8"):
            ImageBuffer(data=np.zeros((4, 4, 3), dtype=np.float32))

    def test_rejects_two_channels(self):
        with pytest.raises(ValidationError):
            ImageBuffer(data=np.zeros((4, 4, 2), dtype=np.uint8))


class TestBBox:
    """Test box geometry."""

    def test_dimensions(self):
        bbox = BBox(x_min=0, y_min=288, x_max=1280, y_max=504)
        assert (bbox.width, bbox.height, bbox.area) == (1280, 216, 1280 * 216)

    def test_float_coordinates_rounded(self):
        assert BBox(x_min=0.4, y_min=1.6, x_max=10, y_max=10).to_tuple() == (0, 2, 10, 10)

    def test_inverted(self):
        with pytest.raises(ValidationError):
            BBox(x_min=10, y_min=0, x_max=5, y_max=5)

    def test_negative(self):
        with pytest.raises(ValidationError):
            BBox(x_min=-1, y_min=0, x_max=5, y_max=5)


class TestErrors:
    """Test user-facing messages."""

    def test_default_message(self):
        error = CaptureConstraintsUnsupported(detail="640x360")
        assert error.message == (
            "Camera constraints not supported. Trying with default settings..."
        )
        assert error.detail == "640x360"
        assert isinstance(error, CaptureError)

    def test_explicit_message(self):
        assert str(CaptureOther("Camera error: boom")) == "Camera error: boom"

    def test_initialization_error(self):
        error = InitializationError(4, "worker script failed")
        assert str(error) == (
            "Failed to initialize OCR engine after 4 attempts: worker script failed"
        )
        assert isinstance(error, EngineError)

    def test_region_error_is_value_error(self):
        assert issubclass(RegionExtractionInvalid, ValueError)
