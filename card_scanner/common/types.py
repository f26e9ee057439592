"""
Shared raster and geometry types.

Frames travel through the scan pipeline as ``ImageBuffer`` values: BGR
``uint8`` rasters from the camera, BGRA for overlay layers, single-channel
for intermediate grayscale. Crop regions are ``BBox`` values in pixel
coordinates of the frame they came from.
"""

from typing import Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

ALLOWED_CHANNELS = (1, 3, 4)


class ImageBuffer(BaseModel):
    """
    Validated ``uint8`` raster of shape (H, W) or (H, W, C).

    Example:
        >>> buffer = ImageBuffer(data=np.zeros((720, 1280, 3), dtype=np.uint8))
        >>> buffer.width, buffer.height, buffer.channels
        (1280, 720, 3)
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: np.ndarray

    @field_validator("data")
    @classmethod
    def _check_raster(cls, v: np.ndarray) -> np.ndarray:
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Raster must be a numpy array, got {type(v).__name__}")
        if v.dtype != np.uint8:
            raise ValueError(f"Raster must be uint8, got {v.dtype}")
        if v.ndim == 3 and v.shape[2] not in ALLOWED_CHANNELS:
            raise ValueError(f"Unsupported channel count {v.shape[2]}")
        if v.ndim not in (2, 3):
            raise ValueError(f"Raster must be 2D or 3D, got shape {v.shape}")
        return v

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.data.ndim == 2 else int(self.data.shape[2])

    def to_numpy(self) -> np.ndarray:
        return self.data

    def __repr__(self) -> str:
        return f"ImageBuffer({self.width}x{self.height}x{self.channels})"


class BBox(BaseModel):
    """
    Half-open pixel box: rows ``y_min:y_max``, columns ``x_min:x_max``.

    Float coordinates are rounded. The box must have positive area and lie
    in the non-negative quadrant.

    Example:
        >>> band = BBox(x_min=0, y_min=288, x_max=1280, y_max=504)
        >>> band.height
        216
    """

    x_min: int
    y_min: int
    x_max: int
    y_max: int

    @field_validator("x_min", "y_min", "x_max", "y_max", mode="before")
    @classmethod
    def _round(cls, v):
        if isinstance(v, float):
            return int(round(v))
        return v

    @model_validator(mode="after")
    def _check_extent(self) -> "BBox":
        if self.x_min < 0 or self.y_min < 0:
            raise ValueError(f"Box origin must be non-negative: {self.to_tuple()}")
        if self.x_max <= self.x_min or self.y_max <= self.y_min:
            raise ValueError(f"Box must have positive area: {self.to_tuple()}")
        return self

    @property
    def width(self) -> int:
        return self.x_max - self.x_min

    @property
    def height(self) -> int:
        return self.y_max - self.y_min

    @property
    def area(self) -> int:
        return self.width * self.height

    def to_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x_min, self.y_min, self.x_max, self.y_max)
