"""Configuration loader with Pydantic validation for camera capture.

Default constraints prefer the rear-facing camera at 1280x720 and refuse
anything below 640x480. Callers may override individual constraint fields
when starting a session.
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

FacingMode = Literal["environment", "user"]


class ResolutionRange(BaseModel):
    """Ideal and minimum size along one axis.

    Attributes:
        ideal: Size requested from the device
        min: Smallest acceptable negotiated size
    """

    ideal: int = Field(..., gt=0)
    min: int = Field(..., gt=0)

    @model_validator(mode="after")
    def _validate_range(self) -> "ResolutionRange":
        if self.min > self.ideal:
            raise ValueError(f"min ({self.min}) must not exceed ideal ({self.ideal})")
        return self


class CameraConstraints(BaseModel):
    """Media constraints for a capture request.

    Attributes:
        facing_mode: Preferred camera ("environment" = rear, "user" = front)
        width: Width bounds in pixels
        height: Height bounds in pixels
    """

    facing_mode: FacingMode = "environment"
    width: ResolutionRange = ResolutionRange(ideal=1280, min=640)
    height: ResolutionRange = ResolutionRange(ideal=720, min=480)

    def merged(self, overrides: Optional[Dict[str, Any]] = None) -> "CameraConstraints":
        """Return these constraints with caller-supplied fields replacing defaults.

        Example:
            >>> CameraConstraints().merged({"facing_mode": "user"}).facing_mode
            'user'
        """
        if not overrides:
            return self.model_copy(deep=True)
        return CameraConstraints(**{**self.model_dump(), **overrides})


class CaptureConfig(BaseModel):
    """Camera capture configuration.

    Attributes:
        constraints: Default constraints merged with caller overrides
        devices: OpenCV device index per facing mode
        default_device: Device index for unconstrained requests
        autoplay: Start playback as soon as the stream can play
        api_preference: Optional OpenCV capture backend (e.g. cv2.CAP_V4L2)
    """

    constraints: CameraConstraints = CameraConstraints()
    devices: Dict[str, int] = Field(
        default_factory=lambda: {"environment": 0, "user": 0}
    )
    default_device: int = Field(default=0, ge=0)
    autoplay: bool = True
    api_preference: Optional[int] = None


class Config(BaseModel):
    """Root configuration container.

    Attributes:
        capture: Camera capture configuration
    """

    capture: CaptureConfig = CaptureConfig()


def load_config(config_path: Path) -> Config:
    """Load and validate configuration from YAML file.

    Raises:
        FileNotFoundError: If config file does not exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If configuration validation fails
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    return Config(**config_dict)


def get_default_config() -> Config:
    """Get default configuration from bundled config.yaml file."""
    default_config_path = Path(__file__).parent / "config.yaml"
    if default_config_path.exists():
        return load_config(default_config_path)
    else:
        return Config()
