"""Configuration loader with Pydantic validation for the scan loop.

Covers the sampling cadence, the acceptance threshold, the card-number band
and the overlay geometry.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class RegionConfig(BaseModel):
    """Card-number band as fractions of frame height.

    Attributes:
        start_fraction: Top edge of the band
        height_fraction: Band height
    """

    start_fraction: float = Field(default=0.4, ge=0.0, lt=1.0)
    height_fraction: float = Field(default=0.3, gt=0.0, le=1.0)


class OverlayConfig(BaseModel):
    """Detection overlay geometry and styling.

    Attributes:
        width_fraction: Rectangle width as a fraction of frame width
        height_fraction: Rectangle height as a fraction of frame height
        top_fraction: Rectangle top edge as a fraction of frame height
        high_confidence_threshold: Confidence above which the high color is used
        line_thickness: Stroke width in pixels
    """

    width_fraction: float = Field(default=0.8, gt=0.0, le=1.0)
    height_fraction: float = Field(default=0.3, gt=0.0, le=1.0)
    top_fraction: float = Field(default=0.4, ge=0.0, lt=1.0)
    high_confidence_threshold: float = Field(default=80.0, ge=0.0, le=100.0)
    line_thickness: int = Field(default=4, ge=1)


class ScannerConfig(BaseModel):
    """Scan loop configuration.

    Attributes:
        interval_seconds: Period of the sampling timer
        min_confidence: Exclusive lower bound on accepted confidence (0-100)
        image_format: Encoding used for the region sent to OCR
        region: Card-number band
        overlay: Overlay geometry
    """

    interval_seconds: float = Field(default=1.0, gt=0.0)
    min_confidence: float = Field(default=60.0, ge=0.0, le=100.0)
    image_format: str = ".png"
    region: RegionConfig = RegionConfig()
    overlay: OverlayConfig = OverlayConfig()


class Config(BaseModel):
    """Root configuration container.

    Attributes:
        scanner: Scan loop configuration
    """

    scanner: ScannerConfig = ScannerConfig()


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
