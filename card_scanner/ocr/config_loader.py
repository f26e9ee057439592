"""Configuration loader with Pydantic validation for the OCR engine.

This module provides type-safe configuration loading from YAML files using
Pydantic models for validation and default values. The engine configuration
carries the ordered list of fallback tiers the engine manager walks through
when initialization fails.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field

REMOTE_SCHEMES = ("http", "https")


def is_remote(uri: Optional[str]) -> bool:
    """Check whether an asset URI is scheme-qualified (http/https)."""
    if not uri:
        return False
    return urlparse(uri).scheme.lower() in REMOTE_SCHEMES


class EngineTierConfig(BaseModel):
    """One fallback tier for engine construction.

    Attributes:
        name: Human-readable tier name used in logs
        worker_path: Tesseract executable; None uses the one on PATH
        core_path: Primary language model (``<lang>.traineddata``), local path or URL
        lang_path: Tessdata directory or remote base URL for further models
        options: Extra engine options (e.g. ``psm``, ``oem``)
    """

    name: str
    worker_path: Optional[str] = None
    core_path: Optional[str] = None
    lang_path: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)

    @property
    def remote_assets(self) -> List[str]:
        """Worker and core URIs that require an accessibility probe."""
        return [uri for uri in (self.worker_path, self.core_path) if is_remote(uri)]


def default_tiers() -> List[EngineTierConfig]:
    """Hard-coded tier list used when no config file is available."""
    return [
        EngineTierConfig(
            name="local-assets",
            core_path="assets/tessdata/eng.traineddata",
            lang_path="assets/tessdata",
        ),
        EngineTierConfig(
            name="cdn-jsdelivr",
            core_path="https://cdn.jsdelivr.net/gh/tesseract-ocr/tessdata_fast@main/eng.traineddata",
            lang_path="https://cdn.jsdelivr.net/gh/tesseract-ocr/tessdata_fast@main",
        ),
        EngineTierConfig(
            name="cdn-github",
            core_path="https://raw.githubusercontent.com/tesseract-ocr/tessdata_fast/main/eng.traineddata",
            lang_path="https://raw.githubusercontent.com/tesseract-ocr/tessdata_fast/main",
        ),
        EngineTierConfig(name="bundled-default"),
    ]


class OCREngineConfig(BaseModel):
    """OCR engine lifecycle configuration.

    Attributes:
        language: Tesseract language identifier (``+``-joined for several)
        workers: Number of concurrent recognition workers
        max_retries: Retries after the first failed attempt
        retry_delay_seconds: Fixed backoff between attempts
        probe_timeout_seconds: Timeout for each accessibility probe
        cache_dir: Directory for downloaded language models
        tiers: Ordered fallback tiers
    """

    language: str = "eng"
    workers: int = Field(default=1, ge=1)
    max_retries: int = Field(default=3, ge=0)
    retry_delay_seconds: float = Field(default=2.0, ge=0.0)
    probe_timeout_seconds: float = Field(default=5.0, gt=0.0)
    cache_dir: Path = Path.home() / ".cache" / "card_scanner" / "tessdata"
    tiers: List[EngineTierConfig] = Field(default_factory=default_tiers, min_length=1)

    def select_tier(self, retry_count: int) -> EngineTierConfig:
        """Select the tier for an attempt: ``min(retry_count, len(tiers) - 1)``."""
        return self.tiers[tier_index(retry_count, len(self.tiers))]


def tier_index(retry_count: int, tier_count: int) -> int:
    """Index of the tier used after ``retry_count`` failed attempts.

    Retries exhaust into the last tier and stay there.

    Example:
        >>> [tier_index(n, 4) for n in (0, 1, 2, 3, 4, 100)]
        [0, 1, 2, 3, 3, 3]
    """
    if tier_count < 1:
        raise ValueError("At least one tier is required")
    return min(max(retry_count, 0), tier_count - 1)


class Config(BaseModel):
    """Root configuration container.

    Attributes:
        engine: OCR engine configuration
    """

    engine: OCREngineConfig = Field(default_factory=OCREngineConfig)


def load_config(config_path: Path) -> Config:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated Config object with all settings

    Raises:
        FileNotFoundError: If config file does not exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If configuration validation fails

    Example:
        >>> config = load_config(Path("card_scanner/ocr/config.yaml"))
        >>> print(config.engine.max_retries)
        3
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    return Config(**config_dict)


def get_default_config() -> Config:
    """Get default configuration from bundled config.yaml file.

    Returns:
        Config object loaded from card_scanner/ocr/config.yaml
    """
    default_config_path = Path(__file__).parent / "config.yaml"
    if default_config_path.exists():
        return load_config(default_config_path)
    else:
        # Fallback to hardcoded defaults if config file is missing
        return Config()
