"""OCR engine lifecycle and card number validation.

This module recognizes text in the card-number region through a Tesseract
backend and decides whether the result is an acceptable card number.

Core Components:
    - config_loader: Engine configuration and fallback tiers (Pydantic)
    - probe: HEAD-request reachability checks for remote assets
    - engine_tesseract: Tesseract backend construction and recognition
    - manager: Tiered initialization with bounded retry, recognition, teardown
    - validator: 16-digit pattern validation and masking

Example:
    >>> from card_scanner.ocr import RecognitionEngineManager, validate_card_number
    >>> manager = RecognitionEngineManager()
    >>> await manager.initialize()
    >>> result = await manager.recognize(png_bytes)
    >>> number = validate_card_number(result.text, result.confidence)
"""

from .config_loader import (
    Config,
    EngineTierConfig,
    OCREngineConfig,
    default_tiers,
    get_default_config,
    is_remote,
    load_config,
    tier_index,
)
from .engine_tesseract import TesseractBackend, create_backend, parse_tesseract_data
from .manager import RecognitionEngineManager
from .probe import probe_asset, probe_tier_assets
from .types import BackendOptions, RecognitionEngineHandle, RecognitionResult
from .validator import (
    CARD_NUMBER_PATTERN,
    MIN_CONFIDENCE,
    extract_card_number,
    mask_card_number,
    normalize_card_number,
    validate_card_number,
)

__all__ = [
    # Types
    "RecognitionResult",
    "RecognitionEngineHandle",
    "BackendOptions",
    # Configuration
    "Config",
    "OCREngineConfig",
    "EngineTierConfig",
    "default_tiers",
    "tier_index",
    "is_remote",
    "load_config",
    "get_default_config",
    # Engine
    "TesseractBackend",
    "create_backend",
    "parse_tesseract_data",
    "probe_asset",
    "probe_tier_assets",
    "RecognitionEngineManager",
    # Validation
    "CARD_NUMBER_PATTERN",
    "MIN_CONFIDENCE",
    "extract_card_number",
    "normalize_card_number",
    "validate_card_number",
    "mask_card_number",
]
