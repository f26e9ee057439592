"""
Card Scanner

Live-camera payment card number scanner:
    - capture: camera stream acquisition and playback readiness
    - imaging: card-number band extraction, preprocessing, overlay
    - ocr: recognition engine lifecycle, pattern validation, masking
    - scanner: timer-driven scan loop tying the above together
"""

__version__ = "0.1.0"
