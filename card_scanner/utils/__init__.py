"""
Shared Utilities

Common functions used across all modules.
"""

from card_scanner.utils.logging_config import LOG_FORMAT, setup_logging

__all__ = [
    "LOG_FORMAT",
    "setup_logging",
]
