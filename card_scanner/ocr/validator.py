"""Card number pattern validation and masking.

A recognition result is accepted when the recognized text contains a run of
16 digits, optionally with a single space between each group of four, and the
reported confidence is strictly greater than the acceptance threshold. The
first matching run in the text wins.
"""

import re
from typing import Optional

CARD_NUMBER_LENGTH = 16
MIN_CONFIDENCE = 60.0

# Four groups of four digits, each separated by at most one space
CARD_NUMBER_PATTERN = re.compile(r"(\d{4} ?\d{4} ?\d{4} ?\d{4})")


def normalize_card_number(text: str) -> str:
    """Remove spaces from a matched card number.

    Example:
        >>> normalize_card_number("4111 1111 1111 1111")
        '4111111111111111'
    """
    return text.replace(" ", "")


def extract_card_number(text: str) -> Optional[str]:
    """Find the first grouped 16-digit run in recognized text.

    Args:
        text: Raw OCR output.

    Returns:
        The 16 digits without spaces, or None if no run matches.

    Example:
        >>> extract_card_number("VISA 4111 1111 1111 1111 12/28")
        '4111111111111111'
        >>> extract_card_number("411 1111111111111") is None
        True
    """
    if not text:
        return None

    match = CARD_NUMBER_PATTERN.search(text)
    if match is None:
        return None

    number = normalize_card_number(match.group(1))
    if len(number) != CARD_NUMBER_LENGTH:
        return None
    return number


def validate_card_number(
    text: str, confidence: float, min_confidence: float = MIN_CONFIDENCE
) -> Optional[str]:
    """Map recognized text and confidence to an accepted card number.

    Args:
        text: Raw OCR output.
        confidence: Recognition confidence in [0, 100].
        min_confidence: Exclusive lower bound on confidence.

    Returns:
        Accepted 16-digit number, or None if rejected.

    Example:
        >>> validate_card_number("4111 1111 1111 1111", 75)
        '4111111111111111'
        >>> validate_card_number("4111111111111111", 60) is None
        True
    """
    if not confidence > min_confidence:
        return None
    return extract_card_number(text)


def mask_card_number(number: str) -> str:
    """Mask all but the last four digits of a 16-digit number.

    Numbers of any other length are returned unchanged.

    Example:
        >>> mask_card_number("4111111111111111")
        '**** **** **** 1111'
    """
    if len(number) != CARD_NUMBER_LENGTH:
        return number
    return f"**** **** **** {number[-4:]}"
