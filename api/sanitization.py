"""
Input sanitization utilities for Clean-Hero API endpoints.
Values are stored as the user typed them, minus control characters and
excess length; no HTML escaping.
"""

import re
from typing import Optional
import logging


def sanitize_string(input_str: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize a string input by:
    1. Stripping leading/trailing whitespace
    2. Removing control characters
    3. Truncating to max_length if specified

    Args:
        input_str: The input string to sanitize
        max_length: Optional maximum length for truncation

    Returns:
        Sanitized string
    """
    if not isinstance(input_str, str):
        if input_str is None:
            return ""
        return str(input_str)

    sanitized = input_str.strip()

    # Remove control characters (except tab, newline, carriage return)
    sanitized = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', sanitized)

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]
        logging.warning(f"Input truncated from {len(input_str)} to {max_length} characters")

    return sanitized


def sanitize_amount(amount: str) -> Optional[str]:
    """
    Normalizes a reported waste amount in kilograms. Returns None unless it is a
    positive number; a trailing unit such as "kg" is dropped.
    """
    match = re.fullmatch(r'\s*(\d+(?:\.\d+)?|\.\d+)\s*(?:kg|kgs)?\s*', amount or '', flags=re.IGNORECASE)
    if not match or float(match.group(1)) <= 0:
        return None
    return match.group(1)
