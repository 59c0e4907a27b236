"""
Input validation utilities
"""
import re

# Characters the Realtime Database rejects in keys
FORBIDDEN_KEY_CHARS = re.compile(r"[.$#\[\]/]")


def is_valid_store_key(key: str) -> bool:
    """
    Check a value can be used as a single Realtime Database path segment

    Keys must be non-empty and may not contain ``. $ # [ ] /``.
    """
    if not key or not isinstance(key, str):
        return False
    return FORBIDDEN_KEY_CHARS.search(key) is None


def sanitize_input(text: str, max_length: int = 10000) -> str:
    """
    Sanitize user input

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    # Remove null bytes
    text = text.replace('\x00', '')

    # Truncate to max length
    if len(text) > max_length:
        text = text[:max_length]

    return text.strip()
