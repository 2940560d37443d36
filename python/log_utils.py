"""
Shared logging helpers for the Persona backend

Search input is personal data. Anything user-supplied passes through these
helpers before it reaches a log record.
"""

import re
from typing import Optional


def sanitize_for_logging(text: Optional[str], max_length: int = 500) -> str:
    """Sanitize user input for safe logging, preventing log injection

    Removes newlines, carriage returns, and other control characters
    that could be used to inject fake log entries.

    Args:
        text: User input text
        max_length: Maximum length of the returned string

    Returns:
        Sanitized text safe for logging
    """
    if not text:
        return ''
    # Remove newlines, carriage returns, and other control characters
    sanitized = re.sub(r'[\r\n\x00-\x1f\x7f-\x9f]', ' ', str(text))
    # Collapse multiple spaces
    sanitized = re.sub(r'\s+', ' ', sanitized).strip()
    return sanitized[:max_length]


def mask_name(name: Optional[str]) -> str:
    """Mask a person name for logs: keep the first letter of each part.

    >>> mask_name("John Doe")
    'J*** D**'
    """
    cleaned = sanitize_for_logging(name, max_length=100)
    if not cleaned:
        return ''
    return ' '.join(part[0] + '*' * (len(part) - 1) for part in cleaned.split(' '))
