"""Common utility functions."""
import re
from typing import Any

from api.shared.exceptions import InvalidIdentifierError

_DIGITS = re.compile(r"[0-9]+")


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """Keep the first ``max_length`` characters and mark the cut with ``suffix``."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix


def parse_identifier(raw_value: Any, resource: str = "conversation") -> int:
    """Parse a positive integer identifier from a path segment or body field.

    Raises InvalidIdentifierError for anything else (booleans included).
    """
    if isinstance(raw_value, bool):
        raise InvalidIdentifierError(resource, raw_value)
    if isinstance(raw_value, int):
        value = raw_value
    elif isinstance(raw_value, str) and _DIGITS.fullmatch(raw_value.strip()):
        value = int(raw_value.strip())
    else:
        raise InvalidIdentifierError(resource, raw_value)
    if value <= 0:
        raise InvalidIdentifierError(resource, raw_value)
    return value
