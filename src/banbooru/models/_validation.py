"""Shared validation helpers for frozen dataclass models.

Private module -- not part of the public API. Used by ``__post_init__``
methods in sibling model modules.
"""

from __future__ import annotations

import re
from typing import Any


_LOWER_HEX = re.compile(r"^[0-9a-f]*$")


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_int(value: Any, name: str, *, minimum: int = 0, maximum: int | None = None) -> None:
    """Raise if *value* is not an ``int`` in ``[minimum, maximum]`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < minimum or (maximum is not None and value > maximum):
        raise ValueError(f"{name} out of range: {value}")


def validate_hex(value: Any, name: str, length: int) -> None:
    """Raise if *value* is not a lowercase hex string of exactly *length* characters."""
    validate_instance(value, str, name)
    if len(value) != length or not _LOWER_HEX.match(value):
        raise ValueError(f"{name} must be {length} lowercase hex characters")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str``, contains null bytes or lone surrogates."""
    validate_instance(value, str, name)
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"{name} is not valid UTF-8: {e.reason}") from e
