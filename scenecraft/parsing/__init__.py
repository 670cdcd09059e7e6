"""Response parsing for interview replies."""

from .parser import (
    ResponseParser,
    coerce_value,
    extract_labelled,
    parse,
    parse_profile,
)

__all__ = [
    "ResponseParser",
    "coerce_value",
    "extract_labelled",
    "parse",
    "parse_profile",
]
