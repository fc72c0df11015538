"""
Duration parsing for configuration values.

Example Usage:
    >>> parse_duration("1m30s")
    90.0

    >>> parse_duration("250ms")
    0.25

    >>> parse_duration(2)
    2.0
"""

import math
import re

# Time conversion constants
SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600
SECONDS_PER_MINUTE = 60
MILLISECONDS_PER_SECOND = 1000
MICROSECONDS_PER_SECOND = 1_000_000

# Longer units first so "ms" is not read as "m" followed by "s"
_COMPONENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(ms|us|μs|d|h|m|s)")
_NUMBER_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")


class InvalidDurationError(ValueError):
    """Raised when an invalid duration value or string is provided."""

    pass


def _unit_to_seconds(value: float, unit: str) -> float:
    if unit == "d":
        return value * SECONDS_PER_DAY
    if unit == "h":
        return value * SECONDS_PER_HOUR
    if unit == "m":
        return value * SECONDS_PER_MINUTE
    if unit == "ms":
        return value / MILLISECONDS_PER_SECOND
    if unit in ("us", "μs"):
        return value / MICROSECONDS_PER_SECOND
    return value


def _parse_duration_string(duration_str: str) -> float:
    """Parse a string such as "1h30m" or "45.5s" into seconds."""
    text = duration_str.strip().replace(" ", "")
    if not text:
        raise InvalidDurationError("Duration string cannot be empty")

    if _NUMBER_PATTERN.match(text):
        return float(text)

    matches = _COMPONENT_PATTERN.findall(text)
    if not matches:
        raise InvalidDurationError(f"Could not parse duration string: '{duration_str}'")

    reconstructed = "".join(f"{val}{unit}" for val, unit in matches)
    if reconstructed != text:
        raise InvalidDurationError(
            f"Invalid characters in duration string: '{duration_str}'"
        )

    total = 0.0
    seen_units: set[str] = set()
    for value_str, unit in matches:
        if unit in seen_units:
            raise InvalidDurationError(f"Duplicate unit '{unit}' in duration string")
        seen_units.add(unit)
        total += _unit_to_seconds(float(value_str), unit)
    return total


def parse_duration(value: str | int | float) -> float:
    """
    Convert a duration given as seconds or as a duration string to seconds.

    Args:
        value: Number of seconds, or a string made of ``<number><unit>``
            components with units d, h, m, s, ms, us

    Returns:
        Duration in seconds as float

    Raises:
        InvalidDurationError: If the value cannot be interpreted or is negative
    """
    if isinstance(value, bool):
        raise InvalidDurationError("Duration must be a number or string, got bool")

    if isinstance(value, str):
        secs = _parse_duration_string(value)
    elif isinstance(value, (int, float)):
        secs = float(value)
    else:
        raise InvalidDurationError(
            f"Duration must be a number or string, got {type(value).__name__}"
        )

    if math.isnan(secs) or math.isinf(secs):
        raise InvalidDurationError(f"Duration must be finite, got {value!r}")
    if secs < 0:
        raise InvalidDurationError(f"Duration cannot be negative, got {value!r}")
    return secs
