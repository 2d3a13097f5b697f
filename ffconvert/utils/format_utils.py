"""
This module contains helper functions for formatting and parsing values.
They are used throughout the application, in logging, in command construction and
in reading FFmpeg's progress output.
"""

import math
import re
from datetime import timedelta
from typing import Optional

_TIMESTAMP_PATTERN = re.compile(r"(\d{2}):(\d{2}):(\d{2}(?:\.\d+)?)")


def format_timedelta(td_object: timedelta) -> str:
    """
    Formats a timedelta object into a "HH:MM:SS" string.

    Returns "00:00:00" if the input is not a valid timedelta object.
    """
    if not isinstance(td_object, timedelta):
        return "00:00:00"

    total_seconds = int(td_object.total_seconds())
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def formatted_size(size_bytes: int) -> str:
    """
    Converts a size in bytes to a human-readable string (e.g., B, KB, MB, GB, TB).

    For example, 1536 becomes "1.50 KB", and 2097152 becomes "2 MB".
    """
    if size_bytes < 0:
        size_bytes = 0

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    factor = 1024.0

    if size_bytes == 0:
        return "0 B"

    for unit in units:
        if size_bytes < factor:
            if unit == "B":
                return f"{size_bytes} {unit}"
            else:
                # Clean up ".00" for whole numbers (e.g., "2.00 MB" -> "2 MB").
                return f"{size_bytes:.2f} {unit}".replace(".00", "")
        size_bytes /= factor

    return f"{size_bytes:.2f} {units[-1]}".replace(".00", "")


def parse_timestamp(value: str) -> Optional[float]:
    """
    Parses an FFmpeg 'HH:MM:SS[.fraction]' timestamp into seconds.

    Args:
        value: The timestamp text, e.g. "00:01:05.00".

    Returns:
        The total number of seconds, or None if the text is not a complete timestamp.
    """
    match = _TIMESTAMP_PATTERN.fullmatch(value.strip())
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def format_number(value: float) -> str:
    """
    Renders a number in its shortest canonical form for a command line.

    Whole numbers lose their fractional part ("30", not "30.0") and fractions keep
    up to six significant digits ("29.97", "23.976"). The same value always
    produces the same text.
    """
    if isinstance(value, bool) or not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite number: {value!r}")
    if float(value).is_integer():
        return str(int(value))
    return format(float(value), "g")
