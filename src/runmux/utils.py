"""Utility functions for runmux."""

import math
import re
from pathlib import Path


def parse_percentage(value: object) -> float | None:
    """Parse a size hint into a percentage.

    Accepts ``"25%"``, ``"25"`` or a number. Sizes are advisory, so values
    above 100 or equal to 0 are kept and left to the layout size checks.

    Args:
        value: The raw size value from the document.

    Returns:
        The percentage as a float, or None if no size was given.

    Raises:
        ValueError: If the value is not a finite, non-negative number.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, int | float):
        percent = float(value)
    elif isinstance(value, str):
        match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)\s*%?\s*", value)
        if not match:
            raise ValueError(f"Invalid size: {value!r}")
        percent = float(match.group(1))
    else:
        raise ValueError(f"Invalid size: {value!r}")

    if not math.isfinite(percent) or percent < 0:
        raise ValueError(f"Size must be a non-negative percentage, got {value!r}")
    return percent


def tmux_safe_name(name: str) -> str:
    """Make a session or window name usable as a tmux target.

    tmux reserves ``.`` and ``:`` in target specifiers.

    Args:
        name: The declared name.

    Returns:
        The name with reserved characters replaced by hyphens.
    """
    result = re.sub(r"[.:]", "-", name.strip())
    return result or "session"


DEFAULT_PATH_MAX_LEN = 50


def compress_path(path: str, max_len: int = DEFAULT_PATH_MAX_LEN) -> str:
    """Compress a file path by replacing home with ~ and truncating from the start.

    Args:
        path: The path to compress.
        max_len: Maximum length before truncation.

    Returns:
        Compressed path with ~ for home directory.
    """
    if not path:
        return ""

    # Replace home directory with ~
    home = str(Path.home())
    if path.startswith(home):
        path = "~" + path[len(home) :]

    if len(path) <= max_len:
        return path

    # Truncate from the beginning, preserving the last components
    return "..." + path[-(max_len - 3) :]
