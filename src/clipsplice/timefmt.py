"""Time conversions — seconds to display strings and timeline coordinates.

Contains: timestamp formatting/parsing for labels and edit scripts,
pointer-fraction to seconds mapping for drag gestures, and frame-grid
alignment used by decode handles.
"""

import math
from decimal import Decimal, ROUND_HALF_UP


# Tolerance when snapping a time onto a frame grid. Absorbs float error in
# values like 0.3 * 10 without skipping a genuine frame.
FRAME_EPSILON = 1e-6


# ── Display strings ────────────────────────────────────────────────


def _to_millis(seconds: float) -> int:
    """Round seconds to whole milliseconds, half-up (1.2345 -> 1235)."""
    return int(
        (Decimal(str(seconds)) * Decimal(1000)).to_integral_value(
            rounding=ROUND_HALF_UP
        )
    )


def format_time(seconds: float) -> str:
    """Format seconds as mm:ss for timeline labels. Negative clamps to 0."""
    if seconds < 0:
        seconds = 0.0
    total = _to_millis(seconds) // 1000
    m, s = divmod(total, 60)
    return f"{m:02d}:{s:02d}"


def format_time_precise(seconds: float) -> str:
    """Format seconds as mm:ss.mmm. Negative clamps to 0."""
    if seconds < 0:
        seconds = 0.0
    m, rem = divmod(_to_millis(seconds), 60000)
    s, ms = divmod(rem, 1000)
    return f"{m:02d}:{s:02d}.{ms:03d}"


def parse_time(value: str | int | float) -> float:
    """Parse a timestamp into seconds.

    Accepts plain numbers (int, float or numeric string), "mm:ss[.fff]"
    and "hh:mm:ss[.fff]".

    Raises:
        ValueError: Unparseable string or negative result.
    """
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        parts = text.split(":")
        if len(parts) > 3 or not all(parts):
            raise ValueError(f"Invalid timestamp: '{value}'")
        try:
            seconds = 0.0
            for part in parts:
                seconds = seconds * 60 + float(part)
        except ValueError:
            raise ValueError(f"Invalid timestamp: '{value}'") from None
    if not math.isfinite(seconds) or seconds < 0:
        raise ValueError(f"Timestamp must be a finite value >= 0, got {value!r}")
    return seconds


# ── Timeline coordinates ───────────────────────────────────────────


def fraction_to_time(fraction: float, duration: float) -> float:
    """Map a pointer position (0.0 = left edge, 1.0 = right edge) to seconds.

    Positions past either edge clamp to the track bounds.
    """
    fraction = max(0.0, min(1.0, fraction))
    return fraction * duration


def time_to_fraction(seconds: float, duration: float) -> float:
    """Inverse of fraction_to_time. Zero-length tracks map everything to 0."""
    if duration <= 0:
        return 0.0
    return max(0.0, min(1.0, seconds / duration))


# ── Frame grid ─────────────────────────────────────────────────────


def frame_index_at(seconds: float, fps: float) -> int:
    """Index of the first frame whose timestamp is at or after `seconds`."""
    return max(0, math.ceil(seconds * fps - FRAME_EPSILON))


def frame_time(index: int, fps: float) -> float:
    """Timestamp of frame `index` on a grid of `fps` frames per second."""
    return index / fps
