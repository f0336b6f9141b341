"""Conversions between scrub positions, seconds and display timestamps.

A scrub position is a float in [0, 100] relative to the clip duration. The
display form is ``M:S:CC`` (minutes, seconds, hundredths); only the
hundredths are zero-padded, and every component is truncated, never rounded.
"""

import math
import re

from vidsplice.errors import InvalidInputError

UNREADY_DISPLAY = "0:0:00"

_DISPLAY_RE = re.compile(r"^(\d+):(\d+):(\d{1,2})$")


def is_ready(duration: float | None) -> bool:
    """True when *duration* is usable for conversions."""
    return (
        duration is not None
        and isinstance(duration, (int, float))
        and math.isfinite(duration)
        and duration > 0
    )


def to_seconds(scrub: float, duration: float) -> float:
    return (scrub / 100) * duration


def to_scrub(seconds: float, duration: float | None) -> float:
    """Inverse of :func:`to_seconds`; 0.0 while the duration is unknown."""
    if not is_ready(duration):
        return 0.0
    return (seconds / duration) * 100


def to_display(seconds: float) -> str:
    minutes = math.floor(seconds / 60)
    secs = math.floor(seconds % 60)
    hundredths = math.floor((seconds % 1) * 100)
    return f"{minutes}:{secs}:{hundredths:02d}"


def scrub_display(scrub: float, duration: float | None) -> str:
    """Display string for a scrub position, or the unready sentinel."""
    if not is_ready(duration) or not math.isfinite(scrub):
        return UNREADY_DISPLAY
    return to_display(to_seconds(scrub, duration))


def parse_timestamp(text: str | float | int) -> float:
    """Parse ``"62.5"`` or ``"1:2:50"`` into seconds."""
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        value = float(text)
    else:
        raw = str(text).strip()
        m = _DISPLAY_RE.match(raw)
        if m:
            minutes, secs, frac = m.groups()
            if int(secs) >= 60:
                raise InvalidInputError(f"Invalid timestamp {raw!r}: seconds must be < 60")
            return int(minutes) * 60 + int(secs) + int(frac.ljust(2, "0")) / 100
        try:
            value = float(raw)
        except ValueError:
            raise InvalidInputError(f"Invalid timestamp {raw!r}") from None

    if not math.isfinite(value) or value < 0:
        raise InvalidInputError(f"Invalid timestamp {text!r}")
    return value
