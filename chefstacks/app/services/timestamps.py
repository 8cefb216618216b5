"""Conversion between textual video timestamps and integer seconds.

Accepted input is ``MM:SS`` or ``HH:MM:SS`` (an optional leading ``@`` marker is
tolerated). Anything else yields ``None``: a missing or garbled timestamp is
common in scraped text and must never abort an extraction.
"""

import re
from typing import Optional

_TIMESTAMP_RE = re.compile(r"^@?(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_timestamp(text: Optional[str]) -> Optional[int]:
    """Parse ``MM:SS`` or ``HH:MM:SS`` into seconds."""
    if not text or not isinstance(text, str):
        return None
    match = _TIMESTAMP_RE.match(text.strip())
    if not match:
        return None
    first, second, third = match.groups()
    if third is None:
        minutes, seconds = int(first), int(second)
        if seconds >= 60:
            return None
        return minutes * 60 + seconds
    hours, minutes, seconds = int(first), int(second), int(third)
    if minutes >= 60 or seconds >= 60:
        return None
    return hours * 3600 + minutes * 60 + seconds


def format_timestamp(seconds: int) -> str:
    """Format seconds as zero-padded ``HH:MM:SS``."""
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def normalize_timestamp(text: Optional[str]) -> Optional[str]:
    """Canonical ``HH:MM:SS`` form of a timestamp, or ``None`` if malformed."""
    seconds = parse_timestamp(text)
    if seconds is None:
        return None
    return format_timestamp(seconds)
