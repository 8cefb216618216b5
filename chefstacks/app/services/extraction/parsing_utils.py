"""General parsing utilities for recipe extraction."""

import re
from typing import Any, List, Optional, Tuple

from chefstacks.app.services.extraction.constants import COMMON_UNITS, FRACTION_MAP

_ISO_DURATION_RE = re.compile(
    r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$", re.I
)


def clean_text(text: str) -> str:
    """Normalize whitespace in text."""
    return re.sub(r"\s+", " ", text or "").strip()


def normalize_unit_token(unit: str) -> str:
    """Normalize a unit token for comparison."""
    token = unit.lower().strip(".")
    if token.endswith("s") and len(token) > 1:
        token = token[:-1]
    return token


def is_known_unit(unit: str) -> bool:
    """Check if a unit string is a recognized cooking unit."""
    return normalize_unit_token(unit) in COMMON_UNITS


def normalize_fraction_display(qty: Optional[str]) -> Optional[str]:
    """Normalize fraction characters and quantity display strings."""
    if not qty:
        return qty
    s = qty
    # "1½" -> "1 ½" before expanding the glyph
    fraction_chars = "".join(FRACTION_MAP.keys())
    s = re.sub(rf"(\d)([{fraction_chars}])", r"\1 \2", s)
    for k, v in FRACTION_MAP.items():
        s = s.replace(k, v)
    s = re.sub(r"\s+", " ", s).strip()
    if re.fullmatch(r"-?\d+(\.\d+)?", s):
        num = float(s)
        s = str(int(num)) if num.is_integer() else str(num)
    return s or None


def _iso_parts(duration: str) -> Optional[Tuple[int, int, int, float]]:
    if not duration or not isinstance(duration, str):
        return None
    match = _ISO_DURATION_RE.match(duration.strip())
    if not match or not any(match.groups()):
        return None
    days, hours, minutes, seconds = match.groups()
    return int(days or 0), int(hours or 0), int(minutes or 0), float(seconds or 0)


def parse_iso8601_duration(duration: str) -> Optional[int]:
    """Parse an ISO-8601 duration (e.g. PT1H30M) into whole minutes."""
    parts = _iso_parts(duration)
    if parts is None:
        return None
    days, hours, minutes, seconds = parts
    total_minutes = days * 1440 + hours * 60 + minutes + (1 if seconds >= 30 else 0)
    return total_minutes or None


def parse_iso8601_seconds(duration: str) -> Optional[int]:
    """Parse an ISO-8601 duration into seconds; ``PT0S`` yields 0."""
    parts = _iso_parts(duration)
    if parts is None:
        return None
    days, hours, minutes, seconds = parts
    return int(days * 86400 + hours * 3600 + minutes * 60 + seconds)


def parse_minutes(value: Any) -> Optional[int]:
    """Parse a minutes value from ISO durations, numbers or text like "1 hr 15 mins"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    if isinstance(value, str):
        iso_minutes = parse_iso8601_duration(value)
        if iso_minutes is not None:
            return iso_minutes
        hours = re.search(r"(\d+)\s*(?:hours?|hrs?|h)\b", value, flags=re.I)
        minutes = re.search(r"(\d+)\s*(?:minutes?|mins?|m)\b", value, flags=re.I)
        if hours or minutes:
            total = int(hours.group(1)) * 60 if hours else 0
            total += int(minutes.group(1)) if minutes else 0
            return total or None
        if re.fullmatch(r"\s*\d+\s*", value):
            return int(value) or None
    return None


def parse_servings(value: Any) -> Optional[int]:
    """Parse servings from various formats."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    if isinstance(value, list):
        for item in value:
            parsed = parse_servings(item)
            if parsed:
                return parsed
        return None
    if isinstance(value, str):
        match = re.search(r"\d+", value)
        if match:
            return int(match.group()) or None
    return None


def parse_servings_from_text(text: str) -> Optional[int]:
    """Extract servings from descriptive text."""
    if not text:
        return None
    patterns = [
        r"serves\s+(\d+)",
        r"servings?:?\s*(\d+)",
        r"serve[s]?:\s*(\d+)",
        r"yield[s]?:?\s*(\d+)",
    ]
    lowered = text.lower()
    for pat in patterns:
        m = re.search(pat, lowered)
        if m:
            return int(m.group(1)) or None
    return None


def parse_labelled_minutes(text: str, label: str) -> Optional[int]:
    """Read a "<label> time: 20 minutes" style value out of page text."""
    if not text:
        return None
    m = re.search(
        rf"{label}\s*time\s*:?\s*((?:\d+\s*(?:hours?|hrs?|minutes?|mins?)\s*)+)",
        text,
        flags=re.I,
    )
    if not m:
        return None
    return parse_minutes(m.group(1))


def extract_image(value: Any) -> Optional[str]:
    """Extract image URL from various schema.org image formats."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        url = value.get("url") or value.get("contentUrl")
        return url if isinstance(url, str) and url else None
    if isinstance(value, list):
        for item in value:
            found = extract_image(item)
            if found:
                return found
    return None


def extract_author(value: Any) -> Optional[str]:
    """Extract an author name from a string, Person object or list of them."""
    if isinstance(value, str):
        return clean_text(value) or None
    if isinstance(value, dict):
        name = value.get("name")
        return clean_text(name) if isinstance(name, str) and name.strip() else None
    if isinstance(value, list):
        for item in value:
            found = extract_author(item)
            if found:
                return found
    return None


def split_sentences(text: str, min_length: int = 0) -> List[str]:
    """Split on sentence punctuation, keeping pieces longer than ``min_length``."""
    return [s.strip() for s in re.split(r"[.!?]", text or "") if len(s.strip()) > min_length]
