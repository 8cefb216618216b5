"""URL validation and routing by platform signature."""

import ipaddress
import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

from chefstacks.app.services.extraction.errors import InvalidURL
from chefstacks.app.services.extraction.models import SourceKind, SourceURL

logger = logging.getLogger(__name__)

_YOUTUBE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
_TIKTOK_ID_RE = re.compile(r"/video/(\d+)")
_INSTAGRAM_ID_RE = re.compile(r"/(?:p|reel|reels|tv)/([A-Za-z0-9_-]+)")


def is_private_host(host: str) -> bool:
    """Check if a host is private/localhost."""
    hostname = host.split(":")[0]
    try:
        ip = ipaddress.ip_address(hostname)
        return ip.is_private or ip.is_loopback or ip.is_link_local
    except ValueError:
        return hostname.lower() in {"localhost"} or hostname.lower().endswith(".localhost")


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def parse_youtube_id(url: str) -> Optional[str]:
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    candidate = None
    if _host_matches(host, "youtu.be"):
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif _host_matches(host, "youtube.com"):
        if parsed.path == "/watch":
            candidate = (parse_qs(parsed.query).get("v") or [None])[0]
        else:
            parts = [p for p in parsed.path.split("/") if p]
            if len(parts) >= 2 and parts[0] in {"shorts", "embed", "live", "v"}:
                candidate = parts[1]
    if candidate and _YOUTUBE_ID_RE.match(candidate):
        return candidate
    return None


def youtube_thumbnail_url(video_id: Optional[str]) -> Optional[str]:
    if not video_id:
        return None
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"


def thumbnail_for(source: SourceURL) -> Optional[str]:
    """Best-effort thumbnail; only YouTube ids map to a stable image URL."""
    if source.kind is SourceKind.YOUTUBE:
        return youtube_thumbnail_url(source.video_id)
    return None


def classify_url(url: str) -> SourceURL:
    """Validate ``url`` and derive its kind. Raises InvalidURL."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidURL("A URL is required.")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise InvalidURL("URL must start with http or https.")
    host = (parsed.hostname or "").lower()
    if not parsed.netloc or not host:
        raise InvalidURL("URL is missing a host.")
    if is_private_host(host):
        raise InvalidURL("Host is blocked (localhost/private).")

    kind = SourceKind.WEB
    video_id = None
    if _host_matches(host, "youtube.com") or _host_matches(host, "youtu.be"):
        video_id = parse_youtube_id(url)
        if video_id is None:
            raise InvalidURL("Could not find a video id in this YouTube URL.")
        kind = SourceKind.YOUTUBE
    elif _host_matches(host, "tiktok.com"):
        kind = SourceKind.TIKTOK
        match = _TIKTOK_ID_RE.search(parsed.path)
        video_id = match.group(1) if match else None
    elif _host_matches(host, "instagram.com"):
        kind = SourceKind.INSTAGRAM
        match = _INSTAGRAM_ID_RE.search(parsed.path)
        video_id = match.group(1) if match else None

    logger.debug("Classified %s as %s (video_id=%s)", url, kind.value, video_id)
    return SourceURL(url=url, kind=kind, host=host, video_id=video_id)
