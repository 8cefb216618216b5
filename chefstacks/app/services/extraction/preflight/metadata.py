"""Platform metadata and transcript collaborators for the preflight gate."""

import logging
from typing import Optional, Protocol

import httpx

from chefstacks.app.core.config import Settings
from chefstacks.app.services.extraction.models import SourceKind, SourceURL, VideoMetadata
from chefstacks.app.services.extraction.parsing_utils import parse_iso8601_seconds
from chefstacks.app.services.extraction.url_routing import thumbnail_for

logger = logging.getLogger(__name__)


class MetadataProvider(Protocol):
    async def fetch(self, source: SourceURL) -> Optional[VideoMetadata]:
        ...


class TranscriptSource(Protocol):
    async def excerpt(self, source: SourceURL) -> Optional[str]:
        ...


def _best_thumbnail(snippet: dict) -> Optional[str]:
    thumbnails = snippet.get("thumbnails") or {}
    for size in ("maxres", "standard", "high", "medium", "default"):
        entry = thumbnails.get(size)
        if isinstance(entry, dict) and entry.get("url"):
            return entry["url"]
    return None


def metadata_from_item(item: dict) -> VideoMetadata:
    """Map one YouTube Data API ``videos`` item onto VideoMetadata."""
    snippet = item.get("snippet") or {}
    content = item.get("contentDetails") or {}
    topics = (item.get("topicDetails") or {}).get("topicCategories") or []
    return VideoMetadata(
        duration_seconds=parse_iso8601_seconds(content.get("duration") or ""),
        category_id=str(snippet["categoryId"]) if snippet.get("categoryId") else None,
        has_caption=str(content.get("caption", "")).lower() == "true",
        title=snippet.get("title") or "",
        description=snippet.get("description") or "",
        topic_categories=[t for t in topics if isinstance(t, str)],
        thumbnail_url=_best_thumbnail(snippet),
        channel_title=snippet.get("channelTitle"),
    )


class YouTubeMetadataProvider:
    """YouTube Data API v3 lookup; every failure yields ``None``."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def fetch(self, source: SourceURL) -> Optional[VideoMetadata]:
        if source.kind is not SourceKind.YOUTUBE or not source.video_id:
            return None
        if not self.settings.youtube_api_key:
            logger.warning("YOUTUBE_API_KEY is not set; preflight runs without metadata")
            return None

        url = f"{self.settings.youtube_api_base_url.rstrip('/')}/videos"
        params = {
            "id": source.video_id,
            "key": self.settings.youtube_api_key,
            "part": "snippet,contentDetails,topicDetails",
        }
        try:
            async with httpx.AsyncClient(timeout=self.settings.metadata_timeout_seconds) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("YouTube metadata lookup failed for %s: %s", source.video_id, exc)
            return None

        items = data.get("items") if isinstance(data, dict) else None
        if not items:
            logger.warning("YouTube returned no items for %s", source.video_id)
            return None
        metadata = metadata_from_item(items[0])
        if metadata.thumbnail_url is None:
            metadata.thumbnail_url = thumbnail_for(source)
        logger.info(
            "Metadata for %s: duration=%s category=%s captions=%s",
            source.video_id,
            metadata.duration_seconds,
            metadata.category_id,
            metadata.has_caption,
        )
        return metadata
