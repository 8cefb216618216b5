"""Page fetch collaborator: HTML, embedded JSON-LD and the author description."""

import logging
import re
from typing import Dict, Optional

import httpx
from bs4 import BeautifulSoup

from chefstacks.app.core.config import Settings
from chefstacks.app.services.extraction.errors import FetchFailed, InvalidURL
from chefstacks.app.services.extraction.extractors.schema_org import parse_json_ld_blocks
from chefstacks.app.services.extraction.models import FetchedPage
from chefstacks.app.services.extraction.parsing_utils import clean_text
from chefstacks.app.services.extraction.url_routing import classify_url

logger = logging.getLogger(__name__)

_HTML_TAG_RE = re.compile(r"<[a-z]+[^>]*>", re.I)
_META_CHARSET_RE = re.compile(r'<meta[^>]+charset=["\']?([^"\'>\s]+)', re.I)


def _charset_from(content_type: str) -> Optional[str]:
    if "charset=" not in content_type.lower():
        return None
    try:
        return content_type.lower().split("charset=")[1].split(";")[0].strip().strip("\"'")
    except IndexError:
        return None


def decode_html(content: bytes, content_type: str) -> str:
    """Decode with the declared charset, then utf-8, then any ``<meta charset>``."""
    encoding = _charset_from(content_type) or "utf-8"
    try:
        return content.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        text = content.decode("utf-8", errors="replace")
        match = _META_CHARSET_RE.search(text)
        if match and match.group(1).lower() not in {"utf-8", encoding}:
            try:
                return content.decode(match.group(1))
            except (UnicodeDecodeError, LookupError):
                pass
        return text


def looks_like_html(text: str) -> bool:
    sample = (text or "")[:2000]
    if not sample or not _HTML_TAG_RE.search(sample):
        return False
    printable = sum(1 for c in sample if (32 <= ord(c) <= 126) or c.isspace() or ord(c) > 159)
    control = sum(1 for c in sample if ord(c) < 32 and c not in "\n\r\t")
    return printable / len(sample) > 0.6 and control / len(sample) < 0.1


def extract_author_notes(html: str) -> Optional[str]:
    """The page's author description, preferring the longest candidate."""
    soup = BeautifulSoup(html or "", "lxml")
    candidates = []
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        tag = soup.find("meta", attrs=attrs)
        if tag is not None and tag.get("content"):
            candidates.append(tag["content"])
    for el in soup.find_all(class_=re.compile("description", re.I)):
        text = el.get_text("\n", strip=True)
        if text:
            candidates.append(text)
    candidates = [c.strip() for c in candidates if clean_text(c)]
    if not candidates:
        return None
    return max(candidates, key=len)


class HttpPageFetcher:
    """Fetches a page over httpx with browser-like headers and bounded timeouts."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": self.settings.scraper_user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Referer": "https://www.google.com/",
            "Connection": "keep-alive",
        }
        if self.settings.scraper_cookies:
            headers["Cookie"] = self.settings.scraper_cookies
        return headers

    async def _get(self, url: str, extra_headers: Optional[dict] = None) -> httpx.Response:
        timeout = httpx.Timeout(
            self.settings.web_fetch_timeout_seconds,
            connect=self.settings.web_fetch_connect_timeout_seconds,
        )
        headers = self._headers() | (extra_headers or {})
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, headers=headers) as client:
            return await client.get(url)

    async def fetch(self, url: str) -> FetchedPage:
        try:
            classify_url(url)
        except InvalidURL as exc:
            raise FetchFailed(exc.message) from exc

        try:
            response = await self._get(url)
            if response.status_code in {401, 403}:
                logger.info("Fetch of %s blocked (%s); retrying with relaxed headers", url, response.status_code)
                response = await self._get(url, {"Accept": "*/*"})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchFailed(
                f"Site returned status {exc.response.status_code}.",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.TimeoutException as exc:
            raise FetchFailed("Timed out fetching the page.") from exc
        except httpx.HTTPError as exc:
            raise FetchFailed(f"Network error: {exc}") from exc

        content_type = response.headers.get("content-type", "")
        if content_type and "html" not in content_type and "text/plain" not in content_type:
            raise FetchFailed(f"Unsupported content type: {content_type}")

        html = decode_html(response.content, content_type)
        if not looks_like_html(html):
            logger.warning("HTML validation failed for %s", url)
            raise FetchFailed("HTML content appears corrupted or has encoding issues.")

        page = FetchedPage(
            url=url,
            html=html,
            structured_data=parse_json_ld_blocks(html),
            notes=extract_author_notes(html),
        )
        logger.info(
            "Fetched %s: %d chars, %d JSON-LD blocks, notes=%s",
            url,
            len(html),
            len(page.structured_data or []),
            bool(page.notes),
        )
        return page
