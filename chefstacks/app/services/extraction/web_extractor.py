"""Multi-layer web page extractor.

Layers are an ordered list of strategies sharing one capability,
``extract(page) -> PartialRecipe | None``. Each field category is satisfied
independently; the next layer only runs while some category is still empty.
Every layer's output goes to fusion, where provenance priority decides which
value wins.
"""

import logging
import re
from typing import List, Optional, Protocol, Sequence, Set

from bs4 import BeautifulSoup

from chefstacks.app.core.config import Settings
from chefstacks.app.services.extraction.errors import ParseDegraded
from chefstacks.app.services.extraction.extractors import (
    AuthorNotesLayer,
    HtmlHeuristicsLayer,
    StructuredDataLayer,
)
from chefstacks.app.services.extraction.fusion import ConfidenceFusionEngine
from chefstacks.app.services.extraction.models import (
    ExtractionDebug,
    FetchedPage,
    FusedRecipe,
    PartialRecipe,
    Provenance,
)
from chefstacks.app.services.extraction.page_fetcher import HttpPageFetcher
from chefstacks.app.services.extraction.parsing_utils import clean_text

logger = logging.getLogger(__name__)

CATEGORIES = ("ingredients", "steps", "times", "servings")


class ExtractionLayer(Protocol):
    name: str
    provenance: Provenance

    def extract(self, page: FetchedPage) -> Optional[PartialRecipe]:
        ...


class PageFetcher(Protocol):
    async def fetch(self, url: str) -> FetchedPage:
        ...


def default_layers() -> List[ExtractionLayer]:
    return [StructuredDataLayer(), AuthorNotesLayer(), HtmlHeuristicsLayer()]


def satisfied_categories(partial: Optional[PartialRecipe]) -> Set[str]:
    if partial is None:
        return set()
    filled = set()
    if partial.ingredients:
        filled.add("ingredients")
    if partial.steps:
        filled.add("steps")
    if not partial.times.is_empty():
        filled.add("times")
    if partial.servings is not None:
        filled.add("servings")
    return filled


def page_title(html: str) -> Optional[str]:
    soup = BeautifulSoup(html or "", "lxml")
    og = soup.find("meta", attrs={"property": "og:title"})
    if og is not None and og.get("content"):
        return clean_text(og["content"])
    tag = soup.find("h1") or soup.title
    if tag is None:
        return None
    # "Best Lasagna | Some Site" -> "Best Lasagna"
    return clean_text(re.split(r"\s[|\-–]\s", tag.get_text())[0]) or None


class WebExtractor:
    def __init__(
        self,
        settings: Settings,
        fetcher: Optional[PageFetcher] = None,
        layers: Optional[Sequence[ExtractionLayer]] = None,
        fusion: Optional[ConfidenceFusionEngine] = None,
    ):
        self.settings = settings
        self.fetcher = fetcher or HttpPageFetcher(settings)
        self.layers = list(layers) if layers is not None else default_layers()
        self.fusion = fusion or ConfidenceFusionEngine()

    async def extract(self, url: str) -> FusedRecipe:
        """Fetch ``url`` and run the layers. FetchFailed propagates."""
        page = await self.fetcher.fetch(url)
        return self.extract_page(page)

    def _run_layer(self, layer: ExtractionLayer, page: FetchedPage) -> Optional[PartialRecipe]:
        try:
            return layer.extract(page)
        except ParseDegraded as exc:
            logger.warning("Layer %s degraded for %s: %s", layer.name, page.url, exc)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Layer %s failed for %s, trying next layer: %s", layer.name, page.url, exc, exc_info=True
            )
        return None

    def extract_page(self, page: FetchedPage) -> FusedRecipe:
        attempts: List[str] = []
        partials: List[PartialRecipe] = []
        missing = set(CATEGORIES)

        for layer in self.layers:
            if not missing:
                break
            attempts.append(layer.name)
            partial = self._run_layer(layer, page)
            filled = satisfied_categories(partial)
            logger.info(
                "Layer %s filled %s; still missing %s",
                layer.name,
                sorted(filled) or "nothing",
                sorted(missing - filled) or "nothing",
            )
            if partial is not None:
                partials.append(partial)
            missing -= filled

        structured = next((p for p in partials if p.provenance is Provenance.STRUCTURED), None)
        notes = next((p for p in partials if p.provenance is Provenance.NOTES), None)
        debug = ExtractionDebug(
            attempts=attempts,
            usedNotes=bool(notes is not None and not notes.is_empty()),
            hasStructuredData=bool(structured is not None and not structured.is_empty()),
            structuredDataType=structured.markup if structured is not None else None,
        )
        return self.fusion.fuse(
            partials,
            title=page_title(page.html),
            source_url=page.url,
            debug=debug,
        )
