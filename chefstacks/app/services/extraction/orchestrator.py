"""Top-level entry point: route a URL, gate videos, extract, fuse."""

import asyncio
import logging
from typing import List, Optional

from chefstacks.app.core.config import Settings
from chefstacks.app.services.extraction.errors import (
    ExtractionCancelled,
    ExtractionError,
    InvalidURL,
    PreflightRejected,
)
from chefstacks.app.services.extraction.extractors import partial_from_description
from chefstacks.app.services.extraction.fusion import ConfidenceFusionEngine
from chefstacks.app.services.extraction.models import (
    ExtractionDebug,
    ExtractionResult,
    FusedRecipe,
    PartialRecipe,
    PreflightResult,
    SourceKind,
    SourceURL,
    VideoMetadata,
)
from chefstacks.app.services.extraction.preflight import MetadataProvider, PreflightClassifier
from chefstacks.app.services.extraction.url_routing import classify_url
from chefstacks.app.services.extraction.video_client import VideoExtractionClient
from chefstacks.app.services.extraction.web_extractor import WebExtractor

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "invalid_url": 400,
    "preflight_rejected": 400,
    "parse_degraded": 422,
    "cancelled": 499,
    "upload_failed": 502,
    "invalid_response": 502,
    "transport_error": 502,
    "fetch_failed": 502,
    "timed_out": 504,
}


def status_for(code: Optional[str]) -> int:
    if code is None:
        return 200
    return ERROR_STATUS.get(code, 500)


def _is_degraded(recipe: FusedRecipe) -> bool:
    return not recipe.ingredients and not recipe.steps


class ExtractionOrchestrator:
    def __init__(
        self,
        settings: Settings,
        web_extractor: Optional[WebExtractor] = None,
        video_client: Optional[VideoExtractionClient] = None,
        preflight: Optional[PreflightClassifier] = None,
        fusion: Optional[ConfidenceFusionEngine] = None,
        metadata_provider: Optional[MetadataProvider] = None,
    ):
        self.settings = settings
        self.fusion = fusion or ConfidenceFusionEngine()
        self.web_extractor = web_extractor or WebExtractor(settings, fusion=self.fusion)
        self.video_client = video_client or VideoExtractionClient(settings)
        self.preflight_classifier = preflight or PreflightClassifier(settings)
        self.metadata_provider = metadata_provider or self.preflight_classifier.metadata_provider

    async def _metadata(self, source: SourceURL) -> Optional[VideoMetadata]:
        if source.kind is not SourceKind.YOUTUBE:
            return None
        try:
            return await self.metadata_provider.fetch(source)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Metadata lookup failed for %s: %s", source.url, exc)
            return None

    async def preflight(self, url: str) -> PreflightResult:
        """Run only the gate. Raises InvalidURL for malformed or non-video URLs."""
        source = classify_url(url)
        if not source.kind.is_video:
            raise InvalidURL("Preflight only applies to video URLs.", details={"url": url})
        metadata = await self._metadata(source)
        return await self.preflight_classifier.check(source, metadata)

    async def extract(
        self,
        url: str,
        skip_preflight: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> ExtractionResult:
        """Never raises for pipeline failures; they come back as ``success=False``."""
        source: Optional[SourceURL] = None
        preflight: Optional[PreflightResult] = None
        try:
            source = classify_url(url)
            logger.info("Extracting %s as %s", source.url, source.kind.value)
            if source.kind.is_video:
                metadata = await self._metadata(source)
                if skip_preflight:
                    logger.info("Preflight skipped by caller for %s", source.url)
                else:
                    preflight = await self._gate(source, metadata)
                recipe, warnings = await self._extract_video(source, metadata, preflight, cancel)
            else:
                recipe, warnings = await self._extract_web(source, cancel)
        except PreflightRejected as exc:
            logger.info("Preflight rejected %s: %s", url, exc.message)
            return ExtractionResult(
                success=False,
                source_kind=source.kind if source else None,
                error_code=exc.code,
                error_message=exc.message,
                status_code=status_for(exc.code),
                preflight=exc.preflight,
                override_available=exc.override_available,
            )
        except ExtractionError as exc:
            logger.warning("Extraction failed for %s: %s", url, exc)
            return ExtractionResult(
                success=False,
                source_kind=source.kind if source else None,
                error_code=exc.code,
                error_message=exc.message,
                status_code=status_for(exc.code),
                preflight=preflight,
                details=exc.details,
            )

        if _is_degraded(recipe):
            logger.warning("No layer produced ingredients or steps for %s", url)
            return ExtractionResult(
                success=False,
                recipe=recipe,
                source_kind=source.kind,
                error_code="parse_degraded",
                error_message="We couldn't find ingredients or steps for this recipe.",
                status_code=status_for("parse_degraded"),
                preflight=preflight,
                warnings=warnings,
            )
        return ExtractionResult(
            success=True,
            recipe=recipe,
            source_kind=source.kind,
            status_code=200,
            preflight=preflight,
            warnings=warnings,
        )

    @staticmethod
    def _check_cancel(cancel: Optional[asyncio.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise ExtractionCancelled("The extraction was cancelled.")

    async def _extract_web(self, source: SourceURL, cancel: Optional[asyncio.Event]):
        self._check_cancel(cancel)
        recipe = await self.web_extractor.extract(source.url)
        self._check_cancel(cancel)
        return recipe, []

    async def _gate(self, source: SourceURL, metadata: Optional[VideoMetadata]) -> PreflightResult:
        preflight = await self.preflight_classifier.check(source, metadata)
        if not preflight.pass_:
            raise PreflightRejected(
                preflight.userMessage.description,
                preflight,
                override_available=preflight.allowOverride,
            )
        return preflight

    async def _extract_video(
        self,
        source: SourceURL,
        metadata: Optional[VideoMetadata],
        preflight: Optional[PreflightResult],
        cancel: Optional[asyncio.Event],
    ):
        warnings: List[str] = []
        if preflight is not None and preflight.costEstimate and preflight.costEstimate.warningMessage:
            warnings.append(preflight.costEstimate.warningMessage)

        self._check_cancel(cancel)
        video = await self.video_client.extract(source, cancel=cancel)

        partials: List[PartialRecipe] = [video.partial]
        attempts = [f"memories-ai:{video.prompt_version}"]
        notes = None
        if metadata is not None and metadata.description:
            attempts.append("author_notes")
            notes = partial_from_description(metadata.description)
            if notes is not None:
                partials.append(notes)

        debug = ExtractionDebug(
            attempts=attempts,
            usedNotes=bool(notes is not None and not notes.is_empty()),
        )
        recipe = self.fusion.fuse(
            partials,
            title=metadata.title if metadata else None,
            source_url=source.url,
            image=video.thumbnail_url or (metadata.thumbnail_url if metadata else None),
            debug=debug,
        )
        return recipe, warnings
