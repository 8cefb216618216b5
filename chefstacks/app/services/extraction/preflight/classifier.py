"""Cheap recipe-likelihood gate run before any video processing.

The score is the sum of independent checks (category, captions, topics,
recipe patterns, anti-signals and the optional transcript sniff and tiny
classifier). Duration is a veto, not a term of the sum: a video outside the
admissible range never passes and cannot be overridden.
"""

import asyncio
import logging
from typing import Awaitable, Optional, Protocol, TypeVar

from chefstacks.app.core.config import Settings
from chefstacks.app.services.extraction.errors import InvalidURL
from chefstacks.app.services.extraction.models import (
    ChecksBreakdown,
    ClassifierVerdict,
    PreflightResult,
    SourceKind,
    SourceURL,
    TranscriptSniff,
    VideoMetadata,
)
from chefstacks.app.services.extraction.preflight.checks import (
    check_caption,
    check_category,
    check_duration,
    estimate_cost,
    text_of,
)
from chefstacks.app.services.extraction.preflight.messages import user_message
from chefstacks.app.services.extraction.preflight.metadata import (
    MetadataProvider,
    TranscriptSource,
    YouTubeMetadataProvider,
)
from chefstacks.app.services.extraction.preflight.signals import (
    check_anti_signals,
    check_patterns,
    check_topics,
    primary_anti_kind,
    sniff_transcript,
    url_hint_text,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLASSIFIER_DESCRIPTION_CHARS = 800

RECIPE_INDICATORS = (
    "ingredients",
    "recipe",
    "cook",
    "bake",
    "mix",
    "stir",
    "cup",
    "tablespoon",
    "teaspoon",
    "preheat",
    "oven",
    "pan",
    "bowl",
    "minutes",
    "degrees",
)
NON_RECIPE_INDICATORS = ("mukbang", "vlog", "reaction", "prank", "trailer", "highlights", "asmr")


class TinyClassifier(Protocol):
    async def classify(self, text: str) -> ClassifierVerdict:
        ...


class RuleBasedTinyClassifier:
    """Keyword vote: three recipe indicators and no non-recipe indicator."""

    async def classify(self, text: str) -> ClassifierVerdict:
        text = (text or "").lower()
        positives = sum(1 for word in RECIPE_INDICATORS if word in text)
        negatives = sum(1 for word in NON_RECIPE_INDICATORS if word in text)
        is_recipe = positives >= 3 and negatives == 0
        return ClassifierVerdict(isRecipe=is_recipe, confidence=0.8 if is_recipe else 0.2)


class PreflightClassifier:
    def __init__(
        self,
        settings: Settings,
        metadata_provider: Optional[MetadataProvider] = None,
        transcript_source: Optional[TranscriptSource] = None,
        tiny_classifier: Optional[TinyClassifier] = None,
    ):
        self.settings = settings
        self.metadata_provider = metadata_provider or YouTubeMetadataProvider(settings)
        self.transcript_source = transcript_source
        self.tiny_classifier = tiny_classifier or RuleBasedTinyClassifier()

    async def _time_boxed(self, label: str, awaitable: Awaitable[T], timeout: float) -> Optional[T]:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            logger.info("Preflight %s timed out after %.1fs; skipping", label, timeout)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Preflight %s failed; skipping: %s", label, exc)
        return None

    async def _metadata(self, source: SourceURL) -> Optional[VideoMetadata]:
        if source.kind is not SourceKind.YOUTUBE:
            return None
        try:
            return await self.metadata_provider.fetch(source)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Metadata provider failed for %s: %s", source.url, exc)
            return None

    def _thresholds(self, source: SourceURL):
        if source.kind is SourceKind.YOUTUBE:
            return self.settings.preflight_pass_threshold, self.settings.preflight_borderline_threshold
        return (
            self.settings.preflight_short_form_pass_threshold,
            self.settings.preflight_short_form_borderline_threshold,
        )

    async def _sniff(self, source: SourceURL) -> Optional[TranscriptSniff]:
        if not self.settings.preflight_transcript_sniff_enabled or self.transcript_source is None:
            return None
        excerpt = await self._time_boxed(
            "transcript sniff",
            self.transcript_source.excerpt(source),
            self.settings.preflight_transcript_timeout_seconds,
        )
        if not excerpt:
            return None
        return sniff_transcript(excerpt, self.settings.preflight_transcript_bucket_bonus)

    async def _classify(self, text: str, has_anti_signals: bool) -> Optional[ClassifierVerdict]:
        if not self.settings.preflight_tiny_classifier_enabled:
            return None
        verdict = await self._time_boxed(
            "tiny classifier",
            self.tiny_classifier.classify(text),
            self.settings.preflight_tiny_classifier_timeout_seconds,
        )
        if verdict is None:
            return None
        points = round(self.settings.preflight_tiny_classifier_weight * verdict.confidence)
        if not verdict.isRecipe:
            points = -points
        elif has_anti_signals:
            # a positive vote never offsets matched anti-signals
            points = 0
        return verdict.model_copy(update={"score": points})

    async def check(
        self, source: SourceURL, metadata: Optional[VideoMetadata] = None
    ) -> PreflightResult:
        if not source.kind.is_video:
            raise InvalidURL("Preflight only applies to video URLs.", details={"url": source.url})

        if metadata is None:
            metadata = await self._metadata(source)
        settings = self.settings

        if metadata is not None:
            text = text_of(metadata.title, metadata.description)
            classifier_text = text_of(
                metadata.title, metadata.description[:CLASSIFIER_DESCRIPTION_CHARS]
            )
            topic_categories = metadata.topic_categories
        else:
            text = classifier_text = url_hint_text(source.url)
            topic_categories = []

        checks = ChecksBreakdown(
            duration=check_duration(metadata.duration_seconds if metadata else None, settings),
            category=check_category(metadata.category_id if metadata else None, settings),
            caption=check_caption(metadata.has_caption if metadata else False, settings),
            topic=check_topics(
                text,
                topic_categories,
                weight=settings.preflight_topic_weight,
                cap=settings.preflight_topic_cap,
            ),
            patterns=check_patterns(text, settings.preflight_pattern_cap),
            antiSignals=check_anti_signals(text),
        )
        score = (
            checks.category.score
            + checks.caption.score
            + checks.topic.score
            + checks.patterns.score
            + checks.antiSignals.score
        )

        sniff = await self._sniff(source)
        if sniff is not None:
            score += sniff.score
        verdict = await self._classify(classifier_text, bool(checks.antiSignals.signals))
        if verdict is not None:
            score += verdict.score

        pass_threshold, borderline_threshold = self._thresholds(source)
        duration_ok = checks.duration.pass_
        passed = duration_ok and score >= pass_threshold
        borderline = duration_ok and not passed and score >= borderline_threshold

        if not duration_ok:
            reason = checks.duration.reason
        elif passed:
            reason = f"Recipe signals found (score {score} >= {pass_threshold})"
        elif borderline:
            reason = f"Weak recipe signals (score {score} < {pass_threshold})"
        else:
            reason = f"No clear recipe signals (score {score} < {borderline_threshold})"

        result = PreflightResult(
            pass_=passed,
            score=score,
            reason=reason,
            borderline=borderline,
            allowOverride=borderline,
            checks=checks,
            transcriptSniff=sniff,
            tinyClassifier=verdict,
            costEstimate=estimate_cost(checks.duration.costTier, score),
            userMessage=user_message(
                passed=passed,
                borderline=borderline,
                score=score,
                checks=checks,
                anti_kind=primary_anti_kind(checks.antiSignals.signals),
                borderline_threshold=borderline_threshold,
            ),
        )
        logger.info(
            "Preflight %s: pass=%s borderline=%s score=%d (%s)",
            source.url,
            result.pass_,
            result.borderline,
            result.score,
            reason,
        )
        logger.debug("Preflight breakdown for %s: %s", source.url, checks.model_dump(by_alias=True))
        return result
