import asyncio

import httpx
import pytest

from chefstacks.app.core.config import Settings
from chefstacks.app.services.extraction.models import ClassifierVerdict, VideoMetadata
from chefstacks.app.services.extraction.preflight import PreflightClassifier, YouTubeMetadataProvider
from chefstacks.app.services.extraction.preflight.checks import estimate_cost
from chefstacks.app.services.extraction.preflight.signals import check_anti_signals, sniff_transcript
from chefstacks.app.services.extraction.url_routing import classify_url

YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

RealAsyncClient = httpx.AsyncClient


class NoMetadata:
    async def fetch(self, source):
        return None


def make_metadata(**overrides):
    data = dict(
        duration_seconds=480,
        category_id="26",
        has_caption=True,
        title="Homemade Pasta Recipe",
        description="",
    )
    data.update(overrides)
    return VideoMetadata(**data)


def classifier(settings, **kwargs):
    kwargs.setdefault("metadata_provider", NoMetadata())
    return PreflightClassifier(settings, **kwargs)


@pytest.mark.asyncio
async def test_clear_recipe_signals_pass(settings):
    result = await classifier(settings).check(classify_url(YOUTUBE_URL), make_metadata())

    assert result.checks.duration.pass_
    assert result.checks.category.score == 1
    assert result.checks.caption.score == 1
    assert result.checks.topic.topics == ["recipe", "homemade"]
    assert result.checks.patterns.hits == 1
    assert result.checks.antiSignals.signals == []
    assert result.score >= settings.preflight_pass_threshold
    assert result.pass_ is True
    assert result.borderline is False
    assert result.userMessage.title.endswith("Looks Like a Recipe")
    # 480s is past the moderate-cost mark
    assert result.costEstimate.tier == "moderate"
    assert result.costEstimate.estimatedProcessingTime == 90


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "duration,tier",
    [(240, "low"), (300, "low"), (301, "moderate"), (601, "high")],
)
async def test_cost_tier_follows_duration(settings, duration, tier):
    metadata = make_metadata(duration_seconds=duration)
    result = await classifier(settings).check(classify_url(YOUTUBE_URL), metadata)

    assert result.pass_ is True
    assert result.checks.duration.costTier == tier
    assert result.costEstimate.tier == tier


@pytest.mark.asyncio
async def test_weak_signals_are_borderline_and_overridable(settings):
    metadata = make_metadata(category_id="22", has_caption=False, title="Dinner ideas")
    result = await classifier(settings).check(classify_url(YOUTUBE_URL), metadata)

    assert settings.preflight_borderline_threshold <= result.score < settings.preflight_pass_threshold
    assert result.pass_ is False
    assert result.borderline is True
    assert result.allowOverride is True
    assert result.userMessage.canRetry is True
    assert 1 <= len(result.userMessage.suggestions) <= 3


@pytest.mark.asyncio
@pytest.mark.parametrize("duration,title", [(5, "Too Short"), (5000, "Too Long")])
async def test_duration_veto_dominates_score(settings, duration, title):
    metadata = make_metadata(
        duration_seconds=duration,
        description="Ingredients:\n- 2 cups flour\n- 1 tsp salt\nPreheat the oven. Bake 20 minutes. Serves 4.",
    )
    result = await classifier(settings).check(classify_url(YOUTUBE_URL), metadata)

    assert result.score >= settings.preflight_pass_threshold
    assert result.pass_ is False
    assert result.borderline is False
    assert result.allowOverride is False
    assert result.userMessage.title.endswith(title)


@pytest.mark.asyncio
async def test_more_anti_signals_never_raise_score(settings):
    base = "Mix the flour in a bowl, preheat the oven and bake for 20 minutes."
    extras = ["", " prank", " prank reaction video", " prank reaction video gameplay", " prank reaction video gameplay podcast"]
    gate = classifier(settings)
    scores = []
    for extra in extras:
        result = await gate.check(classify_url(YOUTUBE_URL), make_metadata(description=base + extra))
        scores.append(result.score)
    assert scores == sorted(scores, reverse=True)
    assert scores[-1] < scores[0]


@pytest.mark.asyncio
async def test_detected_content_type_message(settings):
    metadata = make_metadata(category_id="20", has_caption=False, title="Fortnite gameplay, chill stream")
    result = await classifier(settings).check(classify_url(YOUTUBE_URL), metadata)

    assert result.pass_ is False
    assert result.allowOverride is False
    assert "gameplay" in result.checks.antiSignals.signals
    assert result.userMessage.title.endswith("Gaming Content Detected")


@pytest.mark.asyncio
async def test_missing_metadata_is_zero_contribution(settings):
    class BrokenProvider:
        async def fetch(self, source):
            raise RuntimeError("quota exceeded")

    result = await PreflightClassifier(settings, metadata_provider=BrokenProvider()).check(
        classify_url(YOUTUBE_URL)
    )
    assert result.checks.duration.value is None
    assert result.checks.category.score == 0
    assert result.pass_ is False
    assert result.userMessage.canRetry is True


@pytest.mark.asyncio
async def test_short_form_url_hints(settings):
    gate = classifier(settings)
    cooking = await gate.check(classify_url("https://www.tiktok.com/@chef.recipes/video/7234567890123456789"))
    assert cooking.pass_ is True
    assert "chef" in cooking.checks.topic.topics

    vlog = await gate.check(classify_url("https://www.tiktok.com/@daily.vlog/video/7234567890123456789"))
    assert vlog.pass_ is False
    assert vlog.allowOverride is False
    assert vlog.userMessage.title.endswith("Lifestyle Vlog Detected")


@pytest.mark.asyncio
async def test_slow_tiny_classifier_is_omitted():
    settings = Settings(_env_file=None, PREFLIGHT_TINY_CLASSIFIER_TIMEOUT_SECONDS=0.01)

    class SlowClassifier:
        async def classify(self, text):
            await asyncio.sleep(5)
            return ClassifierVerdict(isRecipe=True, confidence=1.0)

    gate = classifier(settings, tiny_classifier=SlowClassifier())
    result = await gate.check(classify_url(YOUTUBE_URL), make_metadata())
    assert result.tinyClassifier is None
    assert result.pass_ is True


@pytest.mark.asyncio
async def test_transcript_sniff_adds_bucket_bonus():
    settings = Settings(_env_file=None, PREFLIGHT_TRANSCRIPT_SNIFF_ENABLED=True)

    class Transcript:
        async def excerpt(self, source):
            return "Add 2 cups flour and stir, then bake for 20 minutes at 350°F."

    metadata = make_metadata(category_id="22", has_caption=False, title="Dinner ideas")
    without = await classifier(settings).check(classify_url(YOUTUBE_URL), metadata)
    with_sniff = await classifier(settings, transcript_source=Transcript()).check(
        classify_url(YOUTUBE_URL), metadata
    )
    assert without.transcriptSniff is None
    assert set(with_sniff.transcriptSniff.buckets) == {"quantities", "cookingVerbs", "timesTemps"}
    assert with_sniff.score == without.score + 3
    assert with_sniff.pass_ is True


def test_anti_signals_match_whole_words():
    assert check_anti_signals("Grandma's prank-free lasagna").signals == ["prank"]
    assert check_anti_signals("Stir in the pranked cheese").signals == []
    assert check_anti_signals("Ultimate noodle challenge").signals == ["challenge_content"]
    assert check_anti_signals("Cooking challenge: best ramen recipe").signals == []


def test_transcript_excerpt_is_capped():
    excerpt = "x" * 2000 + " add 2 cups flour"
    assert sniff_transcript(excerpt, 1).score == 0


def test_cost_estimate_bumps_tier_on_low_confidence():
    assert estimate_cost("low", 5).tier == "low"
    low_confidence = estimate_cost("low", 1)
    assert low_confidence.tier == "moderate"
    assert low_confidence.estimatedProcessingTime == 90
    assert low_confidence.warningMessage
    assert estimate_cost("very_high", 0).tier == "very_high"


@pytest.mark.asyncio
async def test_youtube_metadata_provider(monkeypatch):
    settings = Settings(_env_file=None, YOUTUBE_API_KEY="yt-key")
    captured = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        captured["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "items": [
                    {
                        "snippet": {
                            "title": "Pasta",
                            "description": "Ingredients below",
                            "categoryId": "26",
                            "channelTitle": "Chef",
                        },
                        "contentDetails": {"duration": "PT8M5S", "caption": "true"},
                        "topicDetails": {"topicCategories": ["https://en.wikipedia.org/wiki/Food"]},
                    }
                ]
            },
        )

    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(httpx, "AsyncClient", lambda *a, **kw: RealAsyncClient(transport=transport))

    metadata = await YouTubeMetadataProvider(settings).fetch(classify_url(YOUTUBE_URL))
    assert captured["params"]["id"] == "dQw4w9WgXcQ"
    assert captured["params"]["part"] == "snippet,contentDetails,topicDetails"
    assert metadata.duration_seconds == 485
    assert metadata.category_id == "26"
    assert metadata.has_caption is True
    assert metadata.topic_categories == ["https://en.wikipedia.org/wiki/Food"]
    assert metadata.thumbnail_url == "https://img.youtube.com/vi/dQw4w9WgXcQ/maxresdefault.jpg"


@pytest.mark.asyncio
async def test_youtube_metadata_provider_failure_returns_none(monkeypatch):
    settings = Settings(_env_file=None, YOUTUBE_API_KEY="yt-key")
    transport = httpx.MockTransport(lambda request: httpx.Response(403, json={"error": "quota"}))
    monkeypatch.setattr(httpx, "AsyncClient", lambda *a, **kw: RealAsyncClient(transport=transport))
    assert await YouTubeMetadataProvider(settings).fetch(classify_url(YOUTUBE_URL)) is None
