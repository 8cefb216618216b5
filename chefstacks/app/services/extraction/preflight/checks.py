from typing import Optional

from chefstacks.app.core.config import Settings
from chefstacks.app.services.extraction.models import (
    ChecksCaption,
    ChecksCategory,
    ChecksDuration,
    CostEstimate,
)

COST_TIERS = ("low", "moderate", "high", "very_high")

_TIER_ESTIMATES = {
    "low": (60, None),
    "moderate": (90, None),
    "high": (120, "Long video - moderate to high processing cost"),
    "very_high": (180, "Very long video - high processing cost expected"),
}

LOW_CONFIDENCE_SCORE = 2
LOW_CONFIDENCE_EXTRA_SECONDS = 30


def check_duration(duration: Optional[int], settings: Settings) -> ChecksDuration:
    if duration is None:
        return ChecksDuration(pass_=True, value=None, reason="Duration unavailable", costTier="low")
    if duration < settings.preflight_min_duration_seconds:
        return ChecksDuration(
            pass_=False,
            value=duration,
            reason=f"Too short (< {settings.preflight_min_duration_seconds}s)",
            costTier="low",
        )
    if duration > settings.preflight_max_duration_seconds:
        return ChecksDuration(
            pass_=False,
            value=duration,
            reason=f"Too long (> {round(settings.preflight_max_duration_seconds / 60)}min)",
            costTier="very_high",
        )
    if duration > settings.preflight_warning_duration_seconds:
        return ChecksDuration(
            value=duration,
            reason=f"Very long video - high processing cost ({round(duration / 60)}min)",
            costTier="high",
        )
    if duration > settings.preflight_moderate_duration_seconds:
        return ChecksDuration(
            value=duration,
            reason=f"Long video - moderate processing cost ({round(duration / 60)}min)",
            costTier="moderate",
        )
    return ChecksDuration(value=duration, reason="Duration OK", costTier="low")


def check_category(category_id: Optional[str], settings: Settings) -> ChecksCategory:
    if not category_id:
        return ChecksCategory()
    weight = settings.preflight_category_weight
    if category_id in settings.preflight_food_category_ids:
        return ChecksCategory(score=weight, categoryId=category_id)
    if category_id in settings.preflight_negative_category_ids:
        return ChecksCategory(score=-weight, categoryId=category_id)
    return ChecksCategory(score=0, categoryId=category_id)


def check_caption(has_caption: Optional[bool], settings: Settings) -> ChecksCaption:
    has = bool(has_caption)
    return ChecksCaption(score=settings.preflight_caption_weight if has else 0, hasCaption=has)


def estimate_cost(cost_tier: str, score: int) -> CostEstimate:
    """Processing cost from the duration tier, bumped one tier on low confidence."""
    tier = cost_tier if cost_tier in COST_TIERS else "low"
    seconds, warning = _TIER_ESTIMATES[tier]
    if score < LOW_CONFIDENCE_SCORE:
        tier = COST_TIERS[min(COST_TIERS.index(tier) + 1, len(COST_TIERS) - 1)]
        seconds += LOW_CONFIDENCE_EXTRA_SECONDS
        warning = warning or "Low recipe confidence - processing may be expensive"
    return CostEstimate(tier=tier, estimatedProcessingTime=seconds, warningMessage=warning)


def text_of(*parts: Optional[str]) -> str:
    return "\n".join(p for p in parts if p)

