"""Confidence fusion: reconcile per-layer candidates into one recipe.

Resolution is by provenance priority and is all-or-nothing per field: the
highest-priority layer that produced a list section (ingredients, steps, tips)
supplies the whole section, and each scalar (title, servings, image, each time
field) is taken from the highest-priority layer that has it. Values are never
averaged or spliced across layers.

Section confidence = base score of the tier that supplied most of the
section's items + a fixed bonus per other layer that independently produced a
compatible value, clamped to [0, 1]. Empty sections score 0.
"""

import logging
import re
from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from chefstacks.app.services.extraction.ingredient_parser import ingredient_key
from chefstacks.app.services.extraction.models import (
    Chapter,
    ConfidenceScores,
    ExtractionDebug,
    FusedRecipe,
    Ingredient,
    PartialRecipe,
    Provenance,
    Step,
    StepValue,
    Times,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROVENANCE_PRIORITY: List[Provenance] = [
    Provenance.STRUCTURED,
    Provenance.MEMORIES_AI,
    Provenance.NOTES,
    Provenance.PARSED,
    Provenance.TRANSCRIPT,
]

TIER_BASE_SCORE: Dict[Provenance, float] = {
    Provenance.STRUCTURED: 0.95,
    Provenance.MEMORIES_AI: 0.85,
    Provenance.NOTES: 0.75,
    Provenance.PARSED: 0.55,
    Provenance.TRANSCRIPT: 0.45,
}

AGREEMENT_BONUS = 0.05
LIST_AGREEMENT_RATIO = 0.5
DEFAULT_TITLE = "Untitled Recipe"
TIME_FIELDS = ("prep_min", "cook_min", "total_min")


def priority_of(provenance: Provenance) -> int:
    return PROVENANCE_PRIORITY.index(provenance)


def _clamp(value: float) -> float:
    return round(max(0.0, min(1.0, value)), 4)


def _step_key(step: Step) -> str:
    words = re.sub(r"[^a-z0-9 ]", " ", step.value.text.lower()).split()
    return " ".join(words[:4])


def _lists_agree(a: Iterable[str], b: Iterable[str]) -> bool:
    set_a = {k for k in a if k}
    set_b = {k for k in b if k}
    if not set_a or not set_b:
        return False
    overlap = len(set_a & set_b)
    return overlap >= LIST_AGREEMENT_RATIO * min(len(set_a), len(set_b))


def _majority_tier(provenances: Sequence[Provenance]) -> Optional[Provenance]:
    if not provenances:
        return None
    counts = Counter(provenances)
    # ties resolve toward the higher-priority tier
    return min(counts, key=lambda p: (-counts[p], priority_of(p)))


class ConfidenceFusionEngine:
    """Deterministic, stateless merge of ``PartialRecipe`` candidates."""

    def __init__(
        self,
        base_scores: Optional[Dict[Provenance, float]] = None,
        agreement_bonus: float = AGREEMENT_BONUS,
    ):
        self.base_scores = dict(base_scores or TIER_BASE_SCORE)
        self.agreement_bonus = agreement_bonus

    def _score(self, tier: Optional[Provenance], agreeing_layers: int) -> float:
        if tier is None:
            return 0.0
        return _clamp(self.base_scores[tier] + self.agreement_bonus * agreeing_layers)

    def _pick_section(
        self,
        ranked: Sequence[PartialRecipe],
        getter: Callable[[PartialRecipe], List[T]],
    ) -> Optional[PartialRecipe]:
        for partial in ranked:
            if getter(partial):
                return partial
        return None

    def _pick_scalar(self, ranked: Sequence[PartialRecipe], getter: Callable[[PartialRecipe], Optional[T]]):
        for partial in ranked:
            value = getter(partial)
            if value not in (None, ""):
                return value, partial.provenance
        return None, None

    def _ingredients(self, ranked: Sequence[PartialRecipe]):
        winner = self._pick_section(ranked, lambda p: p.ingredients)
        if winner is None:
            return [], 0.0
        items: List[Ingredient] = [i.model_copy(deep=True) for i in winner.ingredients]
        keys = [ingredient_key(i.value) for i in items]
        agreeing = sum(
            1
            for p in ranked
            if p is not winner
            and p.ingredients
            and _lists_agree(keys, (ingredient_key(i.value) for i in p.ingredients))
        )
        tier = _majority_tier([i.from_ for i in items])
        return items, self._score(tier, agreeing)

    def _steps(self, ranked: Sequence[PartialRecipe]):
        winner = self._pick_section(ranked, lambda p: p.steps)
        if winner is None:
            return [], 0.0
        steps: List[Step] = []
        for order, step in enumerate(winner.steps, start=1):
            value = step.value.model_copy(update={"order": order})
            steps.append(Step(value=value, from_=step.from_, ts=step.ts))
        keys = [_step_key(s) for s in steps]
        agreeing = sum(
            1
            for p in ranked
            if p is not winner and p.steps and _lists_agree(keys, (_step_key(s) for s in p.steps))
        )
        tier = _majority_tier([s.from_ for s in steps])
        return steps, self._score(tier, agreeing)

    def _times(self, ranked: Sequence[PartialRecipe]):
        resolved: Dict[str, Optional[int]] = {}
        supplier: Dict[str, Provenance] = {}
        for field in TIME_FIELDS:
            value, provenance = self._pick_scalar(ranked, lambda p, f=field: getattr(p.times, f))
            resolved[field] = value
            if provenance is not None:
                supplier[field] = provenance
        times = Times(**resolved)
        if times.is_empty():
            return times, 0.0
        # a layer agrees when it independently repeats a value another layer supplied
        agreeing = sum(
            1
            for partial in ranked
            if any(
                field in supplier
                and supplier[field] != partial.provenance
                and getattr(partial.times, field) == resolved[field]
                for field in TIME_FIELDS
            )
        )
        return times, self._score(_majority_tier(list(supplier.values())), agreeing)

    def fuse(
        self,
        partials: Sequence[PartialRecipe],
        *,
        title: Optional[str] = None,
        source_url: Optional[str] = None,
        image: Optional[str] = None,
        debug: Optional[ExtractionDebug] = None,
    ) -> FusedRecipe:
        """Merge candidates. ``title``/``image`` are fallbacks when no layer has one."""
        ranked = sorted(
            (p for p in partials if p is not None),
            key=lambda p: priority_of(p.provenance),
        )

        ingredients, ingredients_conf = self._ingredients(ranked)
        steps, steps_conf = self._steps(ranked)
        times, times_conf = self._times(ranked)

        tips_owner = self._pick_section(ranked, lambda p: p.tips)
        tips = list(tips_owner.tips) if tips_owner else []
        tips_conf = self._score(tips_owner.provenance, 0) if tips_owner else None

        chapters_owner = self._pick_section(ranked, lambda p: p.chapters)
        chapters: List[Chapter] = list(chapters_owner.chapters) if chapters_owner else []

        fused_title, _ = self._pick_scalar(ranked, lambda p: p.title)
        servings, _ = self._pick_scalar(ranked, lambda p: p.servings)
        fused_image, _ = self._pick_scalar(ranked, lambda p: p.image)
        author, _ = self._pick_scalar(ranked, lambda p: p.author)

        debug = (debug or ExtractionDebug()).model_copy(deep=True)
        if debug.layer == "none" and ranked:
            contributing = [p for p in ranked if not p.is_empty()]
            if contributing:
                debug.layer = contributing[0].provenance.value

        recipe = FusedRecipe(
            title=fused_title or title or DEFAULT_TITLE,
            source_url=source_url,
            author=author,
            ingredients=ingredients,
            steps=steps,
            times=times,
            servings=servings,
            tips=tips,
            chapters=chapters,
            confidence=ConfidenceScores(
                ingredients=ingredients_conf,
                steps=steps_conf,
                times=times_conf,
                pro_tips=tips_conf,
            ),
            debug=debug,
            image=fused_image or image,
        )
        logger.info(
            "Fused %d layers: ingredients=%d (%.2f) steps=%d (%.2f) times=%.2f",
            len(ranked),
            len(ingredients),
            ingredients_conf,
            len(steps),
            steps_conf,
            times_conf,
        )
        return recipe


def attach_chapters(steps: List[Step], chapters: Sequence[Chapter]) -> List[Step]:
    """Label each timestamped step with the chapter it falls in."""
    if not chapters:
        return steps
    ordered = sorted(chapters, key=lambda c: c.timestamp)
    labelled: List[Step] = []
    for step in steps:
        title = None
        if step.ts is not None:
            for chapter in ordered:
                if chapter.timestamp <= step.ts:
                    title = chapter.title
                else:
                    break
        value: StepValue = step.value.model_copy(update={"chapter": title})
        labelled.append(Step(value=value, from_=step.from_, ts=step.ts))
    return labelled
