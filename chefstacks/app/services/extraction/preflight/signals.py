"""Text signals scored by the preflight gate.

Every matcher works on lower-cased text and reports what it found by name so
the breakdown stays explainable.
"""

import re
from typing import Dict, Iterable, List, NamedTuple, Optional, Pattern, Tuple
from urllib.parse import unquote, urlparse

from chefstacks.app.services.extraction.models import (
    ChecksAntiSignals,
    ChecksPatterns,
    ChecksTopic,
    TranscriptSniff,
)

TRANSCRIPT_EXCERPT_CHARS = 2000

TOPIC_KEYWORDS = (
    "recipe",
    "recipes",
    "cooking",
    "baking",
    "how to make",
    "homemade",
    "from scratch",
    "kitchen",
    "chef",
    "dinner",
    "lunch",
    "breakfast",
    "dessert",
    "meal prep",
    "one pot",
    "sheet pan",
    "air fryer",
)

FOOD_TOPIC_SUFFIXES = ("/Food", "/Cooking")


class PatternRule(NamedTuple):
    name: str
    regex: Pattern
    weight: int


_UNITS = r"(?:cups?|tbsps?|tablespoons?|tsps?|teaspoons?|g|grams?|kg|ml|l|oz|ounces?|lbs?|pounds?)"

PATTERN_RULES: Tuple[PatternRule, ...] = (
    # strong
    PatternRule("quantities", re.compile(rf"\b\d+(?:[./]\d+)?\s?{_UNITS}\b"), 2),
    PatternRule("temperature", re.compile(r"\d+\s?°\s?[fc]\b|\bpreheat(?:ed)?\b|\b\d+\s?degrees\b"), 2),
    PatternRule("cooking_time", re.compile(r"\b\d+\s?(?:mins?|minutes?|hrs?|hours?)\b"), 2),
    PatternRule("ingredient_list", re.compile(r"\bingredients?\s*:|\bingredients?\s*\n|\bingredient list\b"), 2),
    # medium
    PatternRule("step_markers", re.compile(r"^\s*(?:\d+[.)]|step \d+)\s+", re.M), 1),
    PatternRule("bullet_lines", re.compile(r"^\s*[-*•▪]\s+\w", re.M), 1),
    PatternRule("inline_timestamps", re.compile(r"(?:^|\s)@?\d{1,2}:\d{2}(?::\d{2})?\b"), 1),
    PatternRule("preparation", re.compile(r"\b(?:chop|dice|slice|mince|grate|peel|drain|knead|marinate)\w*\b"), 1),
    PatternRule("serving_info", re.compile(r"\b(?:serves|servings?|portions?|yields?)\b"), 1),
)

_CONTEXTUAL_WEIGHT = 1


def _contextual_patterns(text: str) -> List[str]:
    found = []
    if "how to" in text and re.search(r"\b(?:cook|make|bake|prepare)\b", text):
        found.append("cooking_tutorial_pattern")
    if "step by step" in text or "step-by-step" in text:
        found.append("step_by_step_pattern")
    if re.search(r"\brecipe\b", text) and re.search(r"\b(?:for|easy|best|homemade)\b", text):
        found.append("recipe_title_pattern")
    return found


class AntiSignal(NamedTuple):
    phrase: str
    weight: int
    # gaming, music, dance, fashion, vlog, reaction or other
    kind: str


def _signals(kind: str, weight: int, phrases: Iterable[str]) -> List[AntiSignal]:
    return [AntiSignal(p, weight, kind) for p in phrases]


ANTI_SIGNALS: Tuple[AntiSignal, ...] = tuple(
    _signals("other", -3, ("mukbang", "asmr eating", "eating challenge", "prank", "social experiment", "movie trailer", "trailer", "funny moments", "compilation"))
    + _signals("gaming", -3, ("gaming", "gameplay", "let's play", "walkthrough", "speedrun"))
    + _signals("music", -3, ("music video", "official video", "lyrics", "cover song", "remix"))
    + _signals("dance", -3, ("dance challenge", "choreography", "dancing"))
    + _signals("fashion", -3, ("makeup tutorial", "makeup", "skincare", "outfit", "fashion haul"))
    + _signals("vlog", -3, ("daily vlog", "travel vlog", "vlog"))
    + _signals("reaction", -3, ("reaction video", "reacting to", "first time watching"))
    + _signals("other", -2, ("unboxing", "storytime", "story time", "podcast", "interview", "documentary", "room tour", "house tour", "workout"))
    + _signals("vlog", -2, ("day in my life", "lifestyle"))
    + _signals("fashion", -2, ("haul", "beauty"))
    + _signals("other", -1, ("giveaway", "sponsored", "live stream", "livestream", "trending"))
)

_CONTEXTUAL_ANTI_WEIGHT = -2


def _phrase_regex(phrase: str) -> Pattern:
    return re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)")


_ANTI_REGEXES: Dict[str, Pattern] = {s.phrase: _phrase_regex(s.phrase) for s in ANTI_SIGNALS}
_TOPIC_REGEXES: Dict[str, Pattern] = {k: _phrase_regex(k) for k in TOPIC_KEYWORDS}


def _contextual_anti_signals(text: str) -> List[AntiSignal]:
    found = []
    if re.search(r"\bchallenge\b", text) and not re.search(r"\b(?:recipe|cooking)\b", text):
        found.append(AntiSignal("challenge_content", _CONTEXTUAL_ANTI_WEIGHT, "other"))
    if re.search(r"\bgames?\b", text) and re.search(r"\b(?:play|playing|stream|streaming)\b", text):
        found.append(AntiSignal("gaming_content", _CONTEXTUAL_ANTI_WEIGHT, "gaming"))
    if re.search(r"\b(?:song|music)\b", text) and re.search(r"\b(?:cover|remix|lyrics|album)\b", text):
        found.append(AntiSignal("music_content", _CONTEXTUAL_ANTI_WEIGHT, "music"))
    if re.search(r"\breact(?:s|ing)?\b", text) and re.search(r"\b(?:first time|watching)\b", text):
        found.append(AntiSignal("reaction_content", _CONTEXTUAL_ANTI_WEIGHT, "reaction"))
    return found


def match_anti_signals(text: str) -> List[AntiSignal]:
    text = (text or "").lower()
    matched = [s for s in ANTI_SIGNALS if _ANTI_REGEXES[s.phrase].search(text)]
    return matched + _contextual_anti_signals(text)


def check_anti_signals(text: str) -> ChecksAntiSignals:
    matched = match_anti_signals(text)
    return ChecksAntiSignals(
        score=sum(s.weight for s in matched),
        signals=[s.phrase for s in matched],
    )


def primary_anti_kind(signals: List[str]) -> Optional[str]:
    """Content kind of the first reported anti-signal."""
    if not signals:
        return None
    kinds = {s.phrase: s.kind for s in ANTI_SIGNALS}
    kinds.update(
        gaming_content="gaming",
        music_content="music",
        reaction_content="reaction",
    )
    return kinds.get(signals[0], "other")


def check_patterns(text: str, cap: int) -> ChecksPatterns:
    text = (text or "").lower()
    names: List[str] = []
    score = 0
    for rule in PATTERN_RULES:
        if rule.regex.search(text):
            names.append(rule.name)
            score += rule.weight
    contextual = _contextual_patterns(text)
    names.extend(contextual)
    score += len(contextual) * _CONTEXTUAL_WEIGHT
    return ChecksPatterns(score=min(score, cap), hits=len(names), patterns=names)


def topic_hits(text: str, topic_categories: Iterable[str] = ()) -> List[str]:
    text = (text or "").lower()
    hits = [k for k in TOPIC_KEYWORDS if _TOPIC_REGEXES[k].search(text)]
    for topic in topic_categories:
        if topic.endswith(FOOD_TOPIC_SUFFIXES) and topic not in hits:
            hits.append(topic)
    return hits


def check_topics(
    text: str, topic_categories: Iterable[str], *, weight: int, cap: int
) -> ChecksTopic:
    hits = topic_hits(text, topic_categories)
    return ChecksTopic(score=min(len(hits), cap) * weight, topics=hits)


def url_hint_text(url: str) -> str:
    """Words from a short-form video URL: handle, path segments and hashtags."""
    parsed = urlparse(url)
    parts = [unquote(p) for p in parsed.path.split("/") if p]
    words = []
    for part in parts:
        if part.isdigit():
            continue
        words.append(re.sub(r"[@_\-.]+", " ", part))
    if parsed.fragment:
        words.append(unquote(parsed.fragment))
    for tag in re.findall(r"#(\w+)", unquote(parsed.query)):
        words.append(tag)
    return " ".join(words).lower()


TRANSCRIPT_BUCKETS: Dict[str, Pattern] = {
    "quantities": re.compile(rf"\b\d+(?:[./]\d+)?\s?{_UNITS}\b"),
    "cookingVerbs": re.compile(r"\b(?:add|stir|whisk|bake|fry|saute|sauté|simmer|boil|chop|mix|fold|season|roast)\b"),
    "timesTemps": re.compile(r"\b\d+\s?(?:mins?|minutes?|hours?)\b|\b\d+\s?°\s?[fc]?\b|\b\d+\s?degrees\b"),
}


def sniff_transcript(excerpt: str, bonus: int) -> TranscriptSniff:
    text = (excerpt or "")[:TRANSCRIPT_EXCERPT_CHARS].lower()
    buckets: Dict[str, List[str]] = {}
    for name, regex in TRANSCRIPT_BUCKETS.items():
        found = [m.group(0) for m in regex.finditer(text)]
        if found:
            # keep the first few distinct tokens for the breakdown
            buckets[name] = list(dict.fromkeys(found))[:5]
    return TranscriptSniff(score=len(buckets) * bonus, buckets=buckets)
