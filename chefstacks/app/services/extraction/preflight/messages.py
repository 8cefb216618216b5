"""User-facing copy for every preflight outcome."""

from typing import Optional

from chefstacks.app.services.extraction.models import ChecksBreakdown, UserMessage

_SEARCH_ELSEWHERE = [
    "Try searching for cooking or recipe videos",
    "Look for food channels on YouTube",
    "Check cooking websites for recipe content",
]

_DETECTED = {
    "gaming": ("🎮 Gaming Content Detected", "This appears to be a gaming video, not a cooking recipe."),
    "music": ("🎵 Music Content Detected", "This appears to be a music video, not a cooking recipe."),
    "dance": ("💃 Dance Content Detected", "This appears to be a dance video, not a cooking recipe."),
    "fashion": (
        "💄 Fashion/Beauty Content Detected",
        "This appears to be a fashion or beauty video, not a cooking recipe.",
    ),
    "vlog": ("📱 Lifestyle Vlog Detected", "This appears to be a lifestyle vlog, not a cooking recipe."),
    "reaction": ("👀 Reaction Video Detected", "This appears to be a reaction video, not a cooking recipe."),
}

PASSED = UserMessage(
    title="✅ Looks Like a Recipe",
    description="This video shows clear signs of a cooking recipe. We'll extract the ingredients and steps.",
    suggestions=["Extraction can take a minute or two for longer videos"],
    canRetry=True,
)

TOO_LONG = UserMessage(
    title="📹 Video Too Long",
    description="This video is longer than 20 minutes, which is beyond our processing limit for recipe extraction.",
    suggestions=[
        "Try a shorter cooking video (under 20 minutes)",
        "Look for recipe tutorials or cooking demos",
        "Check if there's a shorter version of this video",
    ],
    canRetry=False,
)

TOO_SHORT = UserMessage(
    title="⏱️ Video Too Short",
    description="This video is too short to contain a complete recipe.",
    suggestions=[
        "Try a longer cooking video",
        "Look for full recipe tutorials",
        "Check cooking channels for complete recipes",
    ],
    canRetry=False,
)

UNCLEAR = UserMessage(
    title="🤔 Unclear Recipe Content",
    description="We couldn't detect clear recipe indicators in this video. It might not be a cooking video.",
    suggestions=[
        "Try a video with clear cooking instructions",
        "Look for videos with ingredient lists or cooking steps",
        "Check if the video title mentions cooking or recipes",
    ],
    canRetry=True,
)

BORDERLINE = UserMessage(
    title="⚠️ Uncertain Recipe Content",
    description="This video might contain a recipe, but we're not completely sure. Processing could be expensive.",
    suggestions=[
        "Try a video with clearer recipe indicators",
        "Look for videos with cooking instructions in the title",
        "Check cooking channels for better recipe content",
    ],
    canRetry=True,
)

NOT_A_RECIPE = UserMessage(
    title="❌ Not a Recipe Video",
    description="This video doesn't appear to contain cooking or recipe content.",
    suggestions=list(_SEARCH_ELSEWHERE),
    canRetry=False,
)


def user_message(
    *,
    passed: bool,
    borderline: bool,
    score: int,
    checks: ChecksBreakdown,
    anti_kind: Optional[str],
    borderline_threshold: int,
) -> UserMessage:
    if passed:
        return PASSED
    if not checks.duration.pass_:
        return TOO_LONG if checks.duration.reason.startswith("Too long") else TOO_SHORT
    if anti_kind is not None:
        if anti_kind in _DETECTED:
            title, description = _DETECTED[anti_kind]
            return UserMessage(
                title=title,
                description=description,
                suggestions=list(_SEARCH_ELSEWHERE),
                canRetry=False,
            )
        return UserMessage(
            title="🚫 Not a Recipe Video",
            description=NOT_A_RECIPE.description,
            suggestions=list(_SEARCH_ELSEWHERE),
            canRetry=False,
        )
    if borderline:
        return BORDERLINE
    if score < borderline_threshold and not checks.patterns.patterns:
        return UNCLEAR
    return NOT_A_RECIPE
