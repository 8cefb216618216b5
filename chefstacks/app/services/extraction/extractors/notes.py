"""Author-notes layer: a section-aware parser for free-text recipe descriptions.

The grammar it understands, line by line:

* a line containing ``RECIPE`` and ``*`` opens the recipe section;
* ``IF USING``, ``MUSIC``, ``DISCLAIMER`` or ``CHAPTERS`` closes it;
* inside the section, ``▪``-prefixed lines are ingredients and lines carrying
  an ``@MM:SS`` (or ``@HH:MM:SS``) marker are steps;
* a ``CHAPTERS`` line opens a chapter list of ``M:SS Title`` lines, closed by
  ``DISCLAIMER`` or "How this content was made".
"""

import logging
import re
from typing import List, Optional

from pydantic import BaseModel, Field

from chefstacks.app.services.extraction.fusion import attach_chapters
from chefstacks.app.services.extraction.ingredient_parser import (
    parse_ingredient_line,
    tag_ingredients,
)
from chefstacks.app.services.extraction.models import (
    Chapter,
    FetchedPage,
    PartialRecipe,
    Provenance,
    Step,
    StepValue,
    Times,
)
from chefstacks.app.services.extraction.parsing_utils import (
    clean_text,
    parse_labelled_minutes,
    parse_servings_from_text,
    split_sentences,
)
from chefstacks.app.services.timestamps import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

SECTION_END_MARKERS = ("IF USING", "MUSIC", "DISCLAIMER", "CHAPTERS")
CHAPTER_END_MARKERS = ("DISCLAIMER", "How this content was made")
BULLET = "▪"

_STEP_MARKER_RE = re.compile(r"@(\d{1,2}:\d{2}(?::\d{2})?)")
_CHAPTER_RE = re.compile(r"^(\d+:\d{2}(?::\d{2})?)\s(.+)")

CONTEXT_RADIUS = 2
MIN_CONTEXT_LINE = 20
MAX_CONTEXT_LINE = 300
MIN_SENTENCE_CHARS = 10
MAX_SENTENCE_WORDS = 18
MIN_SENTENCE_WORDS = 6
MAX_TITLE_WORDS = 6


class NoteStep(BaseModel):
    timestamp: Optional[int] = None
    title: str
    instructions: List[str] = Field(default_factory=list)
    context: str = ""


class ParsedDescription(BaseModel):
    ingredients: List[str] = Field(default_factory=list)
    steps: List[NoteStep] = Field(default_factory=list)
    chapters: List[Chapter] = Field(default_factory=list)


def _step_title(step_text: str) -> str:
    first_clause = re.split(r"[.!?]", step_text)[0].strip()
    return " ".join(first_clause.split()[:MAX_TITLE_WORDS])


def _sentences_from(line: str) -> List[str]:
    out = []
    for sentence in split_sentences(line, MIN_SENTENCE_CHARS)[:2]:
        words = sentence.split()[:MAX_SENTENCE_WORDS]
        if len(words) >= MIN_SENTENCE_WORDS:
            out.append(" ".join(words))
    return out


def _context_instructions(lines: List[str], index: int) -> List[str]:
    instructions: List[str] = []
    start = max(0, index - CONTEXT_RADIUS)
    end = min(len(lines) - 1, index + CONTEXT_RADIUS)
    for j in range(start, end + 1):
        line = lines[j]
        if "@" in line or "http" in line or line.startswith(BULLET):
            continue
        if MIN_CONTEXT_LINE <= len(line) < MAX_CONTEXT_LINE:
            instructions.extend(_sentences_from(line))
    return instructions


def parse_recipe_description(description: str) -> ParsedDescription:
    """Parse an author description into ingredients, timestamped steps and chapters."""
    lines = [line.strip() for line in re.split(r"\r?\n", description or "")]
    lines = [line for line in lines if line]
    result = ParsedDescription()

    in_recipe = False
    in_chapters = False
    seen_chapter_ts = set()

    for i, line in enumerate(lines):
        if "RECIPE" in line and "*" in line:
            in_recipe = True
            continue
        if "CHAPTERS" in line:
            in_recipe = False
            in_chapters = True
            continue
        if in_recipe and any(marker in line for marker in SECTION_END_MARKERS):
            in_recipe = False
        if in_chapters and any(marker in line for marker in CHAPTER_END_MARKERS):
            in_chapters = False

        if in_recipe and line.startswith(BULLET):
            ingredient = line[len(BULLET):].strip()
            if ingredient:
                result.ingredients.append(ingredient)
            continue

        if in_recipe and "@" in line:
            match = _STEP_MARKER_RE.search(line)
            if match:
                step_text = clean_text(_STEP_MARKER_RE.sub("", line))
                instructions = _context_instructions(lines, i)
                if not instructions:
                    instructions = _sentences_from(step_text)
                result.steps.append(
                    NoteStep(
                        timestamp=parse_timestamp(match.group(1)),
                        title=_step_title(step_text) or "Step",
                        instructions=instructions,
                        context=step_text,
                    )
                )
            continue

        if in_chapters:
            match = _CHAPTER_RE.match(line)
            if match:
                ts = parse_timestamp(match.group(1))
                if ts is None or ts in seen_chapter_ts:
                    continue
                seen_chapter_ts.add(ts)
                result.chapters.append(Chapter(timestamp=ts, title=match.group(2).strip()))

    logger.debug(
        "Description parsed: ingredients=%d steps=%d chapters=%d",
        len(result.ingredients),
        len(result.steps),
        len(result.chapters),
    )
    return result


def _note_step_text(step: NoteStep) -> str:
    if step.instructions:
        return ". ".join(step.instructions) + "."
    if step.context:
        return step.context
    if step.timestamp is not None:
        return f"Follow the video at {format_timestamp(step.timestamp)}."
    return "Follow the video instructions at this point."


def partial_from_description(description: str) -> Optional[PartialRecipe]:
    """Run the notes grammar and tag everything it finds as ``notes``."""
    if not description or not description.strip():
        return None
    parsed = parse_recipe_description(description)

    # steps without a timestamp sort after every timed step, in source order
    ordered = sorted(
        parsed.steps,
        key=lambda s: (s.timestamp is None, s.timestamp if s.timestamp is not None else 0),
    )
    steps: List[Step] = [
        Step(
            value=StepValue(order=order, text=_note_step_text(s), title=s.title),
            from_=Provenance.NOTES,
            ts=s.timestamp,
        )
        for order, s in enumerate(ordered, start=1)
    ]
    steps = attach_chapters(steps, parsed.chapters)

    return PartialRecipe(
        provenance=Provenance.NOTES,
        ingredients=tag_ingredients(
            [parse_ingredient_line(i) for i in parsed.ingredients], Provenance.NOTES
        ),
        steps=steps,
        chapters=parsed.chapters,
        servings=parse_servings_from_text(description),
        times=Times(
            prep_min=parse_labelled_minutes(description, "prep"),
            cook_min=parse_labelled_minutes(description, "cook"),
            total_min=parse_labelled_minutes(description, "total"),
        ),
    )


class AuthorNotesLayer:
    """Parses the page's author description with the notes grammar."""

    name = "author_notes"
    provenance = Provenance.NOTES

    def extract(self, page: FetchedPage) -> Optional[PartialRecipe]:
        partial = partial_from_description(page.notes or "")
        if partial is None:
            logger.info("No author notes available for %s", page.url)
        return partial
