"""Generic layer: heuristic recipe extraction from unstructured HTML."""

import logging
import re
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from chefstacks.app.services.extraction.constants import COOKING_VERB_RE
from chefstacks.app.services.extraction.ingredient_parser import (
    parse_ingredient_line,
    tag_ingredients,
)
from chefstacks.app.services.extraction.models import (
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
)

logger = logging.getLogger(__name__)

_MEASURE_RE = re.compile(
    r"\d|[¼½¾⅓⅔⅛]|\b(cup|cups|tsp|tbsp|tablespoons?|teaspoons?|ounces?|oz|grams?|g|kg|ml|l|lbs?|pounds?|pinch|cloves?)\b",
    flags=re.I,
)
_INSTRUCTION_HEADING_RE = re.compile(r"instructions?|directions?|method|preparation", re.I)
_TIP_CLASS_RE = re.compile(r"tip|note|hint|advice", re.I)
_SKIP_IMAGE_RE = re.compile(r"logo|icon|avatar|sprite|pixel", re.I)
_TIP_WORDS_RE = re.compile(
    r"tip|trick|avoid|don't|do not|because|so that|instead|secret|hack|note|hint", re.I
)
MERGE_MAX_CHARS = 50
MAX_TIPS = 5


def clean_soup_for_content(soup: BeautifulSoup) -> None:
    """Remove obvious boilerplate nodes before extracting candidate content."""
    for noisy in soup.find_all(["header", "footer", "nav", "aside", "form"]):
        noisy.decompose()
    for tag in soup.find_all(["script", "style", "noscript", "link"]):
        tag.decompose()


def find_main_node(soup: BeautifulSoup):
    """Find the main content node in the soup."""
    return (
        soup.find("article")
        or soup.find("main")
        or soup.find(class_=re.compile("recipe|post|content", re.I))
        or soup.body
    )


def _find_ingredient_items(container) -> List[str]:
    """Pick the list whose items look most like measured ingredients."""
    best_items: List[str] = []
    best_score = -1
    for lst in container.find_all(["ul", "ol"]):
        items = [clean_text(li.get_text(" ", strip=True)) for li in lst.find_all("li")]
        items = [i for i in items if 3 < len(i) < 200]
        if len(items) < 2:
            continue
        matches = sum(1 for item in items if _MEASURE_RE.search(item))
        if matches < max(2, len(items) // 2):
            continue
        score = matches * 2 + len(items)
        if score > best_score:
            best_score = score
            best_items = items
    return best_items


def _find_instruction_items(container, exclude: List[str]) -> List[str]:
    """Steps from an "Instructions" heading, else the best verb-heavy ordered list."""
    steps: List[str] = []
    heading = container.find(
        lambda tag: tag.name in {"h2", "h3", "h4", "strong", "b", "p"}
        and _INSTRUCTION_HEADING_RE.search(tag.get_text(" ", strip=True) or "")
        and len(tag.get_text(" ", strip=True)) < 40
    )
    if heading is not None:
        sibling = heading.find_next_sibling(["ol", "ul", "div", "section", "p"])
        if sibling is not None:
            if sibling.name in {"ol", "ul"}:
                steps = [li.get_text(" ", strip=True) for li in sibling.find_all("li")]
            elif sibling.name == "p":
                steps = [sibling.get_text(" ", strip=True)]
                for nxt in sibling.find_next_siblings():
                    if nxt.name != "p":
                        break
                    steps.append(nxt.get_text(" ", strip=True))
            else:
                steps = [p.get_text(" ", strip=True) for p in sibling.find_all(["p", "li"])]

    if not steps:
        best_score = 0
        for ol in container.find_all("ol"):
            items = [li.get_text(" ", strip=True) for li in ol.find_all("li")]
            if len(items) < 2 or [clean_text(i) for i in items] == exclude:
                continue
            score = len(items) + 2 * sum(1 for i in items if COOKING_VERB_RE.search(i))
            if score > best_score:
                best_score = score
                steps = items

    return [s for s in (clean_text(s) for s in steps) if 10 < len(s) < 800]


def merge_related_steps(steps: List[str]) -> List[str]:
    """Fold short fragments without a cooking verb into the surrounding step."""
    merged: List[str] = []
    current = ""
    for text in steps:
        text = text.strip()
        if not text:
            continue
        if len(text) < MERGE_MAX_CHARS and not COOKING_VERB_RE.search(text):
            current = f"{current} {text}".strip()
            continue
        if current:
            merged.append(current)
        current = text
    if current:
        merged.append(current)
    return merged


def _extract_tips(soup: BeautifulSoup) -> List[str]:
    tips: List[str] = []
    candidates = soup.find_all(class_=_TIP_CLASS_RE) + soup.find_all(id=_TIP_CLASS_RE)
    candidates += [
        el
        for el in soup.find_all(["p", "li"])
        if re.match(r"\s*(pro tip|tip|note|hint)\b", el.get_text(" ", strip=True), re.I)
    ]
    for el in candidates:
        text = clean_text(el.get_text(" ", strip=True))
        if 10 < len(text) < 300 and _TIP_WORDS_RE.search(text) and text not in tips:
            tips.append(text)
        if len(tips) >= MAX_TIPS:
            break
    return tips


def step_images(container, count: int, base_url: str) -> List[Optional[str]]:
    """Hand out the content images, in page order, one per step."""
    images: List[str] = []
    for img in container.find_all("img"):
        src = img.get("src") or img.get("data-src")
        if not src or src.startswith("data:") or _SKIP_IMAGE_RE.search(src):
            continue
        full = urljoin(base_url, src)
        if full not in images:
            images.append(full)
    return [images[i] if i < len(images) else None for i in range(count)]


def _find_image(soup: BeautifulSoup) -> Optional[str]:
    og = soup.find("meta", attrs={"property": "og:image"})
    if og is not None and og.get("content"):
        return og["content"]
    return None


def extract_recipe_heuristic(html: str, url: str) -> Optional[PartialRecipe]:
    """Heuristic HTML analysis; returns None when nothing recipe-like is found."""
    soup = BeautifulSoup(html or "", "lxml")
    image = _find_image(soup)
    title_tag = soup.find("h1") or soup.title
    title = clean_text(title_tag.get_text()) if title_tag else None

    clean_soup_for_content(soup)
    container = find_main_node(soup)
    if container is None:
        return None

    ingredient_lines = _find_ingredient_items(container)
    step_lines = merge_related_steps(_find_instruction_items(container, ingredient_lines))
    text = container.get_text(" ", strip=True)
    tips = _extract_tips(container)

    images = step_images(container, len(step_lines), url)
    steps = [
        Step(value=StepValue(order=i, text=s, image=img), from_=Provenance.PARSED)
        for i, (s, img) in enumerate(zip(step_lines, images), start=1)
    ]
    partial = PartialRecipe(
        provenance=Provenance.PARSED,
        title=title or None,
        image=image,
        servings=parse_servings_from_text(text),
        times=Times(
            prep_min=parse_labelled_minutes(text, "prep"),
            cook_min=parse_labelled_minutes(text, "cook"),
            total_min=parse_labelled_minutes(text, "total"),
        ),
        ingredients=tag_ingredients(
            [parse_ingredient_line(i) for i in ingredient_lines], Provenance.PARSED
        ),
        steps=steps,
        tips=tips,
    )
    logger.info(
        "Heuristic parse of %s: ingredients=%d steps=%d tips=%d",
        url,
        len(partial.ingredients),
        len(partial.steps),
        len(tips),
    )
    return partial


class HtmlHeuristicsLayer:
    """Fallback list/paragraph detection over the raw page."""

    name = "html_heuristics"
    provenance = Provenance.PARSED

    def extract(self, page: FetchedPage) -> Optional[PartialRecipe]:
        if not page.html:
            return None
        return extract_recipe_heuristic(page.html, page.url)
