"""Structured-data layer: schema.org Recipe from JSON-LD or microdata."""

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from chefstacks.app.services.extraction.ingredient_parser import (
    extract_ingredients,
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
    extract_author,
    extract_image,
    parse_minutes,
    parse_servings,
)

logger = logging.getLogger(__name__)


def parse_json_ld_blocks(html: str) -> List[Any]:
    """Every JSON-LD block in the page that parses; malformed blocks are skipped."""
    soup = BeautifulSoup(html or "", "lxml")
    blocks: List[Any] = []
    for idx, script in enumerate(soup.find_all("script", attrs={"type": "application/ld+json"})):
        raw_json = script.string or script.get_text()
        if not raw_json or not raw_json.strip():
            continue
        try:
            blocks.append(json.loads(raw_json))
        except json.JSONDecodeError as exc:
            logger.warning(
                "JSON-LD block %d failed to parse: %s (first 200 chars: %s)",
                idx,
                exc,
                raw_json[:200],
            )
    return blocks


def _flatten(data: Any) -> Iterable[dict]:
    if isinstance(data, list):
        for item in data:
            yield from _flatten(item)
    elif isinstance(data, dict):
        if "@graph" in data:
            yield from _flatten(data.get("@graph"))
        else:
            yield data


def _is_recipe(obj: dict) -> bool:
    obj_type = obj.get("@type")
    types = [obj_type] if isinstance(obj_type, str) else (obj_type or [])
    return any(str(t).lower() == "recipe" for t in types)


def find_recipe_object(blocks: Iterable[Any]) -> Tuple[Optional[dict], List[dict]]:
    """First Recipe node across ``blocks`` plus every node (for @id lookups)."""
    nodes = [n for block in blocks for n in _flatten(block)]
    for node in nodes:
        if _is_recipe(node):
            return node, nodes
    return None, nodes


def _expand_instructions(node: Any) -> List[Any]:
    if not node:
        return []
    if isinstance(node, str):
        return [node]
    if isinstance(node, list):
        return [leaf for child in node for leaf in _expand_instructions(child)]
    if isinstance(node, dict):
        # HowToSection and ItemList nest their steps
        if node.get("itemListElement"):
            return _expand_instructions(node["itemListElement"])
        if node.get("text") or node.get("name"):
            return [node]
    return []


def _step_image(node: Any, base_url: str) -> Optional[str]:
    if not isinstance(node, dict):
        return None
    image = extract_image(node.get("image"))
    if not image:
        media = node.get("associatedMedia")
        if isinstance(media, dict):
            image = media.get("contentUrl")
    return urljoin(base_url, image) if image else None


def _structured_steps(raw: Any, base_url: str) -> List[Step]:
    steps: List[Step] = []
    for node in _expand_instructions(raw):
        title = None
        if isinstance(node, str):
            # a single string may hold several newline-separated steps
            texts = [clean_text(t) for t in re.split(r"\n+", node)]
        else:
            texts = [clean_text(node.get("text") or node.get("name") or "")]
            if node.get("text") and node.get("name"):
                title = clean_text(node["name"])
                if texts[0].startswith(title):
                    title = None
        for text in texts:
            if not text:
                continue
            steps.append(
                Step(
                    value=StepValue(
                        order=len(steps) + 1,
                        text=text,
                        title=title or None,
                        image=_step_image(node, base_url),
                    ),
                    from_=Provenance.STRUCTURED,
                )
            )
    return steps


def _resolve_author(recipe: dict, nodes: List[dict]) -> Optional[str]:
    for key in ("author", "creator"):
        value = recipe.get(key)
        candidates = value if isinstance(value, list) else [value]
        for candidate in candidates:
            if isinstance(candidate, dict) and not candidate.get("name") and candidate.get("@id"):
                resolved = next((n for n in nodes if n.get("@id") == candidate["@id"]), None)
                if resolved:
                    candidate = resolved
            name = extract_author(candidate)
            if name:
                return name
    return None


def _tips(recipe: dict) -> List[str]:
    for key in ("recipeTips", "tips", "notes"):
        value = recipe.get(key)
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            tips = [clean_text(t if isinstance(t, str) else (t or {}).get("text", "")) for t in value]
            tips = [t for t in tips if t]
            if tips:
                return tips
    return []


def partial_from_json_ld(recipe: dict, nodes: List[dict], url: str) -> PartialRecipe:
    image = extract_image(recipe.get("image"))
    return PartialRecipe(
        provenance=Provenance.STRUCTURED,
        title=clean_text(recipe.get("name") or "") or None,
        author=_resolve_author(recipe, nodes),
        image=urljoin(url, image) if image else None,
        servings=parse_servings(recipe.get("recipeYield")),
        times=Times(
            prep_min=parse_minutes(recipe.get("prepTime")),
            cook_min=parse_minutes(recipe.get("cookTime")),
            total_min=parse_minutes(recipe.get("totalTime")),
        ),
        ingredients=tag_ingredients(
            extract_ingredients(recipe.get("recipeIngredient") or []), Provenance.STRUCTURED
        ),
        steps=_structured_steps(recipe.get("recipeInstructions"), url),
        tips=_tips(recipe),
    )


def _itemprop_text(el) -> str:
    if el.name == "meta":
        return clean_text(el.get("content") or "")
    if el.get("content"):
        return clean_text(el["content"])
    if el.name == "time" and el.get("datetime"):
        return clean_text(el["datetime"])
    return clean_text(el.get_text(" ", strip=True))


def partial_from_microdata(html: str, url: str) -> Optional[PartialRecipe]:
    soup = BeautifulSoup(html or "", "lxml")
    root = soup.find(attrs={"itemtype": re.compile("schema.org/Recipe", re.I)})
    if root is None:
        return None

    def props(name: str):
        return root.find_all(attrs={"itemprop": name})

    def first(name: str) -> Optional[str]:
        found = props(name)
        return _itemprop_text(found[0]) if found else None

    ingredient_els = props("recipeIngredient") or props("ingredients")
    ingredients = [parse_ingredient_line(_itemprop_text(el)) for el in ingredient_els]
    steps: List[Step] = []
    for el in props("recipeInstructions"):
        items = el.find_all("li") or [el]
        for item in items:
            text = clean_text(item.get_text(" ", strip=True))
            if text:
                steps.append(
                    Step(
                        value=StepValue(order=len(steps) + 1, text=text),
                        from_=Provenance.STRUCTURED,
                    )
                )

    image = None
    image_el = root.find(attrs={"itemprop": "image"})
    if image_el is not None:
        image = image_el.get("src") or image_el.get("content") or image_el.get("href")

    return PartialRecipe(
        provenance=Provenance.STRUCTURED,
        title=first("name"),
        author=first("author"),
        image=urljoin(url, image) if image else None,
        servings=parse_servings(first("recipeYield")),
        times=Times(
            prep_min=parse_minutes(first("prepTime")),
            cook_min=parse_minutes(first("cookTime")),
            total_min=parse_minutes(first("totalTime")),
        ),
        ingredients=tag_ingredients([i for i in ingredients if i.text], Provenance.STRUCTURED),
        steps=steps,
    )


class StructuredDataLayer:
    """Reads machine-readable recipe markup; authoritative for what it fills."""

    name = "structured_data"
    provenance = Provenance.STRUCTURED

    def extract(self, page: FetchedPage) -> Optional[PartialRecipe]:
        blocks = page.structured_data
        if blocks is None:
            blocks = parse_json_ld_blocks(page.html)
        recipe, nodes = find_recipe_object(blocks)
        if recipe is not None:
            partial = partial_from_json_ld(recipe, nodes, page.url)
            partial.markup = "json-ld"
        else:
            partial = partial_from_microdata(page.html, page.url)
            if partial is not None:
                partial.markup = "microdata"
        if partial is None:
            logger.info("No structured recipe markup on %s", page.url)
            return None
        logger.info(
            "Structured %s recipe: title=%s ingredients=%d steps=%d",
            partial.markup,
            (partial.title or "None")[:50],
            len(partial.ingredients),
            len(partial.steps),
        )
        return partial
