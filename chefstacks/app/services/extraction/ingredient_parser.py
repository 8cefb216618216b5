"""Ingredient extraction and cleaning utilities."""

import logging
import re
from typing import Any, List, Optional

from chefstacks.app.services.extraction.constants import FRACTION_CHARS
from chefstacks.app.services.extraction.models import (
    ExtractedField,
    Ingredient,
    IngredientValue,
    Provenance,
)
from chefstacks.app.services.extraction.parsing_utils import (
    clean_text,
    is_known_unit,
    normalize_fraction_display,
    normalize_unit_token,
)

logger = logging.getLogger(__name__)

_QUANTITY_UNIT_RE = re.compile(
    rf"^\s*([\d\s\/\.\-+{FRACTION_CHARS}]+)\s*([A-Za-z][A-Za-z\.]*)\s+(.*)$"
)
_QUANTITY_ONLY_RE = re.compile(rf"^\s*([\d\s\/\.\-+{FRACTION_CHARS}]+)\s+(.*)$")
_PAREN_RE = re.compile(r"\s*\([^)]*\)\s*")
_BULLET_RE = re.compile(r"^[\-\*•▪◦·]\s*")


def _clean_name(text: str) -> str:
    cleaned = _PAREN_RE.sub(" ", clean_text(text))
    cleaned = re.sub(r"\s*[()]\s*", " ", cleaned)
    cleaned = clean_text(cleaned).rstrip(" ,;")
    return cleaned


def parse_ingredient_line(line: str) -> IngredientValue:
    """Split a line like "1 ½ cups flour (sifted)" into text, qty and unit."""
    raw = _BULLET_RE.sub("", clean_text(line))
    if not raw:
        return IngredientValue(text=raw)

    m = _QUANTITY_UNIT_RE.match(raw)
    if m and clean_text(m.group(1)).strip("-+/. "):
        unit = clean_text(m.group(2))
        if is_known_unit(unit):
            qty = normalize_fraction_display(clean_text(m.group(1)))
            name = _clean_name(m.group(3))
            return IngredientValue(text=name or raw, qty=qty, unit=unit)

    m = _QUANTITY_ONLY_RE.match(raw)
    if m and clean_text(m.group(1)).strip("-+/. "):
        qty = normalize_fraction_display(clean_text(m.group(1)))
        name = _clean_name(m.group(2))
        return IngredientValue(text=name or raw, qty=qty)

    return IngredientValue(text=_clean_name(raw) or raw)


def _from_mapping(raw: dict) -> Optional[IngredientValue]:
    text_val = raw.get("text") or raw.get("name")
    if not isinstance(text_val, str) or not clean_text(text_val):
        return None
    quantity = raw.get("quantity") or raw.get("amount") or raw.get("qty")
    quantity = clean_text(str(quantity)) if quantity not in (None, "") else ""
    unit = clean_text(str(raw.get("unit") or ""))
    notes = clean_text(str(raw.get("notes") or ""))
    if not quantity and not unit:
        value = parse_ingredient_line(text_val)
    else:
        value = IngredientValue(
            text=clean_text(text_val),
            qty=normalize_fraction_display(quantity) if quantity else None,
            unit=unit or None,
        )
    if notes:
        value.text = f"{value.text}, {notes}"
    return value


def extract_ingredients(ingredients: Any) -> List[IngredientValue]:
    """Extract ingredients from a list of strings/dicts, or a single string."""
    parsed: List[IngredientValue] = []

    if isinstance(ingredients, list):
        logger.debug("Extracting ingredients from list of %d items", len(ingredients))
        for idx, raw in enumerate(ingredients):
            if isinstance(raw, str):
                if clean_text(raw):
                    parsed.append(parse_ingredient_line(raw))
            elif isinstance(raw, dict):
                value = _from_mapping(raw)
                if value is not None:
                    parsed.append(value)
                else:
                    logger.debug("Ingredient %d: dict had no text/name field", idx)
            else:
                logger.debug("Ingredient %d: unexpected type %s", idx, type(raw).__name__)
    elif isinstance(ingredients, str):
        if clean_text(ingredients):
            parsed.append(parse_ingredient_line(ingredients))
    elif ingredients is not None:
        logger.warning("Ingredients input is not a list or string: %s", type(ingredients).__name__)

    parsed = [p for p in parsed if p.text]
    logger.debug("Extracted %d ingredients from input", len(parsed))
    return parsed


def tag_ingredients(values: List[IngredientValue], provenance: Provenance) -> List[Ingredient]:
    """Wrap parsed values with the provenance of the layer that found them."""
    return [ExtractedField[IngredientValue](value=v, from_=provenance) for v in values]


def ingredient_key(value: IngredientValue) -> str:
    """Comparison key used when checking whether two layers agree."""
    name = re.sub(r"[^a-z ]", " ", value.text.lower())
    tokens = [normalize_unit_token(t) for t in name.split() if len(t) > 2]
    return " ".join(tokens[:3])
