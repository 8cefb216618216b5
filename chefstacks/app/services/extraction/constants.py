"""Shared lookup tables for ingredient and step parsing."""

import re

FRACTION_MAP = {
    "¼": "1/4",
    "½": "1/2",
    "¾": "3/4",
    "⅓": "1/3",
    "⅔": "2/3",
    "⅛": "1/8",
    "⅜": "3/8",
    "⅝": "5/8",
    "⅞": "7/8",
    "⅕": "1/5",
    "⅙": "1/6",
}

FRACTION_CHARS = "".join(FRACTION_MAP.keys())

# Singular, lowercase, no trailing period (see normalize_unit_token).
COMMON_UNITS = {
    "cup",
    "c",
    "tablespoon",
    "tbsp",
    "tbs",
    "tb",
    "teaspoon",
    "tsp",
    "t",
    "ounce",
    "oz",
    "fl oz",
    "pound",
    "lb",
    "gram",
    "g",
    "kilogram",
    "kg",
    "milliliter",
    "ml",
    "liter",
    "l",
    "pint",
    "pt",
    "quart",
    "qt",
    "gallon",
    "gal",
    "pinch",
    "dash",
    "clove",
    "can",
    "package",
    "pkg",
    "stick",
    "slice",
    "sprig",
    "bunch",
    "piece",
    "head",
    "handful",
}

COOKING_VERBS = (
    "add",
    "mix",
    "stir",
    "heat",
    "cook",
    "bake",
    "fry",
    "boil",
    "simmer",
    "season",
    "chop",
    "slice",
    "dice",
    "mince",
    "pour",
    "whisk",
    "blend",
    "combine",
    "place",
    "put",
    "remove",
    "serve",
    "garnish",
    "marinate",
    "preheat",
    "transfer",
    "roast",
    "grill",
    "sauté",
    "cover",
    "uncover",
    "bring",
    "reduce",
    "let",
    "allow",
    "taste",
    "adjust",
    "discard",
    "ladle",
    "sprinkle",
)

COOKING_VERB_RE = re.compile(r"\b(" + "|".join(COOKING_VERBS) + r")\b", re.I)
