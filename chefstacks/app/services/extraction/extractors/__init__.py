"""Web extraction layers, tried in order by the web extractor."""

from chefstacks.app.services.extraction.extractors.heuristic import (
    HtmlHeuristicsLayer,
    extract_recipe_heuristic,
    merge_related_steps,
)
from chefstacks.app.services.extraction.extractors.notes import (
    AuthorNotesLayer,
    parse_recipe_description,
    partial_from_description,
)
from chefstacks.app.services.extraction.extractors.schema_org import (
    StructuredDataLayer,
    parse_json_ld_blocks,
)

__all__ = [
    "AuthorNotesLayer",
    "HtmlHeuristicsLayer",
    "StructuredDataLayer",
    "extract_recipe_heuristic",
    "merge_related_steps",
    "parse_json_ld_blocks",
    "parse_recipe_description",
    "partial_from_description",
]
