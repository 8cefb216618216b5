import json

import pytest

from chefstacks.app.services.extraction.errors import FetchFailed, ParseDegraded
from chefstacks.app.services.extraction.extractors import AuthorNotesLayer, parse_recipe_description
from chefstacks.app.services.extraction.models import FetchedPage, Provenance
from chefstacks.app.services.extraction.web_extractor import WebExtractor


STRUCTURED_RECIPE = {
    "@context": "https://schema.org",
    "@type": "Recipe",
    "name": "Weeknight Tomato Pasta",
    "author": {"@type": "Person", "name": "Ada Cook"},
    "recipeYield": "4 servings",
    "prepTime": "PT10M",
    "cookTime": "PT20M",
    "totalTime": "PT30M",
    "recipeIngredient": [
        "200 g spaghetti",
        "2 tbsp olive oil",
        "3 cloves garlic",
        "400 g canned tomatoes",
        "1 tsp salt",
    ],
    "recipeInstructions": [
        {"@type": "HowToStep", "text": "Boil the spaghetti in salted water for 9 minutes."},
        {"@type": "HowToStep", "text": "Fry the garlic in the olive oil for 1 minute."},
        {"@type": "HowToStep", "text": "Add the tomatoes and simmer for 10 minutes."},
        {"@type": "HowToStep", "text": "Toss the pasta with the sauce and serve."},
    ],
}


def structured_page(recipe=None):
    block = json.dumps(recipe or STRUCTURED_RECIPE)
    html = f"""
    <html>
      <head>
        <title>Weeknight Tomato Pasta | Example Kitchen</title>
        <script type="application/ld+json">{block}</script>
      </head>
      <body><h1>Weeknight Tomato Pasta</h1></body>
    </html>
    """
    return FetchedPage(url="https://example.com/pasta", html=html)


NOTES_DESCRIPTION = """Creamy tomato pasta for busy weeknights.
*** RECIPE ***
▪ 200g spaghetti
▪ 2 tbsp olive oil
▪ 3 cloves garlic
▪ 400g canned tomatoes
▪ 100ml cream
▪ 1 tsp salt
@02:10 Simmer the tomatoes with the garlic and cream
@00:45 Boil the spaghetti in plenty of salted water
@01:30 Fry the garlic gently in the olive oil
DISCLAIMER
"""


def test_structured_page_short_circuits_later_layers(settings):
    extractor = WebExtractor(settings, fetcher=object())
    recipe = extractor.extract_page(structured_page())

    assert recipe.title == "Weeknight Tomato Pasta"
    assert len(recipe.ingredients) == 5
    assert all(i.from_ is Provenance.STRUCTURED for i in recipe.ingredients)
    assert [s.value.order for s in recipe.steps] == [1, 2, 3, 4]
    assert all(s.from_ is Provenance.STRUCTURED for s in recipe.steps)
    assert recipe.confidence.ingredients == 0.95
    assert recipe.confidence.steps == 0.95
    assert recipe.times.prep_min == 10
    assert recipe.times.total_min == 30
    assert recipe.servings == 4
    assert recipe.author == "Ada Cook"
    assert recipe.debug.attempts == ["structured_data"]
    assert recipe.debug.hasStructuredData is True
    assert recipe.debug.structuredDataType == "json-ld"
    assert recipe.debug.layer == "structured"


def test_structured_extraction_is_idempotent(settings):
    extractor = WebExtractor(settings, fetcher=object())
    first = extractor.extract_page(structured_page())
    second = extractor.extract_page(structured_page())
    assert first.model_dump() == second.model_dump()


def test_partial_structured_data_falls_through_for_missing_categories(settings):
    recipe_without_steps = {k: v for k, v in STRUCTURED_RECIPE.items() if k != "recipeInstructions"}
    page = structured_page(recipe_without_steps)
    page.notes = NOTES_DESCRIPTION

    recipe = WebExtractor(settings, fetcher=object()).extract_page(page)

    assert recipe.debug.attempts[:2] == ["structured_data", "author_notes"]
    assert all(i.from_ is Provenance.STRUCTURED for i in recipe.ingredients)
    assert len(recipe.steps) == 3
    assert all(s.from_ is Provenance.NOTES for s in recipe.steps)
    assert recipe.debug.usedNotes is True


def test_notes_only_page(settings):
    page = FetchedPage(
        url="https://example.com/video-notes",
        html="<html><body><p>Nothing to see.</p></body></html>",
        notes=NOTES_DESCRIPTION,
    )
    recipe = WebExtractor(settings, fetcher=object()).extract_page(page)

    assert len(recipe.ingredients) == 6
    assert all(i.from_ is Provenance.NOTES for i in recipe.ingredients)
    assert len(recipe.steps) == 3
    assert all(s.from_ is Provenance.NOTES for s in recipe.steps)
    assert [s.ts for s in recipe.steps] == [45, 90, 130]
    assert [s.value.order for s in recipe.steps] == [1, 2, 3]
    assert recipe.debug.attempts == ["structured_data", "author_notes", "html_heuristics"]
    assert recipe.debug.hasStructuredData is False


def test_malformed_structured_data_is_treated_as_absent(settings):
    html = """
    <html><head><script type="application/ld+json">{"@type": "Recipe", "name": </script></head>
    <body>
      <article>
        <h1>Heuristic Soup</h1>
        <ul><li>1 cup broth</li><li>2 tsp salt</li></ul>
        <h2>Directions</h2>
        <ol><li>Heat the broth in a small pot.</li><li>Add the salt and stir well.</li></ol>
      </article>
    </body></html>
    """
    page = FetchedPage(url="https://example.com/soup", html=html)
    recipe = WebExtractor(settings, fetcher=object()).extract_page(page)

    assert recipe.title == "Heuristic Soup"
    assert [i.value.text for i in recipe.ingredients] == ["broth", "salt"]
    assert all(i.from_ is Provenance.PARSED for i in recipe.ingredients)
    assert recipe.steps[0].value.text.startswith("Heat")
    assert recipe.confidence.ingredients == 0.55
    assert recipe.debug.attempts == ["structured_data", "author_notes", "html_heuristics"]


def test_heuristic_steps_pick_up_content_images(settings):
    html = """
    <html><body>
      <article>
        <h1>Heuristic Soup</h1>
        <img src="/static/logo.png">
        <ul><li>1 cup broth</li><li>2 tsp salt</li></ul>
        <h2>Directions</h2>
        <ol><li>Heat the broth in a small pot.</li><li>Add the salt and stir well.</li></ol>
        <img src="/img/step-1.jpg">
        <img data-src="https://cdn.example.com/step-2.jpg">
      </article>
    </body></html>
    """
    page = FetchedPage(url="https://example.com/soup", html=html)
    recipe = WebExtractor(settings, fetcher=object()).extract_page(page)

    assert [s.value.image for s in recipe.steps] == [
        "https://example.com/img/step-1.jpg",
        "https://cdn.example.com/step-2.jpg",
    ]
    assert all(s.from_ is Provenance.PARSED for s in recipe.steps)


def test_failing_layer_is_skipped(settings):
    class BrokenLayer:
        name = "broken"
        provenance = Provenance.STRUCTURED

        def extract(self, page):
            raise ParseDegraded("markup unreadable")

    class ExplodingLayer:
        name = "exploding"
        provenance = Provenance.NOTES

        def extract(self, page):
            raise RuntimeError("boom")

    page = FetchedPage(url="https://example.com/x", html="", notes=NOTES_DESCRIPTION)
    extractor = WebExtractor(
        settings, fetcher=object(), layers=[BrokenLayer(), ExplodingLayer(), AuthorNotesLayer()]
    )
    recipe = extractor.extract_page(page)
    assert recipe.debug.attempts == ["broken", "exploding", "author_notes"]
    assert len(recipe.ingredients) == 6


def test_bullets_without_timestamps_yield_ingredients_only():
    parsed = parse_recipe_description("*** RECIPE ***\n▪ 1 cup rice\n▪ 2 cups water\nDISCLAIMER")
    assert parsed.ingredients == ["1 cup rice", "2 cups water"]
    assert parsed.steps == []


def test_duplicate_chapter_timestamps_keep_first():
    parsed = parse_recipe_description("CHAPTERS\n0:00 Intro\n1:30 Dough\n1:30 Duplicate\n3:00 Bake\n")
    assert [(c.timestamp, c.title) for c in parsed.chapters] == [(0, "Intro"), (90, "Dough"), (180, "Bake")]


@pytest.mark.asyncio
async def test_extract_propagates_fetch_failure(settings):
    class FailingFetcher:
        async def fetch(self, url):
            raise FetchFailed("Site returned status 404.", status_code=404)

    with pytest.raises(FetchFailed):
        await WebExtractor(settings, fetcher=FailingFetcher()).extract("https://example.com/missing")
