from chefstacks.app.services.extraction.fusion import ConfidenceFusionEngine, attach_chapters
from chefstacks.app.services.extraction.ingredient_parser import parse_ingredient_line, tag_ingredients
from chefstacks.app.services.extraction.models import (
    Chapter,
    PartialRecipe,
    Provenance,
    Step,
    StepValue,
    Times,
)


def make_partial(provenance, ingredients=(), steps=(), times=None, **kwargs):
    return PartialRecipe(
        provenance=provenance,
        ingredients=tag_ingredients([parse_ingredient_line(i) for i in ingredients], provenance),
        steps=[
            Step(value=StepValue(order=order, text=text), from_=provenance, ts=ts)
            for order, (text, ts) in enumerate(steps, start=10)
        ],
        times=times or Times(),
        **kwargs,
    )


def test_higher_priority_section_wins_whole():
    notes = make_partial(Provenance.NOTES, ["1 cup rice", "2 cups water"], [("Rinse rice well", 5)])
    structured = make_partial(
        Provenance.STRUCTURED,
        ["1 cup rice", "2 cups water", "1 tsp salt"],
        [("Rinse the rice under cold water", None), ("Simmer for 18 minutes", None)],
    )

    recipe = ConfidenceFusionEngine().fuse([notes, structured])

    assert [i.value.text for i in recipe.ingredients] == ["rice", "water", "salt"]
    assert {i.from_ for i in recipe.ingredients} == {Provenance.STRUCTURED}
    assert [s.value.order for s in recipe.steps] == [1, 2]
    assert all(s.from_ is Provenance.STRUCTURED for s in recipe.steps)


def test_agreement_raises_confidence():
    structured = make_partial(Provenance.STRUCTURED, ["1 cup rice", "2 cups water"])
    alone = ConfidenceFusionEngine().fuse([structured])
    assert alone.confidence.ingredients == 0.95

    notes = make_partial(Provenance.NOTES, ["1 cup rice", "2 cups water"])
    agreed = ConfidenceFusionEngine().fuse([structured, notes])
    assert agreed.confidence.ingredients == 1.0


def test_disagreeing_layer_adds_no_bonus():
    parsed = make_partial(Provenance.PARSED, ["3 eggs", "1 cup milk"])
    notes = make_partial(Provenance.NOTES, ["200g chocolate", "100g butter"])
    recipe = ConfidenceFusionEngine().fuse([parsed, notes])
    assert recipe.confidence.ingredients == 0.75


def test_times_resolved_per_field_with_agreement_bonus():
    structured = make_partial(Provenance.STRUCTURED, times=Times(prep_min=15))
    notes = make_partial(Provenance.NOTES, times=Times(prep_min=15, cook_min=30))
    recipe = ConfidenceFusionEngine().fuse([structured, notes])
    assert recipe.times.prep_min == 15
    assert recipe.times.cook_min == 30
    assert 0.0 <= recipe.confidence.times <= 1.0
    assert recipe.confidence.times > 0.75


def test_empty_sections_score_zero_and_title_falls_back():
    recipe = ConfidenceFusionEngine().fuse([], title=None)
    assert recipe.title == "Untitled Recipe"
    assert recipe.confidence.ingredients == 0.0
    assert recipe.confidence.steps == 0.0
    assert recipe.confidence.times == 0.0
    assert recipe.steps == []


def test_steps_renumbered_contiguously():
    parsed = make_partial(
        Provenance.PARSED,
        steps=[("Whisk the eggs with milk", None), ("Pour into the hot pan", None), ("Fold and serve warm", None)],
    )
    recipe = ConfidenceFusionEngine().fuse([parsed])
    assert [s.value.order for s in recipe.steps] == [1, 2, 3]
    assert recipe.debug.layer == "parsed"


def test_fusion_is_deterministic():
    layers = [
        make_partial(Provenance.NOTES, ["1 cup rice"], [("Boil the rice", 30)], title="Rice"),
        make_partial(Provenance.PARSED, ["1 cup rice", "salt"], [("Boil rice in water", None)]),
    ]
    engine = ConfidenceFusionEngine()
    first = engine.fuse(layers, source_url="https://example.com/rice")
    second = engine.fuse(list(reversed(layers)), source_url="https://example.com/rice")
    assert first.model_dump() == second.model_dump()


def test_attach_chapters_labels_steps_by_timestamp():
    steps = [
        Step(value=StepValue(order=1, text="Make the dough"), from_=Provenance.NOTES, ts=40),
        Step(value=StepValue(order=2, text="Shape the buns"), from_=Provenance.NOTES, ts=200),
        Step(value=StepValue(order=3, text="Serve"), from_=Provenance.NOTES, ts=None),
    ]
    chapters = [Chapter(timestamp=0, title="Intro"), Chapter(timestamp=120, title="Shaping")]
    labelled = attach_chapters(steps, chapters)
    assert [s.value.chapter for s in labelled] == ["Intro", "Shaping", None]
