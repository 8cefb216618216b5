import json

import pytest
from fastapi.exceptions import RequestValidationError

from chefstacks.app.main import validation_exception_handler
from chefstacks.app.schemas.extraction import ErrorBody
from chefstacks.app.services.extraction import ExtractionOrchestrator, ExtractionResult, FusedRecipe
from chefstacks.app.services.extraction.errors import InvalidURL
from chefstacks.app.services.extraction.models import PreflightResult, SourceKind, UserMessage
from chefstacks.app.services.extraction.preflight.messages import BORDERLINE, PASSED


def _preflight(passed: bool, borderline: bool = False, score: int = 5) -> PreflightResult:
    return PreflightResult(
        pass_=passed,
        score=score,
        reason="test",
        borderline=borderline,
        allowOverride=borderline,
        userMessage=PASSED if passed else BORDERLINE,
    )


class CannedOrchestrator:
    def __init__(self, result=None, preflight=None, error=None):
        self.result = result
        self.preflight_result = preflight
        self.error = error
        self.calls = []

    async def extract(self, url, skip_preflight=False, cancel=None):
        self.calls.append((url, skip_preflight))
        return self.result

    async def preflight(self, url):
        self.calls.append((url, None))
        if self.error is not None:
            raise self.error
        return self.preflight_result


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_extract_success_returns_recipe(client, override_orchestrator):
    recipe = FusedRecipe.model_validate(
        {
            "title": "Weeknight Soup",
            "ingredients": [{"value": {"text": "1 cup broth"}, "from": "structured"}],
            "steps": [{"value": {"order": 1, "text": "Simmer."}, "from": "structured"}],
        }
    )
    fake = override_orchestrator(
        CannedOrchestrator(
            result=ExtractionResult(
                success=True, recipe=recipe, source_kind=SourceKind.WEB, status_code=200
            )
        )
    )

    resp = client.post("/extract", json={"url": "https://example.com/soup"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["recipe"]["title"] == "Weeknight Soup"
    assert body["recipe"]["ingredients"][0]["from"] == "structured"
    assert body["source_kind"] == "web"
    assert fake.calls == [("https://example.com/soup", False)]


def test_extract_preflight_rejection_is_400_with_override_flag(client, override_orchestrator):
    fake = override_orchestrator(
        CannedOrchestrator(
            result=ExtractionResult(
                success=False,
                source_kind=SourceKind.YOUTUBE,
                error_code="preflight_rejected",
                error_message=BORDERLINE.description,
                status_code=400,
                preflight=_preflight(False, borderline=True, score=1),
                override_available=True,
            )
        )
    )

    resp = client.post(
        "/extract", json={"url": "https://youtu.be/abc123DEF45", "skip_preflight": False}
    )

    assert resp.status_code == 400
    body = resp.json()
    assert body["error_code"] == "preflight_rejected"
    assert body["override_available"] is True
    assert body["preflight"]["pass"] is False
    assert body["preflight"]["borderline"] is True
    assert fake.calls == [("https://youtu.be/abc123DEF45", False)]


def test_extract_forwards_skip_preflight(client, override_orchestrator):
    fake = override_orchestrator(
        CannedOrchestrator(
            result=ExtractionResult(
                success=False,
                error_code="timed_out",
                error_message="Video processing did not finish in time.",
                status_code=504,
            )
        )
    )

    resp = client.post(
        "/extract", json={"url": "https://youtu.be/abc123DEF45", "skip_preflight": True}
    )

    assert resp.status_code == 504
    assert resp.json()["error_code"] == "timed_out"
    assert fake.calls == [("https://youtu.be/abc123DEF45", True)]


def test_preflight_passes_through_result(client, override_orchestrator):
    override_orchestrator(CannedOrchestrator(preflight=_preflight(True)))

    resp = client.post("/preflight", json={"url": "https://youtu.be/abc123DEF45"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["pass"] is True
    assert body["userMessage"]["title"] == PASSED.title
    assert body["overridden"] is False


@pytest.mark.parametrize(
    "borderline, expected",
    [(True, True), (False, False)],
)
def test_preflight_override_only_applies_to_borderline(
    client, override_orchestrator, borderline, expected
):
    result = PreflightResult(
        pass_=False,
        score=1 if borderline else -4,
        reason="test",
        borderline=borderline,
        allowOverride=borderline,
        userMessage=BORDERLINE
        if borderline
        else UserMessage(title="❌ Not a Recipe Video", description="No.", canRetry=False),
    )
    override_orchestrator(CannedOrchestrator(preflight=result))

    resp = client.post(
        "/preflight", json={"url": "https://youtu.be/abc123DEF45", "allow_override": True}
    )

    assert resp.status_code == 200
    assert resp.json()["overridden"] is expected


def test_preflight_rejects_web_urls(client, override_orchestrator, settings):
    override_orchestrator(ExtractionOrchestrator(settings))

    resp = client.post("/preflight", json={"url": "https://example.com/soup"})

    assert resp.status_code == 400
    assert "video" in resp.json()["detail"]


def test_preflight_invalid_url_is_400(client, override_orchestrator):
    override_orchestrator(CannedOrchestrator(error=InvalidURL("Not a valid URL.")))

    resp = client.post("/preflight", json={"url": "not a url"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Not a valid URL."


def test_extract_missing_url_is_validation_error(client, override_orchestrator):
    fake = override_orchestrator(CannedOrchestrator())

    resp = client.post("/extract", json={"skip_preflight": True})

    assert resp.status_code == 422
    body = resp.json()
    assert body["error_code"] == "validation_error"
    assert {"field": "body.url", "message": "Field required"} in body["details"]
    assert fake.calls == []


@pytest.mark.asyncio
async def test_validation_handler_formats_errors():
    exc = RequestValidationError(
        errors=[
            {"loc": ("body", "url"), "msg": "field required"},
            {"loc": ("body", "skip_preflight"), "msg": "value is not a valid boolean"},
        ]
    )
    response = await validation_exception_handler(None, exc)
    assert response.status_code == 422
    body = json.loads(response.body)
    assert body["error_code"] == "validation_error"
    assert body["message"] == "Invalid request payload."
    assert "job_id" in body and body["job_id"]
    assert {"field": "body.url", "message": "field required"} in body["details"]
    assert {"field": "body.skip_preflight", "message": "value is not a valid boolean"} in body[
        "details"
    ]


@pytest.mark.asyncio
async def test_validation_handler_reports_missing_location_as_null_field():
    exc = RequestValidationError(errors=[{"loc": (), "msg": "bad body"}, {"loc": ("body", None)}])
    response = await validation_exception_handler(None, exc)
    body = ErrorBody.model_validate(json.loads(response.body))
    assert [(d.field, d.message) for d in body.details] == [
        (None, "bad body"),
        ("body", "Invalid value"),
    ]
