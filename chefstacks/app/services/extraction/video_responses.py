"""Known response shapes of the video-understanding service.

Each endpoint is parsed into one variant of a small tagged union. A body that
matches none of the known variants raises rather than flowing on as ``None``.
"""

import json
import logging
import re
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from chefstacks.app.services.extraction.errors import InvalidResponse, UploadFailed

logger = logging.getLogger(__name__)

RECIPE_PROMPT_VERSION = "v1"

RECIPE_PROMPT = "\n".join(
    [
        "Extract a complete cooking recipe from this video.",
        "Return STRICT, VALID JSON with this shape:",
        "{",
        '  "title": string,',
        '  "servings": number | null,',
        '  "prep_time": string | null,  // e.g., "15 min"',
        '  "cook_time": string | null,  // e.g., "30 min"',
        '  "total_time": string | null,',
        '  "ingredients": [',
        '    { "name": string, "quantity": string | number | null, "unit": string | null, "notes": string | null }',
        "  ],",
        '  "steps": [',
        '    { "t_in": "HH:MM:SS" | null, "t_out": "HH:MM:SS" | null, "instruction": string }',
        "  ],",
        '  "tools": string[] | [],',
        '  "tips": string[] | []',
        "}",
        "Rules:",
        "- If the video omits something, infer conservatively or set null.",
        "- Prefer standard units (g, ml, tsp, tbsp, cup, °C/°F).",
        "- Keep steps concise, ordered, and aligned to timestamps when available.",
    ]
)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.S)


class TaskAccepted(BaseModel):
    kind: Literal["accepted"] = "accepted"
    task_id: str


class TaskPending(BaseModel):
    kind: Literal["pending"] = "pending"


class TaskReady(BaseModel):
    kind: Literal["ready"] = "ready"
    video_nos: List[str]


TaskStatus = Union[TaskPending, TaskReady]


class ChatAnswer(BaseModel):
    kind: Literal["answer"] = "answer"
    text: Optional[str] = None
    payload: Optional[dict] = None


class VideoIngredient(BaseModel):
    name: str
    quantity: Optional[Union[str, int, float]] = None
    unit: Optional[str] = None
    notes: Optional[str] = None


class VideoStep(BaseModel):
    t_in: Optional[str] = None
    t_out: Optional[str] = None
    instruction: str = ""


class VideoRecipePayload(BaseModel):
    """The JSON document the recipe prompt asks for."""

    title: str
    servings: Optional[Union[int, float, str]] = None
    prep_time: Optional[Union[str, int, float]] = None
    cook_time: Optional[Union[str, int, float]] = None
    total_time: Optional[Union[str, int, float]] = None
    ingredients: List[VideoIngredient] = Field(default_factory=list)
    steps: List[VideoStep] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("title must not be empty")
        return value.strip()

    @field_validator("ingredients", "steps", "tools", "tips", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("ingredients", mode="before")
    @classmethod
    def _ingredient_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"name": v} if isinstance(v, str) else v for v in value]
        return value

    @field_validator("steps", mode="before")
    @classmethod
    def _step_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"instruction": v} if isinstance(v, str) else v for v in value]
        return value


def parse_upload_response(body: Any) -> TaskAccepted:
    """``{data: {taskId}}`` or ``{taskId}``; anything else is an upload failure."""
    if isinstance(body, dict):
        data = body.get("data")
        task_id = data.get("taskId") if isinstance(data, dict) else None
        task_id = task_id or body.get("taskId")
        if task_id:
            return TaskAccepted(task_id=str(task_id))
    logger.warning("Upload response carried no task id: %s", str(body)[:200])
    raise UploadFailed("The video service did not return a task id for this upload.")


def parse_status_response(body: Any) -> TaskStatus:
    """``{data: {videos: [{video_no}]}}`` is ready once any video number is present."""
    if not isinstance(body, dict):
        raise InvalidResponse("Unrecognized task status response from the video service.")
    data = body.get("data")
    if data is None:
        return TaskPending()
    if not isinstance(data, dict):
        raise InvalidResponse("Unrecognized task status response from the video service.")
    videos = data.get("videos") or []
    if not isinstance(videos, list):
        raise InvalidResponse("Unrecognized task status response from the video service.")
    video_nos = [
        str(v["video_no"]) for v in videos if isinstance(v, dict) and v.get("video_no")
    ]
    if video_nos:
        return TaskReady(video_nos=video_nos)
    return TaskPending()


def parse_chat_response(body: Any) -> ChatAnswer:
    """``{data: {content}}``, ``{answer}`` or a bare string/JSON document."""
    if isinstance(body, str):
        return ChatAnswer(text=body)
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, dict) and isinstance(data.get("content"), (str, dict)):
            content = data["content"]
            return ChatAnswer(text=content) if isinstance(content, str) else ChatAnswer(payload=content)
        if isinstance(body.get("answer"), (str, dict)):
            answer = body["answer"]
            return ChatAnswer(text=answer) if isinstance(answer, str) else ChatAnswer(payload=answer)
        if "title" in body:
            return ChatAnswer(payload=body)
    raise InvalidResponse("Unrecognized chat response shape from the video service.")


def _json_from_text(text: str) -> Optional[dict]:
    candidates = [text.strip()]
    fenced = _FENCED_JSON_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def parse_recipe_payload(answer: ChatAnswer) -> VideoRecipePayload:
    """Validate the answer against the prompt schema; a missing title is invalid."""
    payload = answer.payload
    if payload is None and answer.text is not None:
        payload = _json_from_text(answer.text)
    if payload is None:
        logger.warning("Chat answer was not JSON: %s", (answer.text or "")[:200])
        raise InvalidResponse("The video service answer did not contain a JSON recipe.")
    try:
        return VideoRecipePayload.model_validate(payload)
    except ValidationError as exc:
        raise InvalidResponse(
            "The video service returned a recipe without the required fields.",
            details={"errors": exc.errors(include_url=False, include_input=False)},
        ) from exc
