"""Client for the video-understanding service (submit, poll, chat).

One extraction is an explicit state machine::

    SUBMITTED -> PROCESSING -> READY -> PARSED
                     |
                     +-> TIMED_OUT

with FAILED reachable from any state on an unrecoverable error and CANCELLED
whenever the caller's cancel event is set. Cancellation is checked at every
transition and interrupts the poll pause immediately.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import httpx
from pydantic import BaseModel, Field

from chefstacks.app.core.config import Settings
from chefstacks.app.services.extraction.errors import (
    ExtractionCancelled,
    ExtractionError,
    TimedOut,
    TransportError,
    UploadFailed,
)
from chefstacks.app.services.extraction.ingredient_parser import extract_ingredients, tag_ingredients
from chefstacks.app.services.extraction.models import (
    PartialRecipe,
    Provenance,
    SourceURL,
    Step,
    StepValue,
    Times,
)
from chefstacks.app.services.extraction.parsing_utils import clean_text, parse_minutes, parse_servings
from chefstacks.app.services.extraction.url_routing import thumbnail_for
from chefstacks.app.services.extraction.video_responses import (
    RECIPE_PROMPT,
    RECIPE_PROMPT_VERSION,
    TaskReady,
    VideoRecipePayload,
    parse_chat_response,
    parse_recipe_payload,
    parse_status_response,
    parse_upload_response,
)
from chefstacks.app.services.timestamps import parse_timestamp

logger = logging.getLogger(__name__)


class VideoState(str, Enum):
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    READY = "ready"
    PARSED = "parsed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CANCELLED = "cancelled"


class VideoExtraction(BaseModel):
    """Outcome of a successful video extraction."""

    partial: PartialRecipe
    task_id: str
    video_nos: List[str] = Field(default_factory=list)
    thumbnail_url: Optional[str] = None
    prompt_version: str = RECIPE_PROMPT_VERSION
    polls: int = 0
    waited_seconds: float = 0.0


Sleep = Callable[[float], Awaitable[Any]]
T = TypeVar("T")


def _is_terminal_status(code: int) -> bool:
    return 400 <= code < 500 and code not in (408, 429)


def payload_to_partial(payload: VideoRecipePayload, thumbnail_url: Optional[str]) -> PartialRecipe:
    """Tag every field of the service's recipe as ``memories-ai``."""
    steps: List[Step] = []
    for raw in payload.steps:
        text = clean_text(raw.instruction)
        if not text:
            continue
        steps.append(
            Step(
                value=StepValue(order=len(steps) + 1, text=text),
                from_=Provenance.MEMORIES_AI,
                # a malformed t_in leaves the step untimed
                ts=parse_timestamp(raw.t_in),
            )
        )
    ingredients = extract_ingredients([i.model_dump() for i in payload.ingredients])
    return PartialRecipe(
        provenance=Provenance.MEMORIES_AI,
        title=payload.title,
        image=thumbnail_url,
        servings=parse_servings(payload.servings),
        times=Times(
            prep_min=parse_minutes(payload.prep_time),
            cook_min=parse_minutes(payload.cook_time),
            total_min=parse_minutes(payload.total_time),
        ),
        ingredients=tag_ingredients(ingredients, Provenance.MEMORIES_AI),
        steps=steps,
        tips=[clean_text(t) for t in payload.tips if clean_text(t)],
    )


class VideoExtractionClient:
    def __init__(
        self,
        settings: Settings,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Sleep] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._clock = clock
        self._sleep = sleep
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        kwargs = {
            "base_url": self.settings.memories_base_url.rstrip("/"),
            "headers": {"Authorization": self.settings.memories_api_key or ""},
            "timeout": httpx.Timeout(self.settings.video_request_timeout_seconds),
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    @staticmethod
    def _check_cancel(cancel: Optional[asyncio.Event], state: VideoState) -> None:
        if cancel is not None and cancel.is_set():
            logger.info("Video extraction cancelled in state %s", state.value)
            raise ExtractionCancelled("The extraction was cancelled.", details={"state": state.value})

    async def _pause(self, seconds: float, cancel: Optional[asyncio.Event]) -> None:
        if seconds <= 0:
            return
        if self._sleep is not None:
            await self._sleep(seconds)
            return
        if cancel is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _guarded(
        self,
        awaitable: Awaitable[T],
        cancel: Optional[asyncio.Event],
        state: VideoState,
        timeout: Optional[float] = None,
    ) -> T:
        """Await one request; abandon it when ``cancel`` fires or ``timeout`` elapses."""
        request = asyncio.ensure_future(awaitable)
        waiters = {request}
        if cancel is not None:
            waiters.add(asyncio.ensure_future(cancel.wait()))
        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
        if request in done:
            return request.result()
        await asyncio.gather(request, return_exceptions=True)
        self._check_cancel(cancel, state)
        raise asyncio.TimeoutError()

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    async def submit(
        self, client: httpx.AsyncClient, url: str, cancel: Optional[asyncio.Event] = None
    ) -> str:
        try:
            response = await self._guarded(
                client.post(
                    "/scraper_url_public",
                    json={"video_urls": [url], "quality": self.settings.memories_quality},
                ),
                cancel,
                VideoState.SUBMITTED,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.exception("Video upload failed for %s", url)
            raise UploadFailed(
                f"The video service rejected the upload ({exc.response.status_code}).",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.exception("Video upload failed for %s", url)
            raise UploadFailed(f"Could not reach the video service: {exc}") from exc
        return parse_upload_response(self._json(response)).task_id

    async def poll(
        self,
        client: httpx.AsyncClient,
        task_id: str,
        cancel: Optional[asyncio.Event] = None,
        budget: Optional[float] = None,
    ):
        """One status request, bounded by ``budget`` seconds when given.

        Raises TransportError on a failed or timed out request.
        """
        limit = self.settings.video_status_timeout_seconds
        if budget is not None:
            limit = min(limit, budget)
        try:
            response = await self._guarded(
                client.get(
                    "/get_video_ids_by_task_id",
                    params={"task_id": task_id, "unique_id": self.settings.memories_unique_id},
                    timeout=httpx.Timeout(limit),
                ),
                cancel,
                VideoState.PROCESSING,
                timeout=limit,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"Task status request failed ({exc.response.status_code}).",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Task status request failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Task status request timed out after {limit:.1f}s.") from exc
        return parse_status_response(self._json(response))

    async def chat(
        self,
        client: httpx.AsyncClient,
        video_nos: List[str],
        cancel: Optional[asyncio.Event] = None,
    ) -> VideoRecipePayload:
        try:
            response = await self._guarded(
                client.post(
                    "/chat",
                    json={
                        "video_nos": video_nos,
                        "prompt": RECIPE_PROMPT,
                        "session_id": int(time.time()),
                        "unique_id": self.settings.memories_unique_id,
                    },
                ),
                cancel,
                VideoState.READY,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.exception("Recipe chat request failed")
            raise TransportError(
                f"The video service failed to answer ({exc.response.status_code}).",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.exception("Recipe chat request failed")
            raise TransportError(f"Could not reach the video service: {exc}") from exc
        return parse_recipe_payload(parse_chat_response(self._json(response)))

    async def _wait_until_ready(
        self,
        client: httpx.AsyncClient,
        task_id: str,
        started: float,
        cancel: Optional[asyncio.Event],
    ):
        ceiling = self.settings.video_poll_ceiling_seconds
        polls = 0
        while True:
            self._check_cancel(cancel, VideoState.PROCESSING)
            elapsed = self._clock() - started
            if elapsed >= ceiling:
                logger.warning("Task %s still processing after %.1fs (%d polls)", task_id, elapsed, polls)
                raise TimedOut(
                    f"The video was still processing after {int(ceiling)} seconds.",
                    details={"task_id": task_id, "elapsed_seconds": elapsed, "polls": polls},
                )
            polls += 1
            interval = self.settings.video_poll_interval_seconds
            try:
                # a status request may not outlive the ceiling
                status = await self.poll(client, task_id, cancel, budget=ceiling - elapsed)
            except TransportError as exc:
                if exc.status_code is not None and _is_terminal_status(exc.status_code):
                    raise
                logger.warning("Poll %d for task %s failed: %s", polls, task_id, exc)
                interval = self.settings.video_poll_retry_interval_seconds
            else:
                if isinstance(status, TaskReady):
                    logger.info("Task %s ready after %d polls: %s", task_id, polls, status.video_nos)
                    return status, polls

            elapsed = self._clock() - started
            await self._pause(min(interval, ceiling - elapsed), cancel)

    async def extract(
        self, source: SourceURL, cancel: Optional[asyncio.Event] = None
    ) -> VideoExtraction:
        if not self.settings.memories_api_key:
            raise TransportError("The video service API key is not configured.")

        state = VideoState.SUBMITTED
        started = self._clock()
        try:
            async with self._client() as client:
                self._check_cancel(cancel, state)
                task_id = await self.submit(client, source.url, cancel)
                logger.info("Submitted %s as task %s", source.url, task_id)

                state = VideoState.PROCESSING
                ready, polls = await self._wait_until_ready(client, task_id, started, cancel)

                state = VideoState.READY
                self._check_cancel(cancel, state)
                payload = await self.chat(client, ready.video_nos, cancel)
                state = VideoState.PARSED
        except TimedOut:
            state = VideoState.TIMED_OUT
            raise
        except ExtractionCancelled:
            state = VideoState.CANCELLED
            raise
        except ExtractionError:
            state = VideoState.FAILED
            raise
        finally:
            logger.info("Video extraction for %s ended in state %s", source.url, state.value)

        thumbnail = thumbnail_for(source)
        return VideoExtraction(
            partial=payload_to_partial(payload, thumbnail),
            task_id=task_id,
            video_nos=ready.video_nos,
            thumbnail_url=thumbnail,
            polls=polls,
            waited_seconds=self._clock() - started,
        )

