import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from chefstacks.app.api.deps import get_orchestrator
from chefstacks.app.schemas.extraction import ExtractRequest, PreflightRequest
from chefstacks.app.services.extraction import ExtractionOrchestrator
from chefstacks.app.services.extraction.errors import InvalidURL

logger = logging.getLogger(__name__)

router = APIRouter(tags=["extraction"])


@router.post("/extract")
async def extract_recipe(
    payload: ExtractRequest,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.extract(payload.url, skip_preflight=payload.skip_preflight)
    return JSONResponse(
        status_code=result.status_code or status.HTTP_200_OK,
        content=result.model_dump(mode="json", by_alias=True),
    )


@router.post("/preflight")
async def preflight_check(
    payload: PreflightRequest,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
):
    try:
        result = await orchestrator.preflight(payload.url)
    except InvalidURL as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc

    body = result.model_dump(mode="json", by_alias=True)
    overridden = payload.allow_override and not result.pass_ and result.allowOverride
    if overridden:
        logger.info("Preflight for %s overridden by caller (score %d)", payload.url, result.score)
    body["overridden"] = overridden
    return body
