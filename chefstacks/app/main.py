import logging
import uuid
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from chefstacks.app.api.routes import api_router
from chefstacks.app.schemas.extraction import ErrorBody, FieldError

logger = logging.getLogger(__name__)


def _field_path(loc) -> Optional[str]:
    return ".".join(str(part) for part in loc if part is not None) or None


async def validation_exception_handler(request, exc: RequestValidationError):
    body = ErrorBody(
        error_code="validation_error",
        message="Invalid request payload.",
        details=[
            FieldError(field=_field_path(err.get("loc", ())), message=err.get("msg", "Invalid value"))
            for err in exc.errors()
        ],
        job_id=str(uuid.uuid4()),
    )
    logger.info("Rejected request payload (%d errors, job %s)", len(body.details), body.job_id)
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump())


def create_app() -> FastAPI:
    app = FastAPI(title="Chef Stacks", version="0.1.0")
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(api_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
