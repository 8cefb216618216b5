from typing import List, Optional

from pydantic import BaseModel, Field


class ExtractRequest(BaseModel):
    url: str = Field(min_length=1)
    skip_preflight: bool = False


class PreflightRequest(BaseModel):
    url: str = Field(min_length=1)
    allow_override: bool = False


class FieldError(BaseModel):
    field: Optional[str] = None
    message: str


class ErrorBody(BaseModel):
    """Error payload for requests rejected before reaching the pipeline."""

    error_code: str
    message: str
    details: List[FieldError] = Field(default_factory=list)
    job_id: str
