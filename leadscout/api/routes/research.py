"""API endpoint for running a company leadership research pipeline."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from leadscout.services.research.pipeline import ResearchPipeline, get_research_pipeline

router = APIRouter()
logger = logging.getLogger(__name__)


class ResearchRequest(BaseModel):
    """Free-text query naming the company, usually by its domain."""

    query: str = Field(default="", description="Domain, URL, or free text containing a domain.")


@router.post("/research")
async def research_company(
    payload: ResearchRequest,
    request: Request,
    pipeline: ResearchPipeline = Depends(get_research_pipeline),
) -> JSONResponse:
    """Research a company and return its metadata and validated leadership."""
    outcome = await pipeline.run(payload.query, cancel_check=request.is_disconnected)
    if not outcome.ok:
        logger.error(
            "research.api_error",
            extra={"code": outcome.code, "status": outcome.status_code},
        )
        return JSONResponse(status_code=outcome.status_code, content={"error": str(outcome.error)})
    return JSONResponse(content=outcome.result.model_dump(by_alias=True, mode="json"))
