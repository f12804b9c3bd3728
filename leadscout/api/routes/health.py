from __future__ import annotations

import logging

from fastapi import APIRouter

from leadscout.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "research_configured": bool(settings.exa_api_key and settings.openai_api_key),
        "enrichment": "configured" if settings.email_enrichment_url else "not configured",
        "database": "configured" if settings.database_url else "in-memory",
    }
