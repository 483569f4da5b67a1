"""
Tradewise System Router

Endpoints:
    GET /api/health - Health check with component status
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ... import __version__
from ..dependencies import Container, get_container
from .base import get_timestamp

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["System"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall status: healthy or degraded")
    version: str = Field(..., description="Package version")
    components: Dict[str, bool] = Field(..., description="Component health status")
    timestamp: str = Field(..., description="ISO timestamp of the check")


@router.get("/health", response_model=HealthResponse)
async def health_check(container: Container = Depends(get_container)) -> HealthResponse:
    """
    Health check endpoint.

    Reports "degraded" when any engine fails its own health check.
    """
    components = {"api": True, **container.health()}
    status = "healthy" if all(components.values()) else "degraded"
    if status != "healthy":
        logger.warning(f"Health check degraded: {components}")

    return HealthResponse(
        status=status,
        version=__version__,
        components=components,
        timestamp=get_timestamp(),
    )
