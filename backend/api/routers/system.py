"""System router for PulseDeck.

This module provides the health check endpoint.
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_db
from api.schemas import HealthResponse
from storage import Database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])

VERSION = "0.1.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: Database = Depends(get_db)):
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        database_exists=db.exists,
    )
