"""System schema models."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    version: str
    database_exists: bool = False
