"""Common schema models shared across the API."""

from typing import Optional

from pydantic import BaseModel


class PaginationMeta(BaseModel):
    """Pagination metadata for list responses."""
    total: int
    returned: int
    page: int
    limit: int
    has_more: bool

    @classmethod
    def build(cls, total: int, returned: int, page: int, limit: int) -> "PaginationMeta":
        return cls(
            total=total,
            returned=returned,
            page=page,
            limit=limit,
            has_more=page * limit < total,
        )


class MetricsResponse(BaseModel):
    """Summed metrics with derived ratios; ratios are null when undefined."""
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    conversions: float = 0.0
    revenue: float = 0.0
    ctr: Optional[float] = None
    cpm: Optional[float] = None
    cpc: Optional[float] = None
    cpa: Optional[float] = None
    cvr: Optional[float] = None
    roas: Optional[float] = None


class DailyMetricsResponse(BaseModel):
    """Metrics for one date."""
    date: str
    metrics: MetricsResponse


class StatusResponse(BaseModel):
    """Acknowledgement for mutations without a body."""
    status: str
    id: Optional[str] = None
