"""Campaign-related schema models."""

from typing import Optional

from pydantic import BaseModel, Field

from .common import DailyMetricsResponse, MetricsResponse, PaginationMeta


class CampaignResponse(BaseModel):
    """Campaign with metrics aggregated over the requested window."""
    id: str
    name: str
    platform: str
    platform_campaign_id: Optional[str] = None
    status: str = "active"
    days_active: int = 0
    metrics: MetricsResponse


class PaginatedCampaignsResponse(BaseModel):
    """Paginated response for campaigns list."""
    data: list[CampaignResponse]
    meta: PaginationMeta
    sort_by: str
    sort_order: str


class AdResponse(BaseModel):
    id: str
    name: str
    status: str = "active"


class AdSetResponse(BaseModel):
    id: str
    name: str
    status: str = "active"
    ads: list[AdResponse] = Field(default_factory=list)


class CampaignDetailResponse(BaseModel):
    """Single campaign with daily breakdown and ad set/ad hierarchy."""
    campaign: CampaignResponse
    daily: list[DailyMetricsResponse] = Field(default_factory=list)
    ad_sets: list[AdSetResponse] = Field(default_factory=list)
