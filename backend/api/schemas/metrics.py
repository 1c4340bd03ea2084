"""Workspace metrics schema models."""

from typing import Optional

from pydantic import BaseModel

from .common import DailyMetricsResponse, MetricsResponse, PaginationMeta


class OverviewResponse(BaseModel):
    """Workspace totals over a date window."""
    metrics: MetricsResponse
    campaign_count: int = 0
    platform_count: int = 0
    first_date: Optional[str] = None
    last_date: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None


class PlatformMetricsResponse(BaseModel):
    platform: str
    campaign_count: int
    metrics: MetricsResponse


class PlatformComparisonResponse(BaseModel):
    """Metrics per platform, highest spend first."""
    data: list[PlatformMetricsResponse]


class TrendsResponse(BaseModel):
    """Metrics per day, oldest first."""
    data: list[DailyMetricsResponse]


class DailyMetricRowResponse(BaseModel):
    """One stored (campaign, date) row."""
    campaign_id: str
    campaign_name: Optional[str] = None
    platform: Optional[str] = None
    date: str
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    conversions: float = 0.0
    revenue: float = 0.0
    upload_job_id: Optional[str] = None
    updated_at: Optional[str] = None


class PaginatedDailyMetricsResponse(BaseModel):
    data: list[DailyMetricRowResponse]
    meta: PaginationMeta
    sort_order: str
