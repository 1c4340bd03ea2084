"""Metrics Router - workspace overview, platform comparison and daily metrics."""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_aggregation_service
from api.routers.campaigns import daily_response
from api.schemas import (
    DailyMetricRowResponse,
    MetricsResponse,
    OverviewResponse,
    PaginatedDailyMetricsResponse,
    PaginationMeta,
    PlatformComparisonResponse,
    PlatformMetricsResponse,
    TrendsResponse,
)
from services.aggregation import MetricsAggregationService, QueryValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{workspace_id}/metrics", tags=["Metrics"])


@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    workspace_id: str,
    platform: Optional[list[str]] = Query(None, description="Platform filter (repeatable)"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    service: MetricsAggregationService = Depends(get_aggregation_service),
):
    """Workspace totals and derived ratios for the window."""
    try:
        overview = await service.get_overview(
            workspace_id, platforms=platform, date_from=date_from, date_to=date_to,
        )
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get metrics overview: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get metrics overview: {str(e)}")

    return OverviewResponse(
        metrics=MetricsResponse(**asdict(overview.metrics)),
        campaign_count=overview.campaign_count,
        platform_count=overview.platform_count,
        first_date=overview.first_date,
        last_date=overview.last_date,
        date_from=overview.date_from,
        date_to=overview.date_to,
    )


@router.get("/comparison", response_model=PlatformComparisonResponse)
async def get_platform_comparison(
    workspace_id: str,
    platform: Optional[list[str]] = Query(None, description="Platform filter (repeatable)"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    service: MetricsAggregationService = Depends(get_aggregation_service),
):
    """Metrics per platform, highest spend first."""
    try:
        rows = await service.get_platform_comparison(
            workspace_id, platforms=platform, date_from=date_from, date_to=date_to,
        )
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get platform comparison: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get platform comparison: {str(e)}")

    return PlatformComparisonResponse(
        data=[
            PlatformMetricsResponse(
                platform=row.platform,
                campaign_count=row.campaign_count,
                metrics=MetricsResponse(**asdict(row.metrics)),
            )
            for row in rows
        ]
    )


@router.get("/trends", response_model=TrendsResponse)
async def get_trends(
    workspace_id: str,
    platform: Optional[list[str]] = Query(None, description="Platform filter (repeatable)"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    campaign_id: Optional[str] = Query(None, description="Restrict to one campaign"),
    service: MetricsAggregationService = Depends(get_aggregation_service),
):
    """Metrics per day, oldest first."""
    try:
        rows = await service.get_daily_trends(
            workspace_id,
            platforms=platform,
            date_from=date_from,
            date_to=date_to,
            campaign_id=campaign_id,
        )
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get daily trends: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get daily trends: {str(e)}")

    return TrendsResponse(data=[daily_response(row) for row in rows])


@router.get("/daily", response_model=PaginatedDailyMetricsResponse)
async def list_daily_metrics(
    workspace_id: str,
    platform: Optional[list[str]] = Query(None, description="Platform filter (repeatable)"),
    campaign_id: Optional[str] = Query(None, description="Restrict to one campaign"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    sort_order: str = Query("desc", description="Date order, asc or desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    service: MetricsAggregationService = Depends(get_aggregation_service),
):
    """Stored metrics rows, one per campaign and date."""
    try:
        result = await service.get_daily_metrics(
            workspace_id,
            platforms=platform,
            campaign_id=campaign_id,
            date_from=date_from,
            date_to=date_to,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to list daily metrics: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list daily metrics: {str(e)}")

    return PaginatedDailyMetricsResponse(
        data=[DailyMetricRowResponse(**asdict(row)) for row in result.rows],
        meta=PaginationMeta.build(
            total=result.total, returned=len(result.rows), page=page, limit=limit,
        ),
        sort_order=sort_order.lower(),
    )
