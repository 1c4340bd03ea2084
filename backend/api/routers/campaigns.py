"""Campaigns Router - campaign rollups over metrics_daily.

Sorting is restricted to the keys of SORT_EXPRESSIONS; anything else is a
400 before any aggregation SQL runs.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_aggregation_service
from api.schemas import (
    AdResponse,
    AdSetResponse,
    CampaignDetailResponse,
    CampaignResponse,
    DailyMetricsResponse,
    MetricsResponse,
    PaginatedCampaignsResponse,
    PaginationMeta,
)
from services.aggregation import (
    CampaignRollup,
    DailyRollup,
    MetricsAggregationService,
    QueryValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{workspace_id}/campaigns", tags=["Campaigns"])


def campaign_response(rollup: CampaignRollup) -> CampaignResponse:
    return CampaignResponse(
        id=rollup.id,
        name=rollup.name,
        platform=rollup.platform,
        platform_campaign_id=rollup.platform_campaign_id,
        status=rollup.status,
        days_active=rollup.days_active,
        metrics=MetricsResponse(**asdict(rollup.metrics)),
    )


def daily_response(rollup: DailyRollup) -> DailyMetricsResponse:
    return DailyMetricsResponse(date=rollup.date, metrics=MetricsResponse(**asdict(rollup.metrics)))


@router.get("", response_model=PaginatedCampaignsResponse)
async def list_campaigns(
    workspace_id: str,
    sort_by: str = Query("spend", description="Metric or field to sort by"),
    sort_order: str = Query("desc", description="asc or desc"),
    platform: Optional[list[str]] = Query(None, description="Platform filter (repeatable)"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    search: Optional[str] = Query(None, description="Campaign name contains"),
    include_empty: bool = Query(True, description="Include campaigns with no metrics in range"),
    service: MetricsAggregationService = Depends(get_aggregation_service),
):
    """
    List campaigns with aggregated metrics.

    Ratios (ctr, cpm, cpc, cpa, cvr, roas) are null when their denominator
    is zero and always sort last.
    """
    try:
        result = await service.get_campaigns(
            workspace_id,
            platforms=platform,
            date_from=date_from,
            date_to=date_to,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
            search=search,
            include_empty=include_empty,
        )
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to list campaigns: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list campaigns: {str(e)}")

    return PaginatedCampaignsResponse(
        data=[campaign_response(c) for c in result.campaigns],
        meta=PaginationMeta.build(
            total=result.total, returned=len(result.campaigns), page=page, limit=limit,
        ),
        sort_by=sort_by,
        sort_order=sort_order.lower(),
    )


@router.get("/{campaign_id}", response_model=CampaignDetailResponse)
async def get_campaign(
    workspace_id: str,
    campaign_id: str,
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    service: MetricsAggregationService = Depends(get_aggregation_service),
):
    """Get a campaign with totals, daily breakdown and ad sets/ads."""
    try:
        detail = await service.get_campaign_detail(
            workspace_id, campaign_id, date_from=date_from, date_to=date_to,
        )
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get campaign {campaign_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get campaign: {str(e)}")

    if detail is None:
        raise HTTPException(status_code=404, detail="Campaign not found")

    return CampaignDetailResponse(
        campaign=campaign_response(detail.campaign),
        daily=[daily_response(d) for d in detail.daily],
        ad_sets=[
            AdSetResponse(
                id=ad_set.id,
                name=ad_set.name,
                status=ad_set.status,
                ads=[AdResponse(id=ad.id, name=ad.name, status=ad.status) for ad in ads],
            )
            for ad_set, ads in detail.ad_sets
        ],
    )
