"""Services package for business logic."""

from services.aggregation import (
    AggregateMetrics,
    CampaignDetail,
    CampaignPage,
    CampaignRollup,
    DailyMetricsPage,
    DailyRollup,
    MetricsAggregationService,
    PlatformRollup,
    QueryValidationError,
    SORT_EXPRESSIONS,
    WorkspaceOverview,
)

__all__ = [
    "AggregateMetrics",
    "CampaignDetail",
    "CampaignPage",
    "CampaignRollup",
    "DailyMetricsPage",
    "DailyRollup",
    "MetricsAggregationService",
    "PlatformRollup",
    "QueryValidationError",
    "SORT_EXPRESSIONS",
    "WorkspaceOverview",
]
