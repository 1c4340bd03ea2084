"""API Schema models for PulseDeck."""

from .common import (
    DailyMetricsResponse,
    MetricsResponse,
    PaginationMeta,
    StatusResponse,
)

from .uploads import (
    PaginatedUploadsResponse,
    RowErrorResponse,
    RowErrorsResponse,
    UploadJobResponse,
    UploadUpdateRequest,
)

from .templates import (
    MappingEntrySchema,
    MappingTemplateCreate,
    MappingTemplateResponse,
    MappingTemplateUpdate,
)

from .campaigns import (
    AdResponse,
    AdSetResponse,
    CampaignDetailResponse,
    CampaignResponse,
    PaginatedCampaignsResponse,
)

from .metrics import (
    DailyMetricRowResponse,
    PaginatedDailyMetricsResponse,
    OverviewResponse,
    PlatformComparisonResponse,
    PlatformMetricsResponse,
    TrendsResponse,
)

from .system import HealthResponse

__all__ = [
    # Common
    "DailyMetricsResponse",
    "MetricsResponse",
    "PaginationMeta",
    "StatusResponse",
    # Uploads
    "PaginatedUploadsResponse",
    "RowErrorResponse",
    "RowErrorsResponse",
    "UploadJobResponse",
    "UploadUpdateRequest",
    # Templates
    "MappingEntrySchema",
    "MappingTemplateCreate",
    "MappingTemplateResponse",
    "MappingTemplateUpdate",
    # Campaigns
    "AdResponse",
    "AdSetResponse",
    "CampaignDetailResponse",
    "CampaignResponse",
    "PaginatedCampaignsResponse",
    # Metrics
    "DailyMetricRowResponse",
    "PaginatedDailyMetricsResponse",
    "OverviewResponse",
    "PlatformComparisonResponse",
    "PlatformMetricsResponse",
    "TrendsResponse",
    # System
    "HealthResponse",
]
