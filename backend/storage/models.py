"""Data models for PulseDeck storage.

This module contains all dataclass definitions used across storage repositories.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Platform(str, Enum):
    """Advertising platforms an export file can come from."""

    FACEBOOK = "facebook"
    GOOGLE = "google"
    TIKTOK = "tiktok"
    SNAPCHAT = "snapchat"
    LINKEDIN = "linkedin"
    TWITTER = "twitter"

    @classmethod
    def values(cls) -> list[str]:
        return [p.value for p in cls]


class UploadStatus(str, Enum):
    """Upload job lifecycle: queued -> processing -> completed | failed."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class MappingEntry:
    """One source column -> canonical field association."""

    source_column: str
    target_field: str


@dataclass
class MappingTemplate:
    """Saved column mapping for a platform.

    Attributes:
        id: Template identifier.
        workspace_id: Owning workspace.
        platform: Platform the export layout belongs to.
        name: Display name.
        mapping: Ordered column associations.
        is_default: Used for uploads that name no template.
    """

    id: str
    workspace_id: str
    platform: str
    name: str
    mapping: list[MappingEntry] = field(default_factory=list)
    is_default: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class UploadJob:
    """One ingestion attempt.

    Attributes:
        id: Opaque job identifier.
        workspace_id: Owning workspace.
        user_id: User who submitted the file.
        platform: Platform of the export.
        original_filename: Name the client sent.
        stored_filename: Name of the file in the upload directory.
        status: Lifecycle state (see UploadStatus).
        progress: floor(rows_processed / rows_total * 100).
        rows_total: Data rows in the file, set once parsing succeeds.
        rows_processed: Rows consumed by the writer so far.
        rows_success: Rows upserted into metrics_daily.
        rows_error: Rows rejected by validation.
        error_text: Fatal error message for failed jobs.
        mapping_template_id: Template applied to the header, if any.
        date_from: Optional report window start (ISO date).
        date_to: Optional report window end (ISO date).
        retry_of: Failed job this one reprocesses.
    """

    id: str
    workspace_id: str
    user_id: str
    platform: str
    original_filename: str
    stored_filename: str
    status: str = UploadStatus.QUEUED.value
    progress: int = 0
    rows_total: int = 0
    rows_processed: int = 0
    rows_success: int = 0
    rows_error: int = 0
    error_text: Optional[str] = None
    content_type: Optional[str] = None
    file_size: int = 0
    mapping_template_id: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    retry_of: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class UploadRowError:
    """A data row rejected by validation."""

    upload_job_id: str
    row_number: int
    reason: str


@dataclass
class Campaign:
    """Campaign identity record. Metrics live in metrics_daily."""

    id: str
    workspace_id: str
    platform: str
    name: str
    platform_campaign_id: Optional[str] = None
    status: str = "active"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class AdSet:
    id: str
    campaign_id: str
    name: str
    status: str = "active"


@dataclass
class Ad:
    id: str
    ad_set_id: str
    name: str
    status: str = "active"


@dataclass
class MetricsDailyRow:
    """One (campaign_id, date) fact row."""

    campaign_id: str
    date: str
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    conversions: float = 0.0
    revenue: float = 0.0
    # Filled on reads
    platform: Optional[str] = None
    campaign_name: Optional[str] = None
    upload_job_id: Optional[str] = None
    updated_at: Optional[str] = None
