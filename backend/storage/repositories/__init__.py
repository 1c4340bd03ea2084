"""Repository classes for PulseDeck storage.

This package provides repository classes that encapsulate database operations
for specific entity types.
"""

from .base import BaseRepository
from .campaign_repository import CampaignRepository
from .metrics_repository import MetricsRepository
from .template_repository import TemplateConflictError, TemplateRepository
from .upload_repository import InvalidTransitionError, UploadRepository

__all__ = [
    "BaseRepository",
    "CampaignRepository",
    "MetricsRepository",
    "TemplateRepository",
    "TemplateConflictError",
    "UploadRepository",
    "InvalidTransitionError",
]
