"""PulseDeck - Storage Module.

The storage layer is organized as follows:
- database.py: Database handle (executor-backed SQLite access)
- models.py: All dataclass definitions
- schema.py: Database schema
- repositories/: Specialized repository classes for each entity type

Example:
    >>> from storage import Database, UploadRepository
    >>>
    >>> db = Database("~/.pulsedeck/pulsedeck.db")
    >>> await db.initialize()
    >>> uploads = UploadRepository(db)
    >>> jobs, total = await uploads.list_jobs("workspace-1")
"""

from .database import Database, DatabaseTransaction, utc_now
from .models import (
    Ad,
    AdSet,
    Campaign,
    MappingEntry,
    MappingTemplate,
    MetricsDailyRow,
    Platform,
    UploadJob,
    UploadRowError,
    UploadStatus,
)
from .schema import SCHEMA_SQL, TABLES
from .repositories import (
    BaseRepository,
    CampaignRepository,
    InvalidTransitionError,
    MetricsRepository,
    TemplateConflictError,
    TemplateRepository,
    UploadRepository,
)

__all__ = [
    # Database
    "Database",
    "DatabaseTransaction",
    "utc_now",
    "SCHEMA_SQL",
    "TABLES",
    # Models
    "Ad",
    "AdSet",
    "Campaign",
    "MappingEntry",
    "MappingTemplate",
    "MetricsDailyRow",
    "Platform",
    "UploadJob",
    "UploadRowError",
    "UploadStatus",
    # Repositories
    "BaseRepository",
    "CampaignRepository",
    "InvalidTransitionError",
    "MetricsRepository",
    "TemplateConflictError",
    "TemplateRepository",
    "UploadRepository",
]
