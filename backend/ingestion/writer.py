"""Ingestion writer.

Consumes a parsed file batch by batch. Each batch runs in one transaction:
rows are validated, campaigns resolved, metrics_daily upserted, row errors
stored and the job counters advanced. Counters therefore never run ahead of
committed data, and a failure mid-pass leaves the counters exactly as of the
last committed batch.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from storage.database import Database
from storage.models import MetricsDailyRow, UploadJob, UploadRowError
from storage.repositories import CampaignRepository, MetricsRepository, UploadRepository
from storage.repositories.campaign_repository import campaign_identity

from .validator import RowError, RowOutcome, ValidatedRow

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


@dataclass
class WriteResult:
    """Counters after a completed pass."""

    rows_total: int = 0
    rows_processed: int = 0
    rows_success: int = 0
    rows_error: int = 0
    campaigns_touched: int = 0


def compute_progress(rows_processed: int, rows_total: int) -> int:
    """floor(rows_processed / rows_total * 100), 0 for an empty job."""
    if rows_total <= 0:
        return 0
    return min(100, rows_processed * 100 // rows_total)


class IngestionWriter:
    """Writes one upload job's rows into metrics_daily.

    Args:
        db: Database handle.
        job: The job being processed (status processing, rows_total set).
        batch_size: Rows per transaction.
        max_row_errors_stored: Cap on persisted row errors; errors beyond the
            cap are still counted in rows_error.
    """

    def __init__(
        self,
        db: Database,
        job: UploadJob,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_row_errors_stored: int = 1000,
    ):
        self.db = db
        self.job = job
        self.batch_size = max(1, batch_size)
        self.max_row_errors_stored = max_row_errors_stored

        self.uploads = UploadRepository(db)
        self.campaigns = CampaignRepository(db)
        self.metrics = MetricsRepository(db)

        self.result = WriteResult(rows_total=job.rows_total)
        self._errors_stored = 0
        self._campaign_ids: Dict[str, str] = {}
        self._ad_set_ids: Dict[Tuple[str, str], str] = {}
        self._ad_ids: Dict[Tuple[str, str], str] = {}

    async def write(
        self,
        rows: List[List[str]],
        validate: Callable[[List[str], int], RowOutcome],
    ) -> WriteResult:
        """Validate and persist all rows in file order.

        Args:
            rows: Data rows (header excluded).
            validate: Callable turning (row, 1-based row number) into an outcome.
        """
        total = len(rows)
        for start in range(0, total, self.batch_size):
            batch = rows[start:start + self.batch_size]
            await self.db.run_in_transaction(
                lambda conn, batch=batch, start=start: self._write_batch(conn, batch, start, validate)
            )
            logger.debug(
                f"Upload {self.job.id}: {self.result.rows_processed}/{total} rows "
                f"({compute_progress(self.result.rows_processed, total)}%)"
            )

        self.result.campaigns_touched = len(set(self._campaign_ids.values()))
        return self.result

    def _write_batch(
        self,
        conn: sqlite3.Connection,
        batch: List[List[str]],
        start: int,
        validate: Callable[[List[str], int], RowOutcome],
    ) -> None:
        processed = self.result.rows_processed
        success = self.result.rows_success
        errors = self.result.rows_error
        errors_stored = self._errors_stored
        new_ids: Dict[str, str] = {}
        row_errors: List[UploadRowError] = []

        for offset, row in enumerate(batch):
            outcome = validate(row, start + offset + 1)
            processed += 1
            if isinstance(outcome, ValidatedRow):
                self._write_row(conn, outcome, new_ids)
                success += 1
            else:
                errors += 1
                if errors_stored < self.max_row_errors_stored:
                    row_errors.append(self._to_stored_error(outcome))
                    errors_stored += 1

        self.uploads.apply_batch(
            conn,
            self.job.id,
            rows_processed=processed,
            rows_success=success,
            rows_error=errors,
            progress=compute_progress(processed, self.result.rows_total),
            row_errors=row_errors,
        )

        # Only reached when the batch will commit
        self.result.rows_processed = processed
        self.result.rows_success = success
        self.result.rows_error = errors
        self._errors_stored = errors_stored
        self._campaign_ids.update(new_ids)

    def _write_row(
        self,
        conn: sqlite3.Connection,
        row: ValidatedRow,
        new_ids: Dict[str, str],
    ) -> None:
        campaign_id = self._resolve_campaign(conn, row, new_ids)

        if row.ad_set_name:
            ad_set_key = (campaign_id, row.ad_set_name)
            ad_set_id = self._ad_set_ids.get(ad_set_key)
            if ad_set_id is None:
                ad_set_id = self.campaigns.resolve_ad_set(conn, campaign_id, row.ad_set_name)
                self._ad_set_ids[ad_set_key] = ad_set_id
            if row.ad_name:
                ad_key = (ad_set_id, row.ad_name)
                if ad_key not in self._ad_ids:
                    self._ad_ids[ad_key] = self.campaigns.resolve_ad(conn, ad_set_id, row.ad_name)

        self.metrics.upsert_daily(
            conn,
            MetricsDailyRow(
                campaign_id=campaign_id,
                date=row.date,
                impressions=row.impressions,
                clicks=row.clicks,
                spend=row.spend,
                conversions=row.conversions,
                revenue=row.revenue,
            ),
            workspace_id=self.job.workspace_id,
            platform=self.job.platform,
            upload_job_id=self.job.id,
        )

    def _resolve_campaign(
        self,
        conn: sqlite3.Connection,
        row: ValidatedRow,
        new_ids: Dict[str, str],
    ) -> str:
        identity = campaign_identity(row.campaign_name, row.platform_campaign_id)
        campaign_id: Optional[str] = self._campaign_ids.get(identity) or new_ids.get(identity)
        if campaign_id is None:
            campaign_id = self.campaigns.resolve_campaign(
                conn,
                self.job.workspace_id,
                self.job.platform,
                row.campaign_name,
                row.platform_campaign_id,
            )
            new_ids[identity] = campaign_id
        return campaign_id

    def _to_stored_error(self, error: RowError) -> UploadRowError:
        return UploadRowError(
            upload_job_id=self.job.id,
            row_number=error.row_number,
            reason=error.reason,
        )
