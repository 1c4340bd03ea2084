"""Upload job repository.

Stores upload jobs and their rejected rows, and enforces the job lifecycle:

    queued -> processing -> completed | failed

Every transition is a single UPDATE guarded by the expected current status,
so a transition from the wrong state changes nothing and raises
InvalidTransitionError instead.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Optional

from .base import BaseRepository, new_id
from ..database import utc_now
from ..models import UploadJob, UploadRowError, UploadStatus

logger = logging.getLogger(__name__)

_JOB_COLUMNS = """
    id, workspace_id, user_id, platform, original_filename, stored_filename,
    content_type, file_size, status, progress, rows_total, rows_processed,
    rows_success, rows_error, error_text, mapping_template_id, date_from,
    date_to, retry_of, started_at, completed_at, created_at, updated_at
"""


class InvalidTransitionError(Exception):
    """Raised when a job is not in the state an operation requires."""

    def __init__(self, job_id: str, action: str, status: Optional[str] = None):
        self.job_id = job_id
        self.action = action
        self.status = status
        if status:
            message = f"Cannot {action} upload {job_id} while it is {status}"
        else:
            message = f"Cannot {action} upload {job_id}"
        super().__init__(message)


def _row_to_job(row: sqlite3.Row) -> UploadJob:
    return UploadJob(
        id=row["id"],
        workspace_id=row["workspace_id"],
        user_id=row["user_id"],
        platform=row["platform"],
        original_filename=row["original_filename"],
        stored_filename=row["stored_filename"],
        content_type=row["content_type"],
        file_size=row["file_size"],
        status=row["status"],
        progress=row["progress"],
        rows_total=row["rows_total"],
        rows_processed=row["rows_processed"],
        rows_success=row["rows_success"],
        rows_error=row["rows_error"],
        error_text=row["error_text"],
        mapping_template_id=row["mapping_template_id"],
        date_from=row["date_from"],
        date_to=row["date_to"],
        retry_of=row["retry_of"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UploadRepository(BaseRepository[UploadJob]):
    """Repository for upload jobs and their row errors."""

    # ==================== Creation & Lookup ====================

    async def create(
        self,
        workspace_id: str,
        user_id: str,
        platform: str,
        original_filename: str,
        stored_filename: str,
        content_type: Optional[str] = None,
        file_size: int = 0,
        mapping_template_id: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        retry_of: Optional[str] = None,
    ) -> UploadJob:
        """Create a queued job, creating the workspace on first use."""
        now = utc_now()
        job = UploadJob(
            id=new_id(),
            workspace_id=workspace_id,
            user_id=user_id,
            platform=platform,
            original_filename=original_filename,
            stored_filename=stored_filename,
            content_type=content_type,
            file_size=file_size,
            mapping_template_id=mapping_template_id,
            date_from=date_from,
            date_to=date_to,
            retry_of=retry_of,
            created_at=now,
            updated_at=now,
        )

        def _insert(conn: sqlite3.Connection) -> None:
            self.ensure_workspace(conn, workspace_id)
            conn.execute(
                """
                INSERT INTO upload_jobs (
                    id, workspace_id, user_id, platform, original_filename,
                    stored_filename, content_type, file_size, status,
                    mapping_template_id, date_from, date_to, retry_of,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.id, job.workspace_id, job.user_id, job.platform,
                    job.original_filename, job.stored_filename, job.content_type,
                    job.file_size, job.status, job.mapping_template_id,
                    job.date_from, job.date_to, job.retry_of,
                    job.created_at, job.updated_at,
                ),
            )

        await self._run_in_transaction(_insert)
        logger.info(f"Created upload job {job.id} for workspace {workspace_id} ({platform})")
        return job

    async def get_by_id(self, job_id: str) -> Optional[UploadJob]:
        row = await self._execute(
            f"SELECT {_JOB_COLUMNS} FROM upload_jobs WHERE id = ?",
            (job_id,),
            fetch="one",
        )
        return _row_to_job(row) if row else None

    async def get(self, workspace_id: str, job_id: str) -> Optional[UploadJob]:
        """Get a job scoped to its workspace."""
        row = await self._execute(
            f"SELECT {_JOB_COLUMNS} FROM upload_jobs WHERE id = ? AND workspace_id = ?",
            (job_id, workspace_id),
            fetch="one",
        )
        return _row_to_job(row) if row else None

    async def list_jobs(
        self,
        workspace_id: str,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> tuple[list[UploadJob], int]:
        """List jobs for a workspace, newest first.

        Returns:
            Tuple of (jobs on the requested page, total matching jobs).
        """
        conditions = ["workspace_id = ?"]
        params: list = [workspace_id]
        if status:
            conditions.append("status = ?")
            params.append(status)
        if platform:
            conditions.append("platform = ?")
            params.append(platform)
        where_clause = " AND ".join(conditions)

        count_row = await self._execute(
            f"SELECT COUNT(*) AS total FROM upload_jobs WHERE {where_clause}",
            tuple(params),
            fetch="one",
        )
        rows = await self._execute(
            f"""
            SELECT {_JOB_COLUMNS} FROM upload_jobs
            WHERE {where_clause}
            ORDER BY created_at DESC, rowid DESC
            LIMIT ? OFFSET ?
            """,
            tuple(params) + (limit, (page - 1) * limit),
            fetch="all",
        )
        return [_row_to_job(row) for row in rows], count_row["total"]

    async def count_by_stored_filename(self, stored_filename: str) -> int:
        """Number of jobs that read the given stored file."""
        row = await self._execute(
            "SELECT COUNT(*) AS total FROM upload_jobs WHERE stored_filename = ?",
            (stored_filename,),
            fetch="one",
        )
        return row["total"]

    # ==================== Queued-only Operations ====================

    async def update_queued(
        self,
        workspace_id: str,
        job_id: str,
        fields: dict,
    ) -> UploadJob:
        """Change the template or report window of a job that has not started.

        Args:
            fields: Subset of mapping_template_id, date_from, date_to.

        Raises:
            InvalidTransitionError: If the job has left the queued state.
        """
        allowed = {"mapping_template_id", "date_from", "date_to"}
        updates = {k: v for k, v in fields.items() if k in allowed}
        if updates:
            set_clause = ", ".join(f"{key} = ?" for key in updates)
            changed = await self._execute(
                f"""
                UPDATE upload_jobs SET {set_clause}, updated_at = ?
                WHERE id = ? AND workspace_id = ? AND status = ?
                """,
                tuple(updates.values()) + (
                    utc_now(), job_id, workspace_id, UploadStatus.QUEUED.value,
                ),
            )
            if changed == 0:
                await self._raise_transition(workspace_id, job_id, "update")

        job = await self.get(workspace_id, job_id)
        if job is None:
            raise InvalidTransitionError(job_id, "update")
        if job.status != UploadStatus.QUEUED.value:
            raise InvalidTransitionError(job_id, "update", job.status)
        return job

    async def delete(self, workspace_id: str, job_id: str) -> UploadJob:
        """Delete a job that is not being processed.

        Row errors are removed with it. Metrics it wrote stay in place.

        Raises:
            InvalidTransitionError: If the job is processing.
        """
        job = await self.get(workspace_id, job_id)
        if job is None:
            raise InvalidTransitionError(job_id, "delete")
        changed = await self._execute(
            "DELETE FROM upload_jobs WHERE id = ? AND workspace_id = ? AND status != ?",
            (job_id, workspace_id, UploadStatus.PROCESSING.value),
        )
        if changed == 0:
            await self._raise_transition(workspace_id, job_id, "delete")
        logger.info(f"Deleted upload job {job_id}")
        return job

    # ==================== Lifecycle Transitions ====================

    async def mark_processing(self, job_id: str) -> UploadJob:
        """queued -> processing."""
        now = utc_now()
        changed = await self._execute(
            """
            UPDATE upload_jobs SET status = ?, started_at = ?, updated_at = ?
            WHERE id = ? AND status = ?
            """,
            (UploadStatus.PROCESSING.value, now, now, job_id, UploadStatus.QUEUED.value),
        )
        if changed == 0:
            await self._raise_transition(None, job_id, "start")
        job = await self.get_by_id(job_id)
        logger.info(f"Upload job {job_id} is processing")
        return job

    async def set_rows_total(self, job_id: str, rows_total: int) -> None:
        """Record the data row count once the file has been parsed."""
        changed = await self._execute(
            """
            UPDATE upload_jobs SET rows_total = ?, updated_at = ?
            WHERE id = ? AND status = ? AND rows_processed = 0
            """,
            (rows_total, utc_now(), job_id, UploadStatus.PROCESSING.value),
        )
        if changed == 0:
            await self._raise_transition(None, job_id, "size")

    def apply_batch(
        self,
        conn: sqlite3.Connection,
        job_id: str,
        rows_processed: int,
        rows_success: int,
        rows_error: int,
        progress: int,
        row_errors: Iterable[UploadRowError] = (),
    ) -> None:
        """Persist counters and row errors for one batch.

        Runs on the caller's connection so the counters commit together with
        the batch's metric upserts. Counters and progress never move backwards.
        """
        cursor = conn.execute(
            """
            UPDATE upload_jobs
            SET rows_processed = ?, rows_success = ?, rows_error = ?,
                progress = ?, updated_at = ?
            WHERE id = ? AND status = ?
              AND rows_processed <= ? AND progress <= ?
            """,
            (
                rows_processed, rows_success, rows_error, progress, utc_now(),
                job_id, UploadStatus.PROCESSING.value, rows_processed, progress,
            ),
        )
        if cursor.rowcount == 0:
            raise InvalidTransitionError(job_id, "record progress for")

        conn.executemany(
            "INSERT INTO upload_row_errors (upload_job_id, row_number, reason) VALUES (?, ?, ?)",
            [(job_id, e.row_number, e.reason) for e in row_errors],
        )

    async def complete(self, job_id: str) -> UploadJob:
        """processing -> completed, only once every row has been processed."""
        now = utc_now()
        changed = await self._execute(
            """
            UPDATE upload_jobs
            SET status = ?, progress = 100, completed_at = ?, updated_at = ?
            WHERE id = ? AND status = ? AND rows_processed = rows_total
            """,
            (UploadStatus.COMPLETED.value, now, now, job_id, UploadStatus.PROCESSING.value),
        )
        if changed == 0:
            await self._raise_transition(None, job_id, "complete")
        job = await self.get_by_id(job_id)
        logger.info(
            f"Upload job {job_id} completed: {job.rows_success} ok, "
            f"{job.rows_error} rejected of {job.rows_total}"
        )
        return job

    async def fail(self, job_id: str, error_text: str) -> Optional[UploadJob]:
        """processing -> failed. Counters keep their last persisted values."""
        now = utc_now()
        changed = await self._execute(
            """
            UPDATE upload_jobs
            SET status = ?, error_text = ?, completed_at = ?, updated_at = ?
            WHERE id = ? AND status = ?
            """,
            (UploadStatus.FAILED.value, error_text, now, now, job_id, UploadStatus.PROCESSING.value),
        )
        if changed == 0:
            await self._raise_transition(None, job_id, "fail")
        logger.warning(f"Upload job {job_id} failed: {error_text}")
        return await self.get_by_id(job_id)

    async def reprocess(self, workspace_id: str, job_id: str, user_id: str) -> UploadJob:
        """Create a new queued job from a failed job's stored file.

        The failed job itself is left untouched.

        Raises:
            InvalidTransitionError: If the source job is not failed.
        """
        source = await self.get(workspace_id, job_id)
        if source is None:
            raise InvalidTransitionError(job_id, "reprocess")
        if source.status != UploadStatus.FAILED.value:
            raise InvalidTransitionError(job_id, "reprocess", source.status)

        return await self.create(
            workspace_id=workspace_id,
            user_id=user_id,
            platform=source.platform,
            original_filename=source.original_filename,
            stored_filename=source.stored_filename,
            content_type=source.content_type,
            file_size=source.file_size,
            mapping_template_id=source.mapping_template_id,
            date_from=source.date_from,
            date_to=source.date_to,
            retry_of=source.id,
        )

    # ==================== Row Errors ====================

    async def get_row_errors(
        self,
        job_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[UploadRowError], int]:
        """Stored row errors for a job in row order, with the stored total."""
        count_row = await self._execute(
            "SELECT COUNT(*) AS total FROM upload_row_errors WHERE upload_job_id = ?",
            (job_id,),
            fetch="one",
        )
        rows = await self._execute(
            """
            SELECT upload_job_id, row_number, reason FROM upload_row_errors
            WHERE upload_job_id = ?
            ORDER BY row_number, id
            LIMIT ? OFFSET ?
            """,
            (job_id, limit, offset),
            fetch="all",
        )
        errors = [
            UploadRowError(
                upload_job_id=row["upload_job_id"],
                row_number=row["row_number"],
                reason=row["reason"],
            )
            for row in rows
        ]
        return errors, count_row["total"]

    async def _raise_transition(
        self,
        workspace_id: Optional[str],
        job_id: str,
        action: str,
    ) -> None:
        if workspace_id is None:
            job = await self.get_by_id(job_id)
        else:
            job = await self.get(workspace_id, job_id)
        raise InvalidTransitionError(job_id, action, job.status if job else None)
