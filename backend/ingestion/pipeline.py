"""Upload ingestion pipeline.

Runs one upload job from its stored file to a terminal state:

    queued -> processing -> parse -> map -> (validate + write per batch)
           -> completed | failed

Scheduled as a FastAPI background task by the uploads router; the HTTP
request that created the job has already returned.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from config import AppConfig
from storage.database import Database, run_blocking
from storage.models import UploadJob
from storage.repositories import InvalidTransitionError, TemplateRepository, UploadRepository

from .columns import map_columns
from .errors import IngestionError
from .parser import parse_upload
from .validator import RowValidator
from .writer import IngestionWriter, WriteResult

logger = logging.getLogger(__name__)


def stored_file_path(config: AppConfig, job: UploadJob) -> Path:
    return config.upload_dir / job.stored_filename


def report_date(job: UploadJob) -> Optional[str]:
    """Date given to rows of a file without a date column."""
    if job.date_from:
        return job.date_from
    # created_at is an ISO UTC timestamp
    return job.created_at[:10] if job.created_at else None


async def resolve_template_entries(
    db: Database,
    job: UploadJob,
) -> Optional[List[Tuple[str, str]]]:
    """Mapping entries for a job: its own template, else the platform default.

    Returns None when neither exists, which selects alias detection.
    """
    templates = TemplateRepository(db)
    template = None
    if job.mapping_template_id:
        template = await templates.get(job.workspace_id, job.mapping_template_id)
        if template is None:
            logger.warning(
                f"Upload {job.id}: mapping template {job.mapping_template_id} not found, "
                f"trying the {job.platform} default"
            )
    if template is None:
        template = await templates.get_default(job.workspace_id, job.platform)
    if template is None:
        return None

    logger.info(f"Upload {job.id}: using mapping template '{template.name}'")
    return [(entry.source_column, entry.target_field) for entry in template.mapping]


async def run_upload_job(job_id: str, db: Database, config: AppConfig) -> Optional[WriteResult]:
    """Process a queued upload job to completion or failure.

    Job-level errors are recorded on the job (status failed, error_text) and
    not re-raised; row-level errors are counted and the job still completes.

    Returns:
        The write counters for a completed job, None otherwise.
    """
    uploads = UploadRepository(db)

    try:
        job = await uploads.mark_processing(job_id)
    except InvalidTransitionError as e:
        # Deleted or already picked up
        logger.warning(f"Skipping upload {job_id}: {e}")
        return None

    try:
        content = await run_blocking(stored_file_path(config, job).read_bytes)
        parsed = await run_blocking(parse_upload, content, job.content_type, job.original_filename)

        entries = await resolve_template_entries(db, job)
        mapping = map_columns(parsed.header, entries)
        if mapping.unmapped:
            logger.info(f"Upload {job.id}: ignoring columns {mapping.unmapped}")

        await uploads.set_rows_total(job.id, parsed.row_count)
        job.rows_total = parsed.row_count

        validator = RowValidator(
            mapping,
            missing_numeric_policy=config.ingestion.missing_numeric_policy,
            date_from=job.date_from,
            date_to=job.date_to,
            default_date=report_date(job),
        )
        writer = IngestionWriter(
            db,
            job,
            batch_size=config.ingestion.batch_size,
            max_row_errors_stored=config.ingestion.max_row_errors_stored,
        )
        result = await writer.write(parsed.rows, validator.validate)
        await uploads.complete(job.id)
        return result

    except IngestionError as e:
        logger.warning(f"Upload {job_id} rejected: {e}")
        await uploads.fail(job_id, str(e))
    except FileNotFoundError:
        logger.error(f"Upload {job_id}: stored file {job.stored_filename} is missing")
        await uploads.fail(job_id, "Uploaded file is no longer available")
    except Exception as e:
        logger.exception(f"Upload {job_id} failed during processing")
        await uploads.fail(job_id, f"Processing failed: {e}")

    return None
