"""Uploads Router - Upload job creation, polling and management.

A POST stores the file, creates a queued job and returns at once; the
ingestion pass runs as a background task and clients poll the job by id.
"""

import logging
import uuid
from dataclasses import asdict
from datetime import date
from pathlib import Path, PurePath
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile

from api.dependencies import (
    get_app_config,
    get_db,
    get_template_repository,
    get_upload_repository,
    get_user_id,
)
from api.schemas import (
    PaginatedUploadsResponse,
    PaginationMeta,
    RowErrorResponse,
    RowErrorsResponse,
    StatusResponse,
    UploadJobResponse,
    UploadUpdateRequest,
)
from config import AppConfig
from ingestion.pipeline import run_upload_job
from storage import (
    Database,
    InvalidTransitionError,
    Platform,
    TemplateRepository,
    UploadJob,
    UploadRepository,
    UploadStatus,
)
from storage.database import run_blocking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{workspace_id}/uploads", tags=["Uploads"])


# =============================================================================
# Helpers
# =============================================================================

def _job_response(job: UploadJob) -> UploadJobResponse:
    return UploadJobResponse(**asdict(job))


def _stored_name(original_filename: str) -> str:
    suffix = PurePath(original_filename).suffix.lower()
    return f"{uuid.uuid4().hex}{suffix}"


def _remove_file(path: Path) -> None:
    path.unlink(missing_ok=True)


async def _check_template(
    templates: TemplateRepository,
    workspace_id: str,
    template_id: Optional[str],
    platform: str,
) -> None:
    if not template_id:
        return
    template = await templates.get(workspace_id, template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Mapping template {template_id} not found")
    if template.platform != platform:
        raise HTTPException(
            status_code=400,
            detail=f"Mapping template {template_id} is for {template.platform}, not {platform}",
        )


async def _get_job_or_404(uploads: UploadRepository, workspace_id: str, upload_id: str) -> UploadJob:
    job = await uploads.get(workspace_id, upload_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Upload not found")
    return job


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", response_model=UploadJobResponse, status_code=201)
async def create_upload(
    workspace_id: str,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="CSV or XLSX platform export"),
    platform: Platform = Form(..., description="Platform the export comes from"),
    mapping_template_id: Optional[str] = Form(None),
    date_from: Optional[date] = Form(None),
    date_to: Optional[date] = Form(None),
    config: AppConfig = Depends(get_app_config),
    db: Database = Depends(get_db),
    uploads: UploadRepository = Depends(get_upload_repository),
    templates: TemplateRepository = Depends(get_template_repository),
    user_id: str = Depends(get_user_id),
):
    """Upload an export file and queue it for ingestion.

    Returns the queued job (rows_total is 0 until the file has been parsed).
    Poll GET /uploads/{id} for progress.
    """
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=422, detail="date_from must not be after date_to")

    await _check_template(templates, workspace_id, mapping_template_id, platform.value)

    original_filename = file.filename or "upload"
    content = await file.read()
    max_bytes = config.uploads.max_file_size_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the {config.uploads.max_file_size_mb} MB upload limit",
        )

    stored_filename = _stored_name(original_filename)
    stored_path = config.upload_dir / stored_filename
    try:
        config.upload_dir.mkdir(parents=True, exist_ok=True)
        await run_blocking(stored_path.write_bytes, content)

        job = await uploads.create(
            workspace_id=workspace_id,
            user_id=user_id,
            platform=platform.value,
            original_filename=original_filename,
            stored_filename=stored_filename,
            content_type=file.content_type,
            file_size=len(content),
            mapping_template_id=mapping_template_id,
            date_from=date_from.isoformat() if date_from else None,
            date_to=date_to.isoformat() if date_to else None,
        )
    except Exception as e:
        logger.error(f"Failed to create upload for workspace {workspace_id}: {e}")
        await run_blocking(_remove_file, stored_path)
        raise HTTPException(status_code=500, detail=f"Failed to create upload: {str(e)}")

    background_tasks.add_task(run_upload_job, job.id, db, config)

    return _job_response(job)


@router.get("", response_model=PaginatedUploadsResponse)
async def list_uploads(
    workspace_id: str,
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(20, ge=1, le=100, description="Jobs per page"),
    status: Optional[UploadStatus] = Query(None, description="Filter by status"),
    platform: Optional[Platform] = Query(None, description="Filter by platform"),
    uploads: UploadRepository = Depends(get_upload_repository),
):
    """List upload jobs for a workspace, newest first."""
    try:
        jobs, total = await uploads.list_jobs(
            workspace_id,
            page=page,
            limit=limit,
            status=status.value if status else None,
            platform=platform.value if platform else None,
        )
        return PaginatedUploadsResponse(
            data=[_job_response(job) for job in jobs],
            meta=PaginationMeta.build(total=total, returned=len(jobs), page=page, limit=limit),
        )
    except Exception as e:
        logger.error(f"Failed to list uploads: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list uploads: {str(e)}")


@router.get("/{upload_id}", response_model=UploadJobResponse)
async def get_upload(
    workspace_id: str,
    upload_id: str,
    uploads: UploadRepository = Depends(get_upload_repository),
):
    """Get the current state of an upload job."""
    job = await _get_job_or_404(uploads, workspace_id, upload_id)
    return _job_response(job)


@router.patch("/{upload_id}", response_model=UploadJobResponse)
async def update_upload(
    workspace_id: str,
    upload_id: str,
    request: UploadUpdateRequest,
    uploads: UploadRepository = Depends(get_upload_repository),
    templates: TemplateRepository = Depends(get_template_repository),
):
    """Change the mapping template or report window of a queued job."""
    job = await _get_job_or_404(uploads, workspace_id, upload_id)

    fields = request.model_dump(exclude_unset=True)
    await _check_template(templates, workspace_id, fields.get("mapping_template_id"), job.platform)

    date_from = fields.get("date_from", job.date_from)
    date_to = fields.get("date_to", job.date_to)
    if date_from and date_to and str(date_from) > str(date_to):
        raise HTTPException(status_code=422, detail="date_from must not be after date_to")
    for key in ("date_from", "date_to"):
        if isinstance(fields.get(key), date):
            fields[key] = fields[key].isoformat()

    try:
        job = await uploads.update_queued(workspace_id, upload_id, fields)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _job_response(job)


@router.delete("/{upload_id}", response_model=StatusResponse)
async def delete_upload(
    workspace_id: str,
    upload_id: str,
    config: AppConfig = Depends(get_app_config),
    uploads: UploadRepository = Depends(get_upload_repository),
):
    """Delete an upload job that is not being processed.

    Metrics written by a completed job are kept.
    """
    await _get_job_or_404(uploads, workspace_id, upload_id)
    try:
        job = await uploads.delete(workspace_id, upload_id)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    # Reprocessed jobs share the stored file
    if await uploads.count_by_stored_filename(job.stored_filename) == 0:
        await run_blocking(_remove_file, config.upload_dir / job.stored_filename)

    return StatusResponse(status="deleted", id=upload_id)


@router.post("/{upload_id}/reprocess", response_model=UploadJobResponse, status_code=201)
async def reprocess_upload(
    workspace_id: str,
    upload_id: str,
    background_tasks: BackgroundTasks,
    config: AppConfig = Depends(get_app_config),
    db: Database = Depends(get_db),
    uploads: UploadRepository = Depends(get_upload_repository),
    user_id: str = Depends(get_user_id),
):
    """Retry a failed upload as a new job using the same stored file."""
    await _get_job_or_404(uploads, workspace_id, upload_id)
    try:
        job = await uploads.reprocess(workspace_id, upload_id, user_id)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    background_tasks.add_task(run_upload_job, job.id, db, config)
    return _job_response(job)


@router.get("/{upload_id}/errors", response_model=RowErrorsResponse)
async def get_upload_errors(
    workspace_id: str,
    upload_id: str,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    uploads: UploadRepository = Depends(get_upload_repository),
):
    """Rows rejected during ingestion, with row number and reason."""
    job = await _get_job_or_404(uploads, workspace_id, upload_id)
    errors, stored = await uploads.get_row_errors(upload_id, limit=limit, offset=offset)
    return RowErrorsResponse(
        upload_id=upload_id,
        rows_error=job.rows_error,
        stored=stored,
        data=[RowErrorResponse(row_number=e.row_number, reason=e.reason) for e in errors],
    )
