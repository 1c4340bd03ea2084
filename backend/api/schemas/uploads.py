"""Upload job schema models."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, model_validator

from .common import PaginationMeta


class UploadJobResponse(BaseModel):
    """Upload job state, polled by clients until status is terminal."""
    id: str
    workspace_id: str
    user_id: str
    platform: str
    original_filename: str
    stored_filename: str
    status: str
    progress: int
    rows_total: int
    rows_processed: int
    rows_success: int
    rows_error: int
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


class PaginatedUploadsResponse(BaseModel):
    """Paginated response for upload jobs, newest first."""
    data: list[UploadJobResponse]
    meta: PaginationMeta


class UploadUpdateRequest(BaseModel):
    """Changes allowed while a job is still queued."""
    mapping_template_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @model_validator(mode="after")
    def check_window(self) -> "UploadUpdateRequest":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class RowErrorResponse(BaseModel):
    """A rejected data row (row_number is 1-based, header excluded)."""
    row_number: int
    reason: str


class RowErrorsResponse(BaseModel):
    """Stored row errors for a job."""
    upload_id: str
    rows_error: int
    stored: int
    data: list[RowErrorResponse]
