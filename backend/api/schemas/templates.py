"""Mapping template schema models."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ingestion.columns import ALL_FIELDS
from storage.models import Platform


class MappingEntrySchema(BaseModel):
    """One source column -> canonical field association."""
    source_column: str = Field(..., min_length=1)
    target_field: str

    @field_validator("target_field")
    @classmethod
    def check_target_field(cls, value: str) -> str:
        if value not in ALL_FIELDS:
            raise ValueError(f"target_field must be one of: {', '.join(ALL_FIELDS)}")
        return value


class MappingTemplateCreate(BaseModel):
    """Request model for creating a mapping template."""
    name: str = Field(..., min_length=1, max_length=200)
    platform: Platform
    mapping: list[MappingEntrySchema] = Field(..., min_length=1)
    is_default: bool = False


class MappingTemplateUpdate(BaseModel):
    """Request model for updating a mapping template."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    mapping: Optional[list[MappingEntrySchema]] = Field(None, min_length=1)
    is_default: Optional[bool] = None


class MappingTemplateResponse(BaseModel):
    """Response model for a mapping template."""
    id: str
    workspace_id: str
    platform: str
    name: str
    mapping: list[MappingEntrySchema]
    is_default: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
