"""Mapping Templates Router - saved column mappings per platform."""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_template_repository
from api.schemas import (
    MappingTemplateCreate,
    MappingTemplateResponse,
    MappingTemplateUpdate,
    StatusResponse,
)
from storage import MappingEntry, MappingTemplate, Platform, TemplateConflictError, TemplateRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{workspace_id}/mapping-templates", tags=["Mapping Templates"])


def _template_response(template: MappingTemplate) -> MappingTemplateResponse:
    return MappingTemplateResponse(**asdict(template))


def _entries(mapping) -> list[MappingEntry]:
    return [MappingEntry(source_column=e.source_column.strip(), target_field=e.target_field) for e in mapping]


@router.get("", response_model=list[MappingTemplateResponse])
async def list_templates(
    workspace_id: str,
    platform: Optional[Platform] = Query(None, description="Filter by platform"),
    templates: TemplateRepository = Depends(get_template_repository),
):
    """List mapping templates, defaults first."""
    try:
        results = await templates.list_templates(
            workspace_id, platform=platform.value if platform else None
        )
        return [_template_response(t) for t in results]
    except Exception as e:
        logger.error(f"Failed to list mapping templates: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list mapping templates: {str(e)}")


@router.post("", response_model=MappingTemplateResponse, status_code=201)
async def create_template(
    workspace_id: str,
    request: MappingTemplateCreate,
    templates: TemplateRepository = Depends(get_template_repository),
):
    """Create a mapping template. A new default replaces the platform's previous default."""
    try:
        template = await templates.create(
            workspace_id=workspace_id,
            platform=request.platform.value,
            name=request.name.strip(),
            mapping=_entries(request.mapping),
            is_default=request.is_default,
        )
        return _template_response(template)
    except Exception as e:
        logger.error(f"Failed to create mapping template: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create mapping template: {str(e)}")


@router.get("/{template_id}", response_model=MappingTemplateResponse)
async def get_template(
    workspace_id: str,
    template_id: str,
    templates: TemplateRepository = Depends(get_template_repository),
):
    template = await templates.get(workspace_id, template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Mapping template not found")
    return _template_response(template)


@router.put("/{template_id}", response_model=MappingTemplateResponse)
async def update_template(
    workspace_id: str,
    template_id: str,
    request: MappingTemplateUpdate,
    templates: TemplateRepository = Depends(get_template_repository),
):
    """Update name, mapping or default flag."""
    try:
        template = await templates.update(
            workspace_id,
            template_id,
            name=request.name.strip() if request.name else None,
            mapping=_entries(request.mapping) if request.mapping is not None else None,
            is_default=request.is_default,
        )
    except Exception as e:
        logger.error(f"Failed to update mapping template {template_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update mapping template: {str(e)}")

    if template is None:
        raise HTTPException(status_code=404, detail="Mapping template not found")
    return _template_response(template)


@router.delete("/{template_id}", response_model=StatusResponse)
async def delete_template(
    workspace_id: str,
    template_id: str,
    templates: TemplateRepository = Depends(get_template_repository),
):
    """Delete a template. The platform default cannot be deleted."""
    try:
        deleted = await templates.delete(workspace_id, template_id)
    except TemplateConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=404, detail="Mapping template not found")
    return StatusResponse(status="deleted", id=template_id)
