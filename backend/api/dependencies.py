"""Shared dependencies for API routers.

The configuration and database handle are created in the application
lifespan and stored on app.state; routers receive them through these
dependencies rather than module globals.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from config import AppConfig
from services.aggregation import MetricsAggregationService
from storage import Database, TemplateRepository, UploadRepository

USER_ID_HEADER = "X-User-Id"


def get_app_config(request: Request) -> AppConfig:
    """Dependency for getting the application configuration."""
    config = getattr(request.app.state, "config", None)
    if config is None:
        raise HTTPException(status_code=503, detail="Config not initialized")
    return config


def get_db(request: Request) -> Database:
    """Dependency for getting the database handle."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    return db


def get_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    config: AppConfig = Depends(get_app_config),
) -> str:
    """Caller identity from the X-User-Id header, else the configured default."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return config.default_user_id


def get_upload_repository(db: Database = Depends(get_db)) -> UploadRepository:
    return UploadRepository(db)


def get_template_repository(db: Database = Depends(get_db)) -> TemplateRepository:
    return TemplateRepository(db)


def get_aggregation_service(db: Database = Depends(get_db)) -> MetricsAggregationService:
    return MetricsAggregationService(db)
