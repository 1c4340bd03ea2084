"""PulseDeck - API Module.

This module provides the FastAPI application for the uploads and metrics
REST API.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
