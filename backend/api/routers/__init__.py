"""API Routers for PulseDeck."""

from .system import router as system_router
from .uploads import router as uploads_router
from .templates import router as templates_router
from .campaigns import router as campaigns_router
from .metrics import router as metrics_router

__all__ = [
    "system_router",
    "uploads_router",
    "templates_router",
    "campaigns_router",
    "metrics_router",
]
