"""
API Routers
"""
from .metrics import create_metrics_router
from .health import router as health_router

__all__ = ["create_metrics_router", "health_router"]
