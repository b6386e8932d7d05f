"""Health and status endpoints"""
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from .. import __version__
from ..models import HealthStatus, PollerStatus

router = APIRouter(tags=["System"])


def overall_status(poller: PollerStatus, has_data: bool) -> str:
    """
    healthy: last poll succeeded
    degraded: serving older data, last poll failed
    starting: nothing polled yet
    unhealthy: polled, never succeeded
    """
    if poller.total_polls == 0:
        return "starting"
    if not has_data:
        return "unhealthy"
    if poller.consecutive_failures:
        return "degraded"
    return "healthy"


@router.get("/health", response_model=HealthStatus)
async def health_check(request: Request):
    """
    Poller health

    Informational only: always 200, and nothing here shows up in the
    metrics payload.
    """
    registry = request.app.state.metrics_registry
    poller_status = request.app.state.poller.status()
    snapshot = registry.snapshot

    return HealthStatus(
        status=overall_status(poller_status, snapshot is not None),
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        upstream=request.app.state.settings.endpoint,
        poller=poller_status,
        snapshot=snapshot
    )
