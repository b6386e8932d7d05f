"""
Metrics Router - Prometheus Endpoint

Exposes the metrics endpoint for Prometheus scraping
"""
from fastapi import APIRouter, Request, Response


def create_metrics_router(path: str = "/metrics") -> APIRouter:
    """Build the scrape router for the configured path"""
    router = APIRouter(tags=["Observability"])

    @router.get(path)
    def prometheus_metrics(request: Request):
        """
        Prometheus metrics endpoint

        Renders whatever snapshot the poller stored last. Never contacts the
        game server. Runs in the threadpool, so concurrent scrapes do not
        block the poller's event loop.
        """
        registry = request.app.state.metrics_registry
        return Response(
            content=registry.render(),
            media_type=registry.content_type
        )

    return router
