"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from budget_cockpit.api.dependencies import get_risk_worker
from budget_cockpit.api.middleware import MetricsMiddleware, RequestIDMiddleware
from budget_cockpit.api.v1 import projection, risk
from budget_cockpit.config import settings
from budget_cockpit.infrastructure.observability.logging import setup_logging

setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Only release a pool that a request actually created
    if get_risk_worker.cache_info().currsize:
        get_risk_worker().close()
        get_risk_worker.cache_clear()


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Budget Cockpit",
        description="Risk findings and net worth projection over household budget snapshots",
        version="0.1.0",
        lifespan=lifespan,
    )

    # last added runs first
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(risk.router, prefix="/v1", tags=["risk"])
    app.include_router(projection.router, prefix="/v1", tags=["projection"])

    return app


app = create_app()
