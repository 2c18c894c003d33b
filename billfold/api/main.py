"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from billfold.api.middleware import RequestIDMiddleware, MetricsMiddleware
from billfold.api.v1 import cards, services, transactions, summary, month_close
from billfold.infrastructure.observability.logging import setup_logging
from billfold.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Billfold",
        description="Installments, recurring services and month-close balances",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(cards.router, prefix="/v1", tags=["cards"])
    app.include_router(services.router, prefix="/v1", tags=["services"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(summary.router, prefix="/v1", tags=["summary"])
    app.include_router(month_close.router, prefix="/v1", tags=["month-close"])

    return app


app = create_app()
