"""FastAPI application main module.

Defines the application factory for the MedFeed personalization service,
wires the routers, the response envelope for errors, request logging, and
the health and metrics endpoints.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from medfeed import __version__
from medfeed.api.exceptions import MedFeedException
from medfeed.api.logging_config import RequestLoggingMiddleware, setup_logging
from medfeed.api.metrics import metrics_service
from medfeed.api.responses import envelope
from medfeed.api.routes import categories, items, search
from medfeed.config import settings
from medfeed.personalization.engine import PersonalizationServices, connect_services

# Configure module logger
logger = logging.getLogger(__name__)


def create_app(services: Optional[PersonalizationServices] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        services: Pre-built personalization services. When omitted, Redis
            and MongoDB connections are opened at startup from settings and
            closed on shutdown.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        app.state.services = connect_services(settings) if owned else services
        if owned and not await app.state.services.store.ping():
            logger.warning("Ephemeral store unreachable at startup; caching degraded")
        logger.info("MedFeed API started", extra={"owned_connections": owned})
        try:
            yield
        finally:
            if owned:
                await app.state.services.close()

    app = FastAPI(
        title="MedFeed API",
        description="Personalization and feed engine for an e-pharmacy storefront",
        version=__version__,
        lifespan=lifespan,
    )

    if services is not None:
        app.state.services = services

    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(MedFeedException)
    async def medfeed_exception_handler(request: Request, exc: MedFeedException) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "Request rejected",
            extra={
                "path": str(request.url.path),
                "status_code": exc.status_code,
                "error": exc.message,
                "details": exc.details,
            },
        )
        return envelope(exc.status_code, exc.message, exc.details or None)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return envelope(400, "Invalid request", {"errors": errors})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error",
            extra={"path": str(request.url.path), "error_type": type(exc).__name__},
            exc_info=exc,
        )
        return envelope(500, "Internal server error")

    app.include_router(items.router)
    app.include_router(search.router)
    app.include_router(categories.router)

    @app.get("/ping")
    def ping() -> Dict[str, str]:
        """Health check endpoint.

        Returns:
            Dictionary with status key set to "ok".

        Example:
            >>> response = client.get("/ping")
            >>> assert response.json() == {"status": "ok"}
        """
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics() -> Dict[str, Any]:
        """In-process cache, feed and latency counters."""
        return metrics_service.get_metrics()

    return app


setup_logging(settings.LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "medfeed.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
