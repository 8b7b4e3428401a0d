"""
Streamdrop API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from streamdrop.api.v1 import router as api_v1_router
from streamdrop.core.config import get_settings
from streamdrop.core.errors import DomainError, domain_error_handler
from streamdrop.core.logging import configure_logging
from streamdrop_shared.schemas.common import ErrorResponse

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Streamdrop",
        description="Routes data packages to the stream subscribers their delivery criteria select.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type"],
    )

    app.add_exception_handler(DomainError, domain_error_handler)

    app.include_router(
        api_v1_router,
        prefix="/api/v1",
        responses={
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
        },
    )

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("Streamdrop starting", criteria_supported=settings.criteria_supported)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Streamdrop shutting down")

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run("streamdrop.main:app", host=settings.host, port=settings.port, reload=settings.debug)


if __name__ == "__main__":
    run()
