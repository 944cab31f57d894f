"""Main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from prometheus_fastapi_instrumentator import Instrumentator

from switchdex.api.routes import history, scans, tenants
from switchdex.config import settings
from switchdex.logging_config import setup_logging
from switchdex.services import Services, build_services
from switchdex import metrics

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(
    services: Optional[Services] = None,
    start_scheduler: bool = True,
    instrument: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Prebuilt engine components (built on startup when omitted)
        start_scheduler: Start the recurring scan job on startup
        instrument: Expose Prometheus metrics on /metrics

    Returns:
        FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting SwitchDex...")

        engine = services or build_services()
        app.state.services = engine
        metrics.app_info.info({"version": VERSION})

        if start_scheduler:
            engine.scheduler.start()
            logger.info("Scheduler started")

        yield

        logger.info("Shutting down...")
        await engine.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="SwitchDex",
        description="Detect Switch game, homebrew and firmware updates and announce them",
        version=VERSION,
        lifespan=lifespan,
    )

    if instrument:
        Instrumentator(
            should_group_status_codes=True,
            should_ignore_untemplated=True,
            excluded_handlers=["/metrics", "/health", "/favicon.ico"],
        ).instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

    app.include_router(scans.router)
    app.include_router(history.router)
    app.include_router(tenants.router)

    @app.get("/health")
    async def health(request: Request):
        """Liveness plus whether the scan job is scheduled and a pass is in flight."""
        engine = getattr(request.app.state, "services", None)
        if engine is None:
            return {"status": "starting"}
        return {
            "status": "healthy",
            "scheduler_running": engine.scheduler.scheduler.running,
            "scan_running": engine.orchestrator.is_running,
        }

    @app.get("/favicon.ico")
    async def favicon():
        """Return empty favicon response to avoid 404 noise."""
        return Response(status_code=204)

    return app


app = create_app()


def main():
    setup_logging()
    uvicorn.run(
        "switchdex.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
