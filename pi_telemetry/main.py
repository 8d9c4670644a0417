"""
Pi Telemetry - FastAPI Application
Main entry point for the API server and the MQTT ingestion pipeline
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import structlog
from contextlib import asynccontextmanager

from pi_telemetry.api.dependencies import get_store
from pi_telemetry.api.routes import devices, health, readings
from pi_telemetry.core.config import settings
from pi_telemetry.core.logging_config import configure_logging
from pi_telemetry.database.connection import init_database
from pi_telemetry.pipeline.runner import TelemetryPipeline

configure_logging(settings.log_level)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Pi Telemetry server")
    init_database()

    pipeline = None
    if settings.pipeline_enabled:
        pipeline = TelemetryPipeline.from_settings(settings, get_store())
        await pipeline.start()
    app.state.pipeline = pipeline

    yield

    logger.info("Shutting down Pi Telemetry server")
    if pipeline is not None:
        await pipeline.stop()


# Create FastAPI application
app = FastAPI(
    title="Pi Telemetry API",
    description="MQTT sensor telemetry ingestion with time-bucketed aggregates",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(devices.router, prefix="/api", tags=["devices"])
app.include_router(readings.router, prefix="/api", tags=["readings"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Pi Telemetry API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health"
    }


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler"""
    logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "data": None, "error": "Internal server error"}
    )


def run():
    """Serve the API (and the pipeline, via the lifespan) with uvicorn"""
    uvicorn.run(
        "pi_telemetry.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
