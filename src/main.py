# Main application entry point

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from src.config.settings import get_settings
from src.api.routes import router
from src.common.logging_config import setup_logging
from src.common.metrics import get_metrics, get_metrics_content_type
from src.common.middleware import RequestTrackingMiddleware

settings = get_settings()
setup_logging(settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    logger.info(
        "Starting jsonshelf",
        extra={"extra_fields": {
            "max_json_size": settings.max_json_size,
            "schema_max_depth": settings.schema_max_depth,
            "schema_consistency_threshold": settings.schema_consistency_threshold,
        }},
    )
    yield
    logger.info("Shutting down jsonshelf")


app = FastAPI(
    title="jsonshelf API",
    description="Classifies JSON uploads for SQL or document storage and derives their schemas",
    version="0.1.0",
    lifespan=lifespan
)

# Request tracking middleware
app.add_middleware(RequestTrackingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "jsonshelf API",
        "version": "0.1.0",
        "status": "running",
        "docs": "/docs"
    }


@app.get("/health")
async def health():
    """Health check endpoint (alias for /live)"""
    return {"status": "healthy"}


@app.get("/live")
async def liveness():
    """Liveness check endpoint"""
    return {"status": "alive"}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug
    )
