"""
FastAPI Production Application

Main entry point for the ERP Insights API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from erp_insights.config import get_settings
from erp_insights.config.logging import configure_logging
from erp_insights.database.connection import init_database, close_database
from erp_insights.serving.api import create_api_app

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting ERP Insights API")

    await init_database()

    yield

    logger.info("Shutting down...")
    await close_database()


app = create_api_app(lifespan=lifespan)


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    settings = get_settings()
    return {
        "name": "ERP Insights API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
