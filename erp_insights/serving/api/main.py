"""
FastAPI Application Factory

Creates and configures the insights API application.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import structlog

from erp_insights.config import get_settings
from erp_insights.insights.exceptions import ComputationError, InvalidInputError
from erp_insights.serving.api.middleware import RequestLoggingMiddleware
from erp_insights.serving.api.routes import health_router, insights_router

logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
    )


async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    logger.warning("Invalid insights request", path=request.url.path, error=exc.message)
    return _error(400, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        field = errors[0].get("loc", ["request"])[-1]
        message = f"Invalid value for {field}: {errors[0].get('msg', 'invalid')}"
    else:
        message = "Invalid request"
    logger.warning("Request validation failed", path=request.url.path, error=message)
    return _error(400, message)


async def computation_error_handler(request: Request, exc: ComputationError) -> JSONResponse:
    logger.error("Insights computation failed", path=request.url.path, error=exc.message)
    return _error(500, "Failed to compute insights")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error=repr(exc))
    return _error(500, "Failed to compute insights")


def create_api_app(lifespan=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Optional lifespan context manager

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="ERP Insights API",
        description="Business intelligence aggregation over ERP orders, customers and products",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Add CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(InvalidInputError, invalid_input_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ComputationError, computation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    prefix = settings.api.prefix
    app.include_router(health_router, prefix=prefix, tags=["Health"])
    app.include_router(insights_router, prefix=f"{prefix}/insights", tags=["Insights"])

    return app
