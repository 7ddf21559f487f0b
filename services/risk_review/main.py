"""
Risk Review Service - Main Application
======================================

FastAPI application for AI system intake, risk assessment and review.

Version: 0.1.0
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from shared.config import StoreBackend, settings
from shared.logging import get_logger, setup_logging
from shared.models.common import HealthResponse

from services.risk_review.dependencies import get_review_service
from services.risk_review.errors import RiskReviewError
from services.risk_review.routes import assessments, reviews, submissions
from services.risk_review.store import get_store

# Setup logging
setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.is_production,
    service_name="risk-review",
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    logger.info(
        "risk_review_starting",
        environment=settings.environment.value,
        port=settings.service_port,
        store_backend=settings.store.backend.value,
    )

    # Startup
    try:
        if settings.store.backend == StoreBackend.POSTGRES:
            from shared.database.postgres import PostgresClient

            PostgresClient.get_engine()
            logger.info("postgres_connected")

        get_store()
        get_review_service()

    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("risk_review_shutting_down")
    await get_review_service().notifications.close()
    if settings.store.backend == StoreBackend.POSTGRES:
        from shared.database.postgres import PostgresClient

        await PostgresClient.close()


# Create FastAPI application
app = FastAPI(
    title="AI Governance Risk Review Service",
    description="AI system intake, risk assessment and review workflow",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins_list,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Service health check.

    Returns health status of the service and its store.
    """
    components: dict[str, dict[str, Any]] = {}

    try:
        components["store"] = await get_store().health_check()
    except Exception as e:
        logger.error("store_health_check_failed", error=str(e))
        components["store"] = {"status": "unhealthy", "error": str(e)}

    components["analysis"] = {
        "status": "healthy",
        "enabled": settings.analysis.enabled,
        "provider": settings.llm.provider.value,
    }

    all_healthy = all(c.get("status") == "healthy" for c in components.values())

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        service="risk-review",
        version="0.1.0",
        components=components,
    )


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "AI Governance Risk Review Service",
        "version": "0.1.0",
        "docs": "/docs",
    }


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(
    submissions.router,
    prefix="/api/v1/submissions",
    tags=["Submissions"],
)

app.include_router(
    assessments.router,
    prefix="/api/v1/assessments",
    tags=["Risk Assessments"],
)

app.include_router(
    reviews.router,
    prefix="/api/v1/reviews",
    tags=["Reviews"],
)


# ============================================================================
# Error Handlers
# ============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Any, exc: HTTPException) -> Any:
    """Handle HTTP exceptions."""
    from fastapi.responses import JSONResponse

    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "status_code": exc.status_code,
        },
    )


@app.exception_handler(RiskReviewError)
async def risk_review_exception_handler(request: Any, exc: RiskReviewError) -> Any:
    """Handle domain errors that escaped a route."""
    from services.risk_review.dependencies import to_http_exception

    return await http_exception_handler(request, to_http_exception(exc))


@app.exception_handler(Exception)
async def general_exception_handler(request: Any, exc: Exception) -> Any:
    """Handle unexpected exceptions."""
    from fastapi.responses import JSONResponse

    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "status_code": 500,
        },
    )


# ============================================================================
# Run with Uvicorn
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.risk_review.main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
