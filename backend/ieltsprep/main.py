"""
IELTS Prep - FastAPI Application
Main application entry point with middleware and route configuration
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ieltsprep.api.v1 import api_router
from ieltsprep.core.config import settings
from ieltsprep.core.database import init_db
from ieltsprep.core.errors import ExamPrepError, ValidationFailed
from ieltsprep.services.locks import get_lock_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if settings.OTEL_ENABLED:
        try:
            from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

            from ieltsprep.ai.core.telemetry import init_telemetry

            init_telemetry()
            FastAPIInstrumentor.instrument_app(app)
            logger.info("[Startup] OpenTelemetry initialized")
        except Exception as e:
            logger.warning(f"[Startup] Telemetry initialization skipped: {e}")

    await init_db()
    logger.info("[Startup] Database tables initialized")

    yield

    # Shutdown
    await get_lock_service().close()


async def exam_prep_error_handler(request: Request, exc: ExamPrepError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationFailed(details=[
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ])
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="IELTS mock test orchestration service",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Domain errors render as {"error", "code", "retry", ...}
    app.add_exception_handler(ExamPrepError, exam_prep_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Include API routes
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    @app.get(f"{settings.API_V1_PREFIX}/health", tags=["Health"])
    async def api_v1_health_check():
        """API V1 Health check."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ieltsprep.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
