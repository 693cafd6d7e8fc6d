"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.api import api_router
from app.core.attempts import AttemptSessionError, Unavailable
from app.core.config import settings
from app.core.error_responses import attempt_error_payload
from app.core.error_tracking import capture_error, init_sentry
from app.core.logging_config import setup_logging
from app.middleware import RequestLoggingMiddleware
from app.observability import metrics
from app.services.expiry_sweeper import ExpirySweeper

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    - On startup: Sentry, application metrics and (if enabled) the expiry sweeper
    - On shutdown: Stops the sweeper and flushes metrics
    """
    init_sentry()

    metrics.initialize()
    logger.info("Application metrics initialized")

    sweeper = None
    if settings.EXPIRY_SWEEP_ENABLED:
        sweeper = ExpirySweeper()
        sweeper.start()
    app.state.expiry_sweeper = sweeper

    yield

    if sweeper is not None:
        await sweeper.stop()

    metrics.shutdown()
    logger.info("Application shutting down")


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check and server time endpoints",
    },
    {
        "name": "attempts",
        "description": "Start, resume, answer and submit timed test attempts",
    },
    {
        "name": "Admin - Tests",
        "description": "Create and replace test definitions (X-Admin-Token)",
    },
    {
        "name": "Admin - Enrollments",
        "description": "Enroll students in classes (X-Admin-Token)",
    },
    {
        "name": "Admin - Attempts",
        "description": "Monitor attempts and run the expiry sweep (X-Admin-Token)",
    },
]


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**Classroom Attempts API** - timed test attempt sessions.\n\n"
            "This API provides:\n"
            "* Live tests with a shared join window and hard end time\n"
            "* Flexible tests with an availability window and attempt quota\n"
            "* Start-or-resume that is safe across tabs and reconnects\n"
            "* Autosaved answers and idempotent submission\n\n"
            "## Time\n\n"
            "All instants are epoch seconds from the server clock. "
            "`remaining_seconds` in responses is authoritative; client "
            "countdowns are display only.\n\n"
            "## Authentication\n\n"
            "Student endpoints require a JWT Bearer token carrying a "
            "`student_id` claim. Admin endpoints require the `X-Admin-Token` header."
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Admin-Token", "X-Request-ID"],
    )

    # Configure Request Logging
    app.add_middleware(RequestLoggingMiddleware)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(AttemptSessionError)
    async def attempt_session_exception_handler(
        request: Request, exc: AttemptSessionError
    ):
        """
        Render attempt session errors with their status code and retryable flag.
        """
        path = str(request.url.path)
        metrics.record_error(error_type=exc.code, path=path)

        if isinstance(exc, Unavailable):
            logger.error(
                f"Attempt store unavailable: {exc.message}",
                extra={"path": path, "method": request.method},
            )
            capture_error(
                exc.__cause__ or exc,
                context={"path": path, "method": request.method, **exc.context},
                tags={"error_type": exc.code},
            )

        return JSONResponse(
            status_code=exc.http_status,
            content=attempt_error_payload(exc),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Handle HTTP exceptions and count them.
        """
        if exc.status_code >= 400:
            metrics.record_error(
                error_type=f"HTTP{exc.status_code}", path=str(request.url.path)
            )
        if exc.status_code >= 500:
            capture_error(
                exc,
                context={
                    "path": str(request.url.path),
                    "method": request.method,
                    "status_code": exc.status_code,
                },
                tags={"error_type": "HTTPException"},
            )

        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Handle request validation errors.
        """
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
            for error in exc.errors()
        ]

        metrics.record_error(error_type="ValidationError", path=str(request.url.path))

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": errors},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions and track them.

        Generates a unique error_id (UUID) for each exception so support can
        find the matching log entry. The error_id is included in the response
        body and logged with the full exception.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )

        metrics.record_error(
            error_type=exc.__class__.__name__, path=str(request.url.path)
        )
        capture_error(
            exc,
            context={
                "path": str(request.url.path),
                "method": request.method,
                "error_id": error_id,
            },
            tags={"error_type": exc.__class__.__name__},
        )

        # Don't leak internal details
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error_id": error_id,
            },
        )

    return app


app = create_application()


@app.get("/")
async def root():
    """
    Root endpoint.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
