"""coursegate API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from cassandra import DriverException, OperationTimedOut
from cassandra.cluster import NoHostAvailable
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursegate.access.router import router as access_router
from coursegate.access.service import AccessGuard
from coursegate.assessments.cooldown import CooldownPolicy
from coursegate.assessments.repository import AssessmentRepository
from coursegate.assessments.router import (
    chapters_router,
    exams_router,
    sessions_router,
)
from coursegate.assessments.service import AssessmentService
from coursegate.catalog.service import CatalogService
from coursegate.certificates.repository import CertificateRepository
from coursegate.certificates.router import public_router as certificates_public_router
from coursegate.certificates.router import router as certificates_router
from coursegate.certificates.service import CertificateService
from coursegate.config import get_settings
from coursegate.config.settings import Settings
from coursegate.core.context import get_request_id
from coursegate.core.database import init_async_cassandra, shutdown_async_cassandra
from coursegate.core.exceptions import (
    CooldownActiveError,
    EngineError,
    StorageUnavailableError,
)
from coursegate.core.logging import configure_structlog, get_logger
from coursegate.core.middleware import RequestContextMiddleware
from coursegate.core.redis import init_redis, shutdown_redis
from coursegate.health import router as health_router
from coursegate.progress.repository import ProgressRepository
from coursegate.progress.router import courses_router as progress_courses_router
from coursegate.progress.router import lessons_router
from coursegate.progress.router import router as progress_router
from coursegate.progress.service import ProgressService
from coursegate.utils.timeutils import utcnow


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings)

logger = get_logger(__name__)


def build_services(
    app: FastAPI, cassandra_session: Any, settings: Settings, redis: Any = None
) -> None:
    """Wire the engine services onto ``app.state``."""
    keyspace = settings.cassandra_keyspace
    catalog = CatalogService(session=cassandra_session, keyspace=keyspace)
    cooldown = CooldownPolicy(settings)

    progress_service = ProgressService(
        repository=ProgressRepository(session=cassandra_session, keyspace=keyspace),
        catalog=catalog,
        settings=settings,
        cooldown=cooldown,
    )
    certificate_service = CertificateService(
        repository=CertificateRepository(session=cassandra_session, keyspace=keyspace),
        progress_service=progress_service,
        catalog=catalog,
        settings=settings,
        redis=redis,
    )
    assessment_service = AssessmentService(
        repository=AssessmentRepository(
            session=cassandra_session,
            keyspace=keyspace,
            retention_days=settings.assessment_session_retention_days,
        ),
        catalog=catalog,
        progress_service=progress_service,
        certificate_service=certificate_service,
        settings=settings,
        cooldown=cooldown,
    )

    app.state.cassandra_session = cassandra_session
    app.state.catalog = catalog
    app.state.progress_service = progress_service
    app.state.certificate_service = certificate_service
    app.state.assessment_service = assessment_service
    app.state.access_guard = AccessGuard(catalog, progress_service)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    if settings.redis_enabled:
        try:
            redis_client = await init_redis()
            logger.info("redis_initialized")
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - certificate events disabled",
            )
    app.state.redis = redis_client

    # Initialize Cassandra (async)
    try:
        cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")
        build_services(app, cassandra_session, settings, redis_client)
        logger.info("engine_services_initialized", redis_enabled=bool(redis_client))
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # SECURITY: Always set debug=False to prevent Starlette's ServerErrorMiddleware
    # from exposing stack traces in responses.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course progression and assessment engine",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    # Helper to get request_id from request state or context
    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    def _error_body(
        request: Request,
        status_code: int,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return {
            "error": True,
            "code": code,
            "message": message,
            "status_code": status_code,
            "request_id": _get_request_id_safe(request),
            "context": context or {},
            "timestamp": utcnow().isoformat(),
        }

    def _engine_response(request: Request, exc: EngineError) -> ORJSONResponse:
        body = exc.to_dict()
        headers = None
        if isinstance(exc, CooldownActiveError):
            headers = {"Retry-After": str(max(exc.remaining_seconds, 0))}
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                **_error_body(
                    request, exc.status_code, exc.code, exc.message, body["context"]
                ),
                "retryable": exc.retryable,
            },
            headers=headers,
        )

    @app.exception_handler(EngineError)
    async def engine_exception_handler(
        request: Request, exc: EngineError
    ) -> ORJSONResponse:
        """Map domain errors onto their HTTP status."""
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "engine_error",
            code=exc.code,
            status_code=exc.status_code,
            message=exc.message,
            path=request.url.path,
            method=request.method,
        )
        return _engine_response(request, exc)

    @app.exception_handler(DriverException)
    @app.exception_handler(OperationTimedOut)
    @app.exception_handler(NoHostAvailable)
    async def storage_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Cassandra driver failures are reported as retryable 503s."""
        logger.warning(
            "storage_unavailable",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return _engine_response(request, StorageUnavailableError())

    # Global exception handlers (security: never expose stack traces)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error"
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, "http_error", message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(
                request,
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                "validation_error",
                "Validation error",
                {
                    "details": [
                        {
                            "field": ".".join(str(loc) for loc in err.get("loc", [])),
                            "message": err.get("msg", "Invalid value"),
                        }
                        for err in exc.errors()
                    ]
                },
            ),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        SECURITY: Never expose stack traces or internal error details to users.
        """
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "internal_error",
                "An unexpected error occurred. Please try again later.",
            ),
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(access_router)
    app.include_router(lessons_router)
    app.include_router(progress_router)
    app.include_router(progress_courses_router)
    app.include_router(chapters_router)
    app.include_router(exams_router)
    app.include_router(sessions_router)
    app.include_router(certificates_router)
    app.include_router(certificates_public_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "coursegate API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "coursegate.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.api_reload and settings.is_development,
    )
