"""FastAPI application factory.

Creates and configures the FastAPI application with middleware,
exception handlers, route registration and the scheduler lifespan.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cadence import __version__
from cadence.api.dependencies import get_delivery_scheduler, get_settings, shutdown_dependencies
from cadence.api.exceptions import CadenceAPIError
from cadence.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from cadence.api.routes import register_routes
from cadence.db.errors import StoreError
from cadence.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the background scheduler loop for the lifetime of the app."""
    settings = get_settings()
    if settings.scheduler.enabled:
        scheduler = await get_delivery_scheduler()
        await scheduler.start()

    yield

    await shutdown_dependencies()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()
    setup_logging(
        level=settings.observability.logging.level,
        format=settings.observability.logging.format,
        redact_pii=settings.observability.logging.redact_pii,
    )

    app = FastAPI(
        title="Cadence API",
        description="Step-delivery scheduler for chat-bot marketing scenarios",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.api.docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.api.docs_enabled else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=settings.api.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    register_routes(app, metrics_enabled=settings.observability.metrics.enabled)

    logger.info(
        "app_created",
        debug=settings.debug,
        storage_backend=settings.storage.backend,
        transport_backend=settings.transport.backend,
    )

    return app


def _error_response(status_code: int, body: ErrorBody) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=body).model_dump(mode="json"),
    )


def _register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers.

    Args:
        app: FastAPI application
    """

    @app.exception_handler(CadenceAPIError)
    async def cadence_api_error_handler(
        request: Request, exc: CadenceAPIError
    ) -> JSONResponse:
        """Handle CadenceAPIError and its subclasses."""
        logger.warning(
            "api_error",
            error_code=exc.error_code.value,
            message=exc.message,
            path=request.url.path,
        )
        return _error_response(
            exc.status_code,
            ErrorBody(code=exc.error_code, message=exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle FastAPI request validation errors."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
        )

        details = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            details.append(ErrorDetail(field=field, message=error["msg"]))

        return _error_response(
            400,
            ErrorBody(
                code=ErrorCode.INVALID_REQUEST,
                message="Request validation failed",
                details=details,
            ),
        )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        """Handle persistence failures."""
        logger.error(
            "store_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error_response(
            503,
            ErrorBody(
                code=ErrorCode.STORE_UNAVAILABLE,
                message="Tracking store unavailable",
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error_response(
            500,
            ErrorBody(
                code=ErrorCode.INTERNAL_ERROR,
                message="An unexpected error occurred",
            ),
        )
