"""Application entrypoint for the email verification service.

This module wires together the FastAPI application with its lifespan hooks,
database metadata, the expired-code cleanup task, error rendering and CORS
configuration.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from email_verifier.api.routes import verification_router
from email_verifier.core.config import Settings, get_settings
from email_verifier.core.errors import ErrorKind, ServiceError
from email_verifier.core.logging import configure_logging
from email_verifier.schemas import ErrorResponse, HealthResponse
from email_verifier.services.cleanup import run_cleanup_loop
from email_verifier.services.container import ServiceContainer

logger = logging.getLogger(__name__)

_FIELD_MESSAGES = {
    "code": "Invalid verification code format",
}
_DEFAULT_VALIDATION_MESSAGE = "Invalid email address"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start the cleanup task on startup; tear both down on shutdown.

    Dependencies:
    - Creates tables through the container's engine, which is built from the
      settings passed to `create_application` (database backend only).
    - Schedules `run_cleanup_loop` with the container's service factory.
    """

    container: ServiceContainer = app.state.container
    config = container.settings
    await container.create_tables()

    cleanup_task = None
    if config.CLEANUP_INTERVAL_MS > 0:
        cleanup_task = asyncio.create_task(run_cleanup_loop(container.open_service, config.CLEANUP_INTERVAL_MS))

    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
    await container.dispose()


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render domain failures exactly as the service constructed them."""

    if exc.status_code >= 500:
        logger.error("%s %s failed: %r", request.method, request.url.path, exc)
    body = ErrorResponse(error=exc.message, **exc.details)
    headers = None
    if exc.kind is ErrorKind.RATE_LIMIT and body.retryAfter:
        headers = {"Retry-After": str(body.retryAfter)}
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Collapse pydantic errors into the single-message 400 envelope."""

    errors = exc.errors()
    field = errors[0]["loc"][-1] if errors and errors[0].get("loc") else None
    message = _FIELD_MESSAGES.get(field, _DEFAULT_VALIDATION_MESSAGE)
    logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
    content = ErrorResponse(error=message).model_dump(exclude_none=True)
    return JSONResponse(status_code=ErrorKind.VALIDATION.status_code, content=content)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort 500 that keeps internal detail out of the response body."""

    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    content = ErrorResponse(error="Internal server error").model_dump(exclude_none=True)
    return JSONResponse(status_code=500, content=content)


def create_application(config: Settings | None = None) -> FastAPI:
    """Assemble and configure the FastAPI application instance.

    - Builds the `ServiceContainer` (notifier, rate limiter, store selection).
    - Injects the lifespan manager defined above to manage startup/shutdown.
    - Registers exception handlers, CORS and the verification router.
    """

    config = config or get_settings()
    configure_logging(config.LOG_LEVEL)

    application = FastAPI(
        title=config.PROJECT_NAME,
        version=config.PROJECT_VERSION,
        lifespan=lifespan,
    )
    application.state.container = ServiceContainer.from_settings(config)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(ServiceError, service_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)

    application.include_router(verification_router, prefix=config.API_PREFIX)

    @application.get("/health", response_model=HealthResponse)
    async def healthcheck() -> HealthResponse:
        """Lightweight health endpoint used by uptime monitors."""
        return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc).isoformat())

    return application


app = create_application()
