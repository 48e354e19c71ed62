import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv


# Load .env FIRST before any other imports that might need env vars
BACKEND_DIR = Path(__file__).parent.parent
ENV_PATH = BACKEND_DIR / ".env"
load_dotenv(ENV_PATH)

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.requests import Request

from .config.logging import setup_logging
from .config.settings import Settings, get_settings
from .exceptions import ResourceNotFoundError
from .middleware.error_handlers import (
    ErrorCategory,
    ErrorCode,
    format_error_response,
    handle_not_found_errors,
    handle_validation_errors,
    log_error_context,
)
from .progress.router import router as progress_router
from .progress.service import ProgressCoordinator
from .progress.transport import LocalTransport


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    coordinator: ProgressCoordinator = app.state.progress_coordinator
    # Startup
    coordinator.start()
    logger.info("Progress coordinator started")

    yield

    # Shutdown
    logger.info("Starting graceful shutdown...")
    await coordinator.close()
    logger.info("Shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    if settings is None:
        try:
            settings = get_settings()
        except Exception:
            logger.exception("Failed to load settings")
            raise

    setup_logging("DEBUG" if settings.DEBUG else settings.LOG_LEVEL)

    app = FastAPI(
        title="Playback Progress Sync API",
        description="Cross-device video playback progress synchronization",
        version="0.1.0",
        debug=settings.DEBUG,
        lifespan=lifespan if settings.ENVIRONMENT != "test" else None,
    )

    transport = LocalTransport()
    app.state.progress_transport = transport
    app.state.progress_coordinator = ProgressCoordinator(transport, settings.progress_options())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ResourceNotFoundError)
    async def resource_not_found_handler(request: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return await handle_not_found_errors(request, exc)

    # Validation errors (422)
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return await handle_validation_errors(request, exc)

    @app.exception_handler(ValidationError)
    async def pydantic_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return await handle_validation_errors(request, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        from uuid import uuid4

        # Generate error ID for tracking
        error_id = uuid4()

        log_error_context(request, exc, error_id)

        return format_error_response(
            category=ErrorCategory.INTERNAL,
            code=ErrorCode.INTERNAL,
            detail="An unexpected error occurred",
            status_code=500,
            metadata={"error_id": str(error_id)},
            suggestions=["Please try again later", "If the problem persists, contact support with the error ID"],
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Check application health status."""
        return {"status": "healthy"}

    app.include_router(progress_router)

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.API_HOST, port=settings.API_PORT)
