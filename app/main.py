"""
FastAPI application entry point for the PDF → ASYCUDA XML portal.

This module initializes the FastAPI application with proper configuration,
middleware, and routing for the conversion portal.
"""

from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from app.api import auth, batches, health, proxy
from app.config import settings
from app.exceptions import AuthError, BaseServiceError, ErrorTypes
from app.middleware import LoggingMiddleware, SessionGateMiddleware
from app.models.response import ErrorResponse
from app.services.auth import SupabaseAuthProvider
from app.services.batches import BatchRegistry
from app.services.remote_client import VendorClient
from app.templating import templates

ERROR_STATUS = {
    ErrorTypes.VALIDATION_ERROR: 400,
    ErrorTypes.AUTH_ERROR: 401,
    ErrorTypes.TIMEOUT_ERROR: 504,
    ErrorTypes.CONFIGURATION_ERROR: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.APP_NAME}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    try:
        settings.check_production_ready()
    except RuntimeError as exc:
        logger.error(f"Configuration check failed: {exc}")
        raise

    if app.state.vendor_client is None:
        logger.warning("Conversion service not configured; conversions will fail with 500")
    if not app.state.auth_provider.configured:
        logger.warning("Authentication provider not configured; every request is anonymous")

    yield

    # Stop any conversion still running
    for user_id in list(app.state.batches.user_ids()):
        app.state.batches.discard(user_id)
    logger.info(f"Shutting down {settings.APP_NAME}")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Authenticated portal converting PDF declarations to ASYCUDA XML",
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.vendor_client = VendorClient.from_settings(settings) if settings.vendor_configured else None
    app.state.auth_provider = SupabaseAuthProvider.from_settings(settings)
    app.state.batches = BatchRegistry()

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_routers(app)
    setup_logging()

    return app


def setup_middleware(app: FastAPI) -> None:
    """
    Configure middleware for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(SessionGateMiddleware)  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

    # Outermost, so redirects and rejections are logged too
    app.add_middleware(LoggingMiddleware)  # type: ignore


def setup_exception_handlers(app: FastAPI) -> None:
    """Translate uncaught service errors into JSON error responses."""

    @app.exception_handler(BaseServiceError)
    async def service_error_handler(request: Request, exc: BaseServiceError) -> JSONResponse:
        if isinstance(exc, AuthError) and exc.status_code:
            status_code = exc.status_code
        else:
            status_code = ERROR_STATUS.get(exc.error_type, 502)
        logger.error(f"{exc.error_type} on {request.url.path}: {exc.message}")
        body = ErrorResponse(
            detail=exc.message,
            error=exc.error_type,
            request_id=request.scope.get("request_id"),
        )
        return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def setup_routers(app: FastAPI) -> None:
    """
    Include API routers in the FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def index(request: Request):
        """Serve the upload page."""
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "app_name": settings.APP_NAME,
                "max_files": settings.MAX_FILES,
                "max_file_size_mb": settings.MAX_FILE_SIZE // (1024 * 1024),
                "user": getattr(request.state, "user", None),
            },
        )

    app.include_router(auth.router, tags=["auth"])
    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(proxy.router, prefix="/api", tags=["conversion"])
    app.include_router(batches.router, prefix="/api", tags=["batches"])

    static_dir = Path(settings.STATIC_DIR)
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")


def setup_logging() -> None:
    """
    Configure logging with loguru.
    """
    logger.remove()  # Remove default handler

    logger.add(
        sink=lambda msg: print(msg, end=""),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL,
        colorize=True,
    )

    if settings.ENVIRONMENT == "production":
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)

        logger.add(
            "logs/app.log",
            rotation="1 day",
            retention="30 days",
            level=settings.LOG_LEVEL,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )


# Create the FastAPI application instance
app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
