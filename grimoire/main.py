"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.

Key Concepts:
=============

1. Application Factory Pattern
   - create_app() function returns configured app
   - Tests import the module-level app and override its dependencies

2. Lifespan Events
   - startup: create missing tables and the local images directory
   - shutdown: log only, sessions are closed per request

3. Middleware Stack
   - Rate limiting (slowapi)
   - CORS: Allow the web client on another origin

4. Exception Handlers
   - GrimoireError: {"error": code, "message": text} with the error's status
   - Request validation: 400 validation_error
   - Database and unexpected errors: 500 without internal details
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from grimoire import __version__
from grimoire.config import get_settings
from grimoire.database import create_tables
from grimoire.exceptions import GrimoireError
from grimoire.routers import auth_router, books_router
from grimoire.services.rate_limiter import limiter, rate_limit_exceeded_handler

# =============================================================================
# Logging Configuration
# =============================================================================
# Configure logging before creating the app
settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan Events
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Code before yield: Runs on startup
    Code after yield: Runs on shutdown
    """
    # ----- STARTUP -----
    logger.info(f"Starting {settings.app_name} {__version__}...")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Environment: {settings.environment}")

    create_tables()

    if settings.image_storage == "local":
        Path(settings.images_dir).mkdir(parents=True, exist_ok=True)
        logger.info(f"Images stored on disk in {settings.images_dir}")
    else:
        logger.info(f"Images stored on Cloudinary in {settings.cloudinary_folder}")

    yield  # Application runs here

    # ----- SHUTDOWN -----
    logger.info(f"Shutting down {settings.app_name}...")


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


# =============================================================================
# Application Factory
# =============================================================================
def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        description="""
## Mon Vieux Grimoire API

Book rating API: share books, rate them, discover the best-rated ones.

### Authentication
Sign up and log in under `/api/auth`, then send the token as
`Authorization: Bearer <token>` on write requests.

### Rate Limiting
Every route is rate limited per client IP; auth routes are stricter.
        """,
        version=settings.api_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # -------------------------------------------------------------------------
    # Rate Limiting
    # -------------------------------------------------------------------------
    # Attach the limiter to the app state so it can be accessed by decorators
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # -------------------------------------------------------------------------
    # CORS Middleware
    # -------------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Exception Handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(GrimoireError)
    async def grimoire_exception_handler(
        request: Request,
        exc: GrimoireError,
    ) -> JSONResponse:
        """Render application errors with their own status and code."""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.error} - {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc.error}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """
        Handle body/path validation done by FastAPI itself (auth routes).

        Reported as 400 with the first problem found.
        """
        errors = exc.errors()
        message = "The request contains invalid data"
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first["loc"] if part != "body")
            message = f"{location}: {first['msg']}" if location else first["msg"]
        return _error_response(400, "validation_error", message)

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(
        request: Request,
        exc: SQLAlchemyError,
    ) -> JSONResponse:
        """
        Handle SQLAlchemy database errors.

        Logs the actual error for debugging while hiding details from users.
        """
        logger.error(f"Database error: {exc}")
        return _error_response(
            500,
            "persistence_error",
            "A database error occurred. Please try again later.",
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """
        Catch-all exception handler.

        In production, hide internal errors from users.
        In debug mode, show more details.
        """
        logger.error(f"Unhandled error: {exc}", exc_info=True)

        message = str(exc) if settings.debug else "An internal error occurred."
        return _error_response(500, "unexpected_error", message)

    # -------------------------------------------------------------------------
    # Register Routers
    # -------------------------------------------------------------------------
    api_prefix = "/api"

    app.include_router(auth_router, prefix=api_prefix)
    app.include_router(books_router, prefix=api_prefix)

    # -------------------------------------------------------------------------
    # Static Images
    # -------------------------------------------------------------------------
    # Stored image URLs are <public_url>/images/<file name>
    if settings.image_storage == "local":
        app.mount(
            "/images",
            StaticFiles(directory=settings.images_dir, check_dir=False),
            name="images",
        )

    # -------------------------------------------------------------------------
    # Health Check Endpoint
    # -------------------------------------------------------------------------
    @app.get(
        "/health",
        tags=["Health"],
        summary="Health check",
        description="Check if the API is running and healthy.",
    )
    async def health_check() -> dict:
        """Used by load balancers and monitoring systems."""
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.api_version,
            "image_storage": settings.image_storage,
            "rate_limiting": {
                "enabled": settings.rate_limit_enabled,
                "default_limit": settings.rate_limit_default,
            },
        }

    @app.get(
        "/",
        tags=["Root"],
        summary="API root",
        description="Welcome message and API information.",
    )
    async def root() -> dict:
        """Root endpoint with API information."""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    return app


# =============================================================================
# Application Instance
# =============================================================================
# This is what uvicorn imports: uvicorn grimoire.main:app

app = create_app()


# =============================================================================
# Development Server
# =============================================================================
# python -m grimoire.main

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "grimoire.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
