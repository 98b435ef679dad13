"""
Menu Service Backend: FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   ``create_app()`` builds the store, image storage and MenuService,
       registers middleware, exception handlers and routers, and returns the
       app. ``run()`` starts uvicorn (console script ``menu-service``).
Who:   uvicorn (``menu_service.main:app``) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware:  Req ID → Logging → GZip → CORS        │
    │                                                     │
    │  Routes (registration order matters):               │
    │    /menu, /menu/{id}  /images/{filename}            │
    │    /api, /health, [/]                               │
    │    /{path}  ← frontend catch-all, always last       │
    │                                                     │
    │  Exception Handlers:                                │
    │    Validation→400  NotFound→404  Store→502          │
    │    ImageRead→500   Upload→500    other→500          │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, open the store (create tables if enabled)
    Shutdown: close the store (dispose the connection pool)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from menu_service import __version__
from menu_service.config import Settings, settings
from menu_service.database import MenuStore
from menu_service.exceptions import (
    ImageReadError,
    NotFoundError,
    StoreUnavailableError,
    UploadError,
    ValidationError,
)
from menu_service.middleware.logging import RequestLoggingMiddleware
from menu_service.middleware.request_id import RequestIDMiddleware, error_response, request_id_var
from menu_service.routes import frontend, health, images, menu
from menu_service.services.image_storage import ImageStorage
from menu_service.services.menu_service import MenuService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s, to stdout so
    the container runtime collects it.
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-request access lines come from RequestLoggingMiddleware instead
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app_settings: Settings = app.state.settings
    service: MenuService = app.state.menu_service

    setup_logging(app_settings.log_level)
    logger.info("Menu service backend starting up (version %s)", __version__)

    try:
        await service.store.open(create_tables=app_settings.db_auto_create)
    except StoreUnavailableError as e:
        # Keep serving: /api stays up and menu requests report store_unavailable
        logger.error("Store not reachable at startup: %s | Context: %s", e.message, e.context)

    logger.info("Images directory: %s", service.images.root)
    logger.info("Inline images: %s", service.inline_images)
    logger.info("Server ready at http://%s:%d", app_settings.host, app_settings.port)

    yield

    logger.info("Menu service backend shutting down...")
    await service.store.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and the ErrorResponse body.

    Handler table:
        ValidationError         → 400
        RequestValidationError  → 400 (FastAPI parameter parsing, e.g. /menu/abc)
        NotFoundError           → 404
        StoreUnavailableError   → 502
        ImageReadError          → 500
        UploadError             → 500
        HTTPException           → its own status, same body shape
        Exception (fallback)    → 500, built by RequestIDMiddleware

    Driver errors, file paths and stack traces stay in the server log.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return error_response(400, exc.error_code, exc.message, exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Invalid request parameter '{location}': {first.get('msg', 'invalid value')}"
        logger.warning("[%s] Request validation error: %s", request_id_var.get(""), message)
        return error_response(400, ValidationError.error_code, message, {"field": location})

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(404, exc.error_code, exc.message)

    @app.exception_handler(StoreUnavailableError)
    async def handle_store_unavailable(request: Request, exc: StoreUnavailableError):
        logger.error("[%s] Store unavailable: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(502, exc.error_code, exc.message)

    @app.exception_handler(ImageReadError)
    async def handle_image_read_error(request: Request, exc: ImageReadError):
        logger.error("[%s] Image read error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(500, exc.error_code, exc.message)

    @app.exception_handler(UploadError)
    async def handle_upload_error(request: Request, exc: UploadError):
        logger.error("[%s] Upload error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(500, exc.error_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        error = NotFoundError.error_code if exc.status_code == 404 else "http_error"
        response = error_response(exc.status_code, error, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def build_service(app_settings: Settings) -> MenuService:
    """Construct the store, image storage and MenuService from settings."""
    store = MenuStore.from_settings(app_settings)
    image_storage = ImageStorage(
        app_settings.images_dir,
        max_size=app_settings.max_image_size,
        timeout=app_settings.file_timeout_seconds,
    )
    return MenuService(store, image_storage, inline_images=app_settings.inline_images)


def create_app(
    app_settings: Optional[Settings] = None,
    service: Optional[MenuService] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Defaults to the ``settings`` singleton.
        service:      Prebuilt MenuService (tests pass one with an opened
                      SQLite store); built from ``app_settings`` otherwise.
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="Menu Service API",
        description="CRUD API for menu items with image uploads stored on disk.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.menu_service = service or build_service(app_settings)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    # Inlined base64 images make list responses large and compressible
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(menu.router)
    app.include_router(images.router)
    app.include_router(health.router)

    if frontend.has_bundle(app_settings.frontend_build_dir):
        # Must stay last: the catch-all would shadow any route added after it
        app.include_router(frontend.build_router(app_settings.frontend_build_dir))
        logger.info("Serving frontend bundle from %s", app_settings.frontend_build_dir)
    else:
        app.include_router(health.root_router)

    return app


app = create_app()


def run() -> None:
    """Console-script entry point: ``menu-service``."""
    uvicorn.run(
        "menu_service.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
