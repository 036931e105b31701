"""
Bones Backend — FastAPI Application Factory
============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, exception
       handlers, and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance
       that owns its own UserStore and UserService.
Who:   Called by uvicorn (uvicorn bones.main:app) and by the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware:  Request ID → Logging → CORS           │
    │                                                     │
    │  Routes:  /api/users (CRUD) │ /api/hello │ /health  │
    │                                                     │
    │  Exception Handlers:                                │
    │  Validation→400 │ Duplicate→409 │ NotFound→404      │
    │                                                     │
    │  app.state: user_store, user_service                │
    └─────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bones import __version__
from bones.config import settings
from bones.exceptions import (
    BonesError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from bones.middleware.logging import RequestLoggingMiddleware
from bones.middleware.request_id import RequestIDMiddleware, request_id_var
from bones.routes import health, users
from bones.services.user_service import UserService
from bones.store import UserStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # These log every request/connection at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: logging, banner.
    Shutdown: log the final collection size (it is not persisted).
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("Greact-Bones backend starting up...")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("CORS origins: %s", ", ".join(settings.cors_origins_list))
    logger.info("=" * 60)

    yield

    logger.info(
        "Greact-Bones backend shutting down; discarding %d in-memory users",
        len(app.state.user_store),
    )


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, exc: BonesError) -> JSONResponse:
    content = exc.to_descriptor()
    content["request_id"] = request_id_var.get("")
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map service exceptions to HTTP status codes and error descriptors.

    Handler hierarchy:
        ValidationError     → 400 Bad Request
        RequestValidationError → 400 Bad Request (malformed body, same descriptor)
        NotFoundError       → 404 Not Found
        DuplicateKeyError   → 409 Conflict
        BonesError (base)   → 500 Internal Server Error
        Exception           → 500 Internal Server Error (stack trace logged only)
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        # Missing body or wrong JSON types: report like a service ValidationError
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ())]
        field = loc[-1] if loc else "body"
        error = ValidationError(
            message=f"{field}: {first.get('msg', 'invalid request body')}",
            field=field,
            context={
                "errors": [
                    {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
                    for err in errors
                ]
            },
        )
        logger.warning("[%s] Request validation error: %s", request_id_var.get(""), error.message)
        return _error_response(400, error)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, exc)

    @app.exception_handler(DuplicateKeyError)
    async def handle_duplicate_key(request: Request, exc: DuplicateKeyError):
        logger.warning("[%s] Duplicate key: %s", request_id_var.get(""), exc.field)
        return _error_response(409, exc)

    @app.exception_handler(BonesError)
    async def handle_bones_error(request: Request, exc: BonesError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(store: Optional[UserStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store: Collection to serve. A fresh empty store when omitted, so
               every app instance (and every test) owns its own state.
    """
    app = FastAPI(
        title=settings.app_name,
        description="Full-stack skeleton backend: user CRUD over an in-memory collection.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.user_store = store if store is not None else UserStore()
    app.state.user_service = UserService(app.state.user_store)

    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Total-Count"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(health.router)

    return app


# uvicorn expects `bones.main:app` to be importable
app = create_app()
