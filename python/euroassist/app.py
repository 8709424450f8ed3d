"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, CORS, auth middleware, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. CORSMiddleware (answers preflights, adds CORS headers)
3. AuthMiddleware (resolves the session cookie, sets viewer)
4. Route handler

Assistant Client Lifecycle:
- httpx.AsyncClient is created at startup, stored in app.state
- AssistantClient wraps the shared client for connection pooling
- Client is closed gracefully at shutdown
"""

from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from euroassist.api.routes import create_api_router
from euroassist.auth.middleware import AuthMiddleware
from euroassist.config import get_settings
from euroassist.db.session import get_db
from euroassist.errors import ApiError
from euroassist.logging import configure_logging, get_logger
from euroassist.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from euroassist.responses import (
    api_error_handler,
    http_exception_handler,
    storage_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from euroassist.services.llm import AssistantClient

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_lifespan(assistant: AssistantClient | None = None):
    """Build the lifespan handler.

    Args:
        assistant: Pre-built AssistantClient (tests). When None, one is built
            from settings around a shared httpx.AsyncClient.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if assistant is not None:
            app.state.assistant = assistant
            yield
            return

        settings = get_settings()

        # Shared HTTP client for LLM calls
        app.state.httpx_client = httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, connect=10.0),
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        )
        app.state.assistant = AssistantClient.from_settings(app.state.httpx_client, settings)

        logger.info(
            "assistant_client_initialized",
            provider=settings.llm_provider,
            model_name=settings.llm_model_name,
            api_key_configured=bool(settings.llm_api_key),
            streaming_enabled=settings.enable_streaming,
        )

        try:
            yield
        finally:
            await app.state.httpx_client.aclose()
            logger.info("httpx_client_closed")

    return lifespan


def create_app(
    session_factory: Callable[[], Session] | None = None,
    assistant: AssistantClient | None = None,
    skip_auth_middleware: bool = False,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session_factory: Database session factory override (tests). None uses DATABASE_URL.
        assistant: AssistantClient override (tests). None builds one in the lifespan.
        skip_auth_middleware: If True, skip adding auth middleware (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="EuroAssist.ai API",
        description="Chat API for the EuroAssist.ai European university assistant",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=create_lifespan(assistant),
    )
    app.state.session_factory = session_factory

    if session_factory is not None:

        def override_get_db() -> Generator[Session, None, None]:
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(create_api_router())

    # Add auth middleware (runs on all requests except public paths)
    if not skip_auth_middleware:
        app.add_middleware(
            AuthMiddleware,
            cookie_name=settings.session_cookie_name,
            session_factory=session_factory,
        )
        logger.info("auth_middleware_enabled", env=settings.euroassist_env.value)

    # Credentialed CORS for the browser client; added after auth so preflights skip it
    cors_origins = settings.cors_origin_list
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Accept", REQUEST_ID_HEADER],
            expose_headers=[REQUEST_ID_HEADER],
        )
        logger.info("cors_middleware_enabled", origins=cors_origins)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
