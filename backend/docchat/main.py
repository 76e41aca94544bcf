"""FastAPI application - document upload and chat over documents."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from backend.docchat.api.deps import build_services
from backend.docchat.api.routes.chats import router as chats_router
from backend.docchat.api.routes.documents import router as documents_router
from backend.docchat.api.routes.health import router as health_router
from backend.docchat.api.routes.metrics import router as metrics_router
from backend.docchat.config import Settings, get_settings
from backend.docchat.db.models import Base
from backend.docchat.errors import DocChatError, GenerationError, RateLimitedError
from backend.docchat.llm.client import LLMClient
from backend.docchat.models.envelope import ApiResponse
from backend.docchat.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    message: str,
    *,
    detail: str | None,
    settings: Settings,
    data: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render the failure envelope; internal detail only in development."""
    body = ApiResponse[Any](
        success=False,
        message=message,
        data=data,
        error=detail if settings.is_development else None,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def create_app(settings: Settings | None = None, *, llm: LLMClient | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings override (tests); defaults to get_settings()
        llm: LLM client override (tests); built from settings when omitted
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging("DEBUG" if settings.is_development else "INFO")
        services = build_services(settings, llm=llm)

        if settings.create_schema_on_startup:
            async with services.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        app.state.services = services
        logger.info(f"Started ({settings.environment}, llm={type(services.llm).__name__})")
        try:
            yield
        finally:
            await services.close()
            logger.info("Shut down")

    app = FastAPI(title="Document Chat API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.ui_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DocChatError)
    async def handle_docchat_error(request: Request, exc: DocChatError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc.detail}")

        data = None
        headers = None
        if isinstance(exc, GenerationError) and exc.failed_message_id is not None:
            data = {"failed_message_id": str(exc.failed_message_id)}
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(exc.retry_after_seconds)}

        return error_response(
            exc.status_code,
            exc.public_message,
            detail=exc.detail,
            settings=settings,
            data=data,
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response(422, "Invalid request", detail=str(exc.errors()), settings=settings)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        return error_response(
            exc.status_code,
            str(exc.detail),
            detail=str(exc.detail),
            settings=settings,
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(
            500, "Internal server error", detail=f"{type(exc).__name__}: {exc}", settings=settings
        )

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(documents_router)
    app.include_router(chats_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Document Chat API", "version": "0.1.0"}

    return app


app = create_app()
