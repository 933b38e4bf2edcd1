"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings, load_settings
from .errors import GatewayError, ValidationError

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(
        "gateway_started",
        imap_host=settings.provider.imap_host,
        smtp_host=settings.provider.smtp_host,
        smtp_fallback_host=settings.provider.smtp_fallback_host,
    )
    yield
    logger.info("shutdown_complete")


def _describe_validation_error(exc: RequestValidationError) -> str:
    fields: list[str] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        label = ".".join(loc) if loc else str(err.get("msg", "invalid body"))
        if label not in fields:
            fields.append(label)
    return "Missing or invalid fields: " + ", ".join(fields)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and return the FastAPI application.

    Raises ConfigError when no settings are passed and the environment
    lacks the API key.
    """
    if settings is None:
        settings = load_settings()

    app = FastAPI(
        title="Email Gateway",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > settings.max_body_bytes:
            return JSONResponse({"ok": False, "error": "Request body too large"}, status_code=413)
        return await call_next(request)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        return JSONResponse({"ok": False, "error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = ValidationError(_describe_validation_error(exc))
        logger.info("request_rejected", path=request.url.path, error=error.message)
        return JSONResponse({"ok": False, "error": error.message}, status_code=error.status_code)

    from .routes import router

    app.include_router(router)

    return app
