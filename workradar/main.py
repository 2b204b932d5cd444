"""Workradar auth application.

Builds the FastAPI app: logging, CORS and security headers, the error
envelope for every failure path, the /api/v1 routes and /health.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from workradar.api.v1.router import router as v1_router
from workradar.core.config import Settings, settings
from workradar.core.errors import APIError
from workradar.core.logging import configure_logging
from workradar.core.responses import ErrorDetail, ErrorResponse

logger = structlog.get_logger()

_BASE_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp hardening headers on every response.

    API responses can carry codes and session tokens, so they are marked
    no-store. HSTS is only sent when TLS terminates in front of us.
    """

    def __init__(self, app: ASGIApp, *, hsts: bool = False) -> None:
        super().__init__(app)
        self._hsts = hsts

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers.update(_BASE_HEADERS)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"
        if self._hsts:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details)
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Render a domain error in the error envelope."""
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request-body validation failures as VALIDATION_ERROR (400).

    Only the location, message and type of each problem are returned. The
    submitted values are dropped since they may include passwords.
    """
    details = [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    return _error_response(
        400, "VALIDATION_ERROR", "Request validation failed", details
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log an unhandled exception and answer with a generic 500."""
    logger.exception("unhandled_exception", exc_info=exc, path=request.url.path)
    return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        app_settings: Overrides the process settings, mainly for tests.
    """
    cfg = app_settings or settings
    configure_logging(cfg.log_level, json_output=cfg.log_json)

    app = FastAPI(
        title="Workradar Auth API",
        version="1.0.0",
        description="Account authentication and one-time codes for Workradar",
    )

    # Added last so it wraps everything and answers preflights first
    app.add_middleware(
        SecurityHeadersMiddleware, hsts=cfg.environment == "production"
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )

    app.add_exception_handler(APIError, api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, validation_error_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, internal_error_handler)

    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
