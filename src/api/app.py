"""FastAPI application factory for the menu recommendation service.

create_app() wires the routes, the two rate limiters, the user metadata store,
and the exception handlers that turn MenuServiceError subclasses into
``{"error": ..., "details": ...}`` responses.
"""

import math
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from src.api.routes import router
from src.services.preferences import InMemoryUserMetadataStore, UserMetadataStore
from src.services.rate_limit import SlidingWindowRateLimiter, get_client_ip
from src.utils.config import config
from src.utils.errors import MenuServiceError, RateLimitExceeded
from src.utils.logger import logger


def _error_body(error: str, details: Optional[str] = None) -> dict:
    body = {"error": error}
    if details:
        body["details"] = details
    return body


def rate_limit_response(exc: RateLimitExceeded) -> JSONResponse:
    """429 response with limit/remaining/reset in both the body and headers.

    ``reset`` is the epoch time in milliseconds at which a slot frees up.
    """
    result = exc.result
    reset_ms = int(math.ceil(result.reset_at * 1000))
    return JSONResponse(
        status_code=429,
        content={
            "error": exc.message,
            "limit": result.limit,
            "remaining": result.remaining,
            "reset": reset_ms,
            "retryAfter": result.retry_after,
        },
        headers={
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(reset_ms),
            "Retry-After": str(result.retry_after),
        },
    )


def _format_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(messages)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RateLimitExceeded)
    async def handle_rate_limit(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return rate_limit_response(exc)

    @app.exception_handler(MenuServiceError)
    async def handle_service_error(request: Request, exc: MenuServiceError) -> JSONResponse:
        # Server-side failure details (model errors, IO errors) stay out of production responses
        expose_details = exc.status_code < 500 or not config.is_production
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.details if expose_details else None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = _format_validation_errors(exc)
        logger.warning(f"{request.method} {request.url.path} invalid request body: {details}")
        return JSONResponse(status_code=400, content=_error_body("Invalid request body", details))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        client_ip = get_client_ip(request)
        logger.exception(
            f"{request.method} {request.url.path} unhandled error from {client_ip}: {exc}",
            extra={"client_ip": client_ip},
        )
        return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def create_app(
    model_limiter: Optional[SlidingWindowRateLimiter] = None,
    general_limiter: Optional[SlidingWindowRateLimiter] = None,
    metadata_store: Optional[UserMetadataStore] = None,
) -> FastAPI:
    """Build the application.

    Args:
        model_limiter: Limiter for model-backed routes. Defaults to
            RATE_LIMIT_REQUESTS per RATE_LIMIT_WINDOW_SECONDS.
        general_limiter: Limiter for uploads. Defaults to
            GENERAL_RATE_LIMIT_REQUESTS per RATE_LIMIT_WINDOW_SECONDS.
        metadata_store: Per-user metadata backend. Defaults to an in-memory store.

    Returns:
        Configured FastAPI app. Uploaded files are served under /uploads.
    """
    app = FastAPI(
        title="Menu Matcher",
        description="Menu photo extraction, preference quiz and dish recommendations",
        version="1.0.0",
    )

    app.state.model_limiter = model_limiter or SlidingWindowRateLimiter(
        config.RATE_LIMIT_REQUESTS, config.RATE_LIMIT_WINDOW_SECONDS, name="model"
    )
    app.state.general_limiter = general_limiter or SlidingWindowRateLimiter(
        config.GENERAL_RATE_LIMIT_REQUESTS, config.RATE_LIMIT_WINDOW_SECONDS, name="general"
    )
    app.state.metadata_store = metadata_store or InMemoryUserMetadataStore()

    register_exception_handlers(app)
    app.include_router(router)

    upload_dir = Path(config.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=upload_dir), name="uploads")

    logger.info(
        f"App created: model limit {app.state.model_limiter.limit}/{app.state.model_limiter.window_seconds}s, "
        f"upload limit {app.state.general_limiter.limit}/{app.state.general_limiter.window_seconds}s, "
        f"recommendation mode {config.RECOMMENDATION_MODE}"
    )
    return app
