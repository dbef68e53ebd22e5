"""
Car World CRM - HTTP Middleware

Request logging with correlation ids, response security headers and a body size
guard for the JSON uploads (vehicle photos, warranty cards, product images).
"""

import time
from typing import Callable, Set
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
from starlette.types import ASGIApp

from carworld.core.logging_config import (
    logger,
    get_user_id,
    set_request_id,
    set_user_id,
    set_shop_role,
    generate_request_id,
)


QUIET_PATHS: Set[str] = {
    "/",
    "/health",
    "/api/v1/health",
    "/api/v1/health/live",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
}

# Query parameters that grant access on their own and must never reach the logs
SECRET_QUERY_PARAMS = ("token",)


def should_skip_logging(path: str) -> bool:
    return path in QUIET_PATHS or path.endswith((".js", ".css", ".png", ".ico"))


def loggable_url(request: Request) -> str:
    """Path plus query string with PDF access tokens masked"""
    path = request.url.path
    if not request.url.query:
        return path
    parts = []
    for key, value in request.query_params.multi_items():
        parts.append(f"{key}=***" if key in SECRET_QUERY_PARAMS else f"{key}={value}")
    return f"{path}?{'&'.join(parts)}"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every API call with a correlation id.

    The id is taken from an incoming X-Request-ID header when the frontend sends
    one. Responses carry X-Request-ID and X-Response-Time. Calls slower than a
    second are also reported through log_performance.
    """

    slow_request_ms = 1000

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        quiet = should_skip_logging(request.url.path)
        url = loggable_url(request)
        started = time.perf_counter()

        if not quiet:
            logger.info(
                f"-> {request.method} {url}",
                extra={
                    "event_type": "http_request_start",
                    "http_method": request.method,
                    "http_path": request.url.path,
                    "client_ip": request.client.host if request.client else "unknown",
                }
            )

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed = (time.perf_counter() - started) * 1000
            logger.error(
                f"!! {request.method} {url} raised {type(exc).__name__} after {elapsed:.2f}ms",
                exc_info=True,
                extra={
                    "event_type": "http_request_error",
                    "http_method": request.method,
                    "http_path": request.url.path,
                    "duration_ms": elapsed,
                }
            )
            raise
        else:
            elapsed = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{elapsed:.2f}ms"

            if not quiet:
                logger.log_request(
                    request.method, url, response.status_code, elapsed,
                    http_path=request.url.path,
                    acting_user=get_user_id(),
                )
                if elapsed > self.slow_request_ms:
                    logger.log_performance(f"{request.method} {request.url.path}", elapsed)

            return response
        finally:
            set_request_id("")
            set_user_id("")
            set_shop_role("")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Security headers on every response; API payloads are never cached"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/") and "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store"
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies above max_size bytes before they are parsed"""

    def __init__(self, app: ASGIApp, max_size: int = 25 * 1024 * 1024):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_size:
            limit_mb = self.max_size // (1024 * 1024)
            logger.warning(
                f"Rejected {declared} byte body on {request.url.path} (limit {limit_mb}MB)",
                extra={"event_type": "request_too_large", "http_path": request.url.path},
            )
            return JSONResponse(
                status_code=413,
                content={
                    "success": False,
                    "error": {
                        "code": "REQUEST_TOO_LARGE",
                        "message": f"Upload too large. Maximum size is {limit_mb}MB",
                        "details": {"max_bytes": self.max_size},
                    },
                }
            )
        return await call_next(request)
