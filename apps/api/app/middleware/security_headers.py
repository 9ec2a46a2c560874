from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.config import settings

API_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}
HSTS_VALUE = "max-age=63072000; includeSubDomains; preload"


def headers_for(path: str, env: str) -> dict[str, str]:
    headers = dict(API_HEADERS)
    # Mingle payloads carry live locations and participant counts
    if path.startswith("/v1/"):
        headers["Cache-Control"] = "no-store"
    if env != "local":
        headers["Strict-Transport-Security"] = HSTS_VALUE
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        if settings.security_headers_enabled:
            for name, value in headers_for(request.url.path, settings.env).items():
                response.headers.setdefault(name, value)
        return response
