"""
CORS with a strict allow-list.

A listed Origin is echoed back (with credentials allowed). Any other
origin receives the first allow-listed origin, which browsers will then
refuse to match. Preflight requests are answered here with 204, and
unhandled crashes are turned into a 500 here so they carry the headers too.
"""

from __future__ import annotations

from typing import Sequence

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from estate_crm.api.errors import internal_error

ALLOW_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
ALLOW_HEADERS = "Authorization, Content-Type"
MAX_AGE = "600"


class AllowListCORSMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, allow_origins: Sequence[str]):
        super().__init__(app)
        self.allow_origins = list(allow_origins)

    def resolve_origin(self, origin: str | None) -> str:
        if origin and origin in self.allow_origins:
            return origin
        return self.allow_origins[0] if self.allow_origins else "null"

    def cors_headers(self, origin: str | None) -> dict[str, str]:
        allowed = self.resolve_origin(origin)
        headers = {
            "Access-Control-Allow-Origin": allowed,
            "Access-Control-Allow-Methods": ALLOW_METHODS,
            "Access-Control-Allow-Headers": ALLOW_HEADERS,
            "Vary": "Origin",
        }
        if origin and allowed == origin:
            headers["Access-Control-Allow-Credentials"] = "true"
        return headers

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        origin = request.headers.get("origin")

        if request.method == "OPTIONS":
            headers = self.cors_headers(origin)
            headers["Access-Control-Max-Age"] = MAX_AGE
            return Response(status_code=204, headers=headers)

        try:
            response = await call_next(request)
        except Exception as e:
            # ServerErrorMiddleware sits outside this middleware
            response = internal_error(request, e)
        response.headers.update(self.cors_headers(origin))
        return response
