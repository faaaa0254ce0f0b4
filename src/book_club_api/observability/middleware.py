"""ASGI middleware for request tracing."""

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from . import logfire
from .metrics import http_request_counter, http_request_duration


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Wrap every HTTP request in a span and record request metrics."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        method = request.method
        path = request.url.path

        with logfire.span(
            "http.{method} {path}",
            _span_name=f"HTTP {method}",
            method=method,
            path=path,
        ) as span:
            start = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception as e:
                span.set_attribute("http.status", 500)
                span.set_attribute("error.type", type(e).__name__)
                span.set_attribute("error.message", str(e))
                self._record(method, 500, start)
                raise

            span.set_attribute("http.status", response.status_code)
            if response.status_code >= 400:
                span.set_attribute("http.error", True)
            self._record(method, response.status_code, start)
            return response

    def _record(self, method: str, status: int, start: float) -> None:
        attributes = {"method": method, "status": status}
        http_request_counter.add(1, attributes)
        http_request_duration.record((time.perf_counter() - start) * 1000, attributes)
