"""Security and rate limiting middleware."""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any, Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

EXEMPT_PATHS = {"/health", "/healthz"}
PRUNE_INTERVAL_SECONDS = 60.0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP sliding window limits on requests per minute and per hour.

    Health probes are not counted.
    """

    def __init__(
        self,
        app: Any,
        *,
        requests_per_minute: int = 60,
        requests_per_hour: int = 1000,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.minute_requests: dict[str, list[float]] = defaultdict(list)
        self.hour_requests: dict[str, list[float]] = defaultdict(list)
        self._last_prune = time.time()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        current_time = time.time()
        if current_time - self._last_prune >= PRUNE_INTERVAL_SECONDS:
            self._prune(current_time)
        self._clean_old_entries(client_ip, current_time)

        if len(self.minute_requests[client_ip]) >= self.requests_per_minute:
            return self._too_many("Rate limit exceeded. Please try again later.")
        if len(self.hour_requests[client_ip]) >= self.requests_per_hour:
            return self._too_many("Hourly rate limit exceeded. Please try again later.")

        self.minute_requests[client_ip].append(current_time)
        self.hour_requests[client_ip].append(current_time)
        return await call_next(request)

    @staticmethod
    def _too_many(message: str) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"error": message, "kind": "rate_limited"},
        )

    def _clean_old_entries(self, client_ip: str, current_time: float) -> None:
        minute = [t for t in self.minute_requests.get(client_ip, ()) if current_time - t < 60]
        hour = [t for t in self.hour_requests.get(client_ip, ()) if current_time - t < 3600]
        if hour:
            self.minute_requests[client_ip] = minute
            self.hour_requests[client_ip] = hour
        else:
            # Idle clients are forgotten so the maps stay bounded
            self.minute_requests.pop(client_ip, None)
            self.hour_requests.pop(client_ip, None)

    def _prune(self, current_time: float) -> None:
        for client_ip in list(self.hour_requests):
            self._clean_old_entries(client_ip, current_time)
        self._last_prune = current_time


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        return response
