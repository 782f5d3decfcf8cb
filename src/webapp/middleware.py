"""
FastAPI middleware for rate limiting.

Form endpoints send email and create Zoho records, so they get a much
tighter budget than the read-only currency and catalog API.
"""

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Endpoints that send email or create Zoho records
FORM_PATHS = ("/api/contact", "/api/quotes")
PURCHASE_SUFFIX = "/purchase"

# Never throttled; Zoho webhook deliveries included
EXEMPT_PATHS = ("/health", "/health/simple", "/health/ready", "/api/webhooks/zoho")

CLEANUP_INTERVAL_SECONDS = 60


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    enabled: bool = True
    # Requests per window outside /api/
    default_rpm: int = 120
    # POSTs to FORM_PATHS and purchases
    form_rpm: int = 5
    # Everything else under /api/
    api_rpm: int = 60
    window_seconds: int = 60


class RateLimitState:
    """Sliding-window request log per (client, endpoint)."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.requests: dict[str, dict[str, deque]] = {}

    def _window(self, client_id: str, endpoint: str) -> deque:
        return self.requests.setdefault(client_id, {}).setdefault(endpoint, deque())

    @staticmethod
    def _expire(window: deque, cutoff: float) -> None:
        while window and window[0] <= cutoff:
            window.popleft()

    def record_request(self, client_id: str, endpoint: str) -> None:
        self._window(client_id, endpoint).append(self._clock())

    def get_request_count(self, client_id: str, endpoint: str, window_seconds: int) -> int:
        """Requests from ``client_id`` to ``endpoint`` within the window."""
        window = self._window(client_id, endpoint)
        self._expire(window, self._clock() - window_seconds)
        return len(window)

    def cleanup(self, max_age_seconds: int = 300) -> None:
        """Forget clients with no requests in the last ``max_age_seconds``."""
        cutoff = self._clock() - max_age_seconds

        for client_id, endpoints in list(self.requests.items()):
            for endpoint, window in list(endpoints.items()):
                self._expire(window, cutoff)
                if not window:
                    del endpoints[endpoint]
            if not endpoints:
                del self.requests[client_id]


def get_client_ip(request: Request) -> str | None:
    """Originating client address, honouring X-Forwarded-For."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def get_endpoint_limit(request: Request, config: RateLimitConfig) -> int:
    path = request.url.path
    if request.method == "POST" and (path in FORM_PATHS or path.endswith(PURCHASE_SUFFIX)):
        return config.form_rpm
    if path.startswith("/api/"):
        return config.api_rpm
    return config.default_rpm


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client rate limiting with 429 JSON responses."""

    def __init__(
        self,
        app,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(app)
        self.config = config or RateLimitConfig()
        self.state = RateLimitState(clock)
        self._clock = clock
        self._last_cleanup = clock()

    def _limited_response(self, limit: int) -> JSONResponse:
        window = self.config.window_seconds
        return JSONResponse(
            status_code=429,
            content={
                "error": "RATE_LIMITED",
                "message": f"Rate limit exceeded. Maximum {limit} requests per minute.",
                "details": {"retry_after_seconds": window},
            },
            headers={
                "Retry-After": str(window),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
            },
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not self.config.enabled or path in EXEMPT_PATHS:
            return await call_next(request)

        now = self._clock()
        if now - self._last_cleanup > CLEANUP_INTERVAL_SECONDS:
            self.state.cleanup()
            self._last_cleanup = now

        client_id = get_client_ip(request) or "unknown"
        limit = get_endpoint_limit(request, self.config)
        endpoint = f"{request.method} {path}"

        used = self.state.get_request_count(client_id, endpoint, self.config.window_seconds)
        if used >= limit:
            logger.warning(f"Rate limit exceeded: client={client_id}, endpoint={endpoint}, limit={limit}")
            return self._limited_response(limit)

        self.state.record_request(client_id, endpoint)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, limit - used - 1))
        return response
