"""Rate limiting middleware for the Daper API

Per-IP request limits (per minute and per hour) so a single client cannot
flood the generation endpoints. Buckets live in TTLCaches so idle IPs expire
on their own; multi-instance deployments each keep their own counts.
"""

from __future__ import annotations

import ipaddress
import os
import time
from collections.abc import Callable
from typing import Any

from cachetools import TTLCache
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from daper.config import RATE_LIMIT_MAX_IPS
from daper.observability.telemetry import log_event

EXEMPT_PATHS = ("/health", "/")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window request limits per client IP."""

    def __init__(
        self,
        app: Any,
        requests_per_minute: int = 60,
        requests_per_hour: int = 1000,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour

        self.minute_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=120
        )
        self.hour_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=7200
        )

        # Set by the fronting load balancer; X-Forwarded-For is trusted only with it
        self._trusted_proxy_header = "X-Cloud-Trace-Context"

    @staticmethod
    def _is_valid_ip(ip_str: str) -> bool:
        try:
            ipaddress.ip_address(ip_str)
            return True
        except ValueError:
            return False

    def _get_client_ip(self, request: Request) -> str:
        """Client IP, honouring X-Forwarded-For only behind the trusted proxy or in development."""
        trusted = self._trusted_proxy_header in request.headers
        development = os.getenv("DAPER_ENV", "development") == "development"

        if trusted or development:
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                ip = forwarded.split(",")[0].strip()
                if self._is_valid_ip(ip):
                    return ip

        if development:
            real_ip = request.headers.get("X-Real-IP")
            if real_ip and self._is_valid_ip(real_ip):
                return real_ip

        return request.client.host if request.client else "unknown"

    @staticmethod
    def _clean_old_requests(bucket: list[float], max_age_seconds: int, now: float) -> list[float]:
        return [ts for ts in bucket if now - ts < max_age_seconds]

    @staticmethod
    def _limited(limit: int, window: str, retry_after: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={
                "detail": f"Rate limit exceeded. Maximum {limit} requests per {window}.",
                "retry_after": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        now = time.time()

        minute_bucket = self._clean_old_requests(self.minute_buckets.get(client_ip, []), 60, now)
        hour_bucket = self._clean_old_requests(self.hour_buckets.get(client_ip, []), 3600, now)

        if len(minute_bucket) >= self.requests_per_minute:
            log_event("api.rate_limit.exceeded", limit="minute", count=len(minute_bucket))
            self.minute_buckets[client_ip] = minute_bucket
            return self._limited(self.requests_per_minute, "minute", 60)

        if len(hour_bucket) >= self.requests_per_hour:
            log_event("api.rate_limit.exceeded", limit="hour", count=len(hour_bucket))
            self.hour_buckets[client_ip] = hour_bucket
            return self._limited(self.requests_per_hour, "hour", 3600)

        minute_bucket.append(now)
        hour_bucket.append(now)
        self.minute_buckets[client_ip] = minute_bucket
        self.hour_buckets[client_ip] = hour_bucket

        response = await call_next(request)

        response.headers["X-RateLimit-Limit-Minute"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining-Minute"] = str(
            max(0, self.requests_per_minute - len(minute_bucket))
        )
        response.headers["X-RateLimit-Limit-Hour"] = str(self.requests_per_hour)
        response.headers["X-RateLimit-Remaining-Hour"] = str(
            max(0, self.requests_per_hour - len(hour_bucket))
        )
        return response
