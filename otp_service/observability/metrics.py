from __future__ import annotations
import time
from fastapi import Response, Request
from prometheus_client import (
    Counter, Histogram, Gauge, CollectorRegistry,
    CONTENT_TYPE_LATEST, generate_latest,
)

REGISTRY = CollectorRegistry(auto_describe=True)

# ---------- Metric definitions ----------
HTTP_REQS = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"], registry=REGISTRY)
HTTP_LATENCY = Histogram("http_request_duration_seconds", "HTTP request latency", ["method", "path"], registry=REGISTRY)

OTP_SENT         = Counter("otp_sent_total", "OTP send attempts", ["result"], registry=REGISTRY)
OTP_VERIFY       = Counter("otp_verify_total", "OTP verifications", ["outcome"], registry=REGISTRY)
OTP_RATE_LIMITED = Counter("otp_rate_limited_total", "OTP sends rejected by cooldown", registry=REGISTRY)
OTP_CLEANED      = Counter("otp_cleaned_total", "Expired OTP records swept", registry=REGISTRY)
OTP_OUTSTANDING  = Gauge("otp_outstanding", "OTP records currently held in memory", registry=REGISTRY)

# ---------- /metrics endpoint factory ----------
def metrics_app():
    async def _metrics(_: Request):
        data = generate_latest(REGISTRY)
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)
    return _metrics

# ---------- HTTP middleware for latency/counters ----------
class MetricsHTTPMiddleware:
    def __init__(self, app):
        self.app = app
    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)
        method = scope["method"]
        path = scope["path"]
        t0 = time.perf_counter()

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                status = message["status"]
                HTTP_REQS.labels(method=method, path=path, status=status).inc()
                HTTP_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - t0)
            await send(message)

        await self.app(scope, receive, send_wrapper)
