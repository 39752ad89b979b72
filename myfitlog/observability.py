"""Lightweight observability helpers (logging + metrics)."""

from __future__ import annotations

import bisect
import json
import logging
import time
import uuid
from collections import defaultdict
from contextvars import ContextVar
from dataclasses import dataclass, field
from threading import Lock
from typing import Iterable, Protocol

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from myfitlog.core.config import get_settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
logger = logging.getLogger(__name__)

DEFAULT_BUCKETS_MS = [5, 10, 25, 50, 100, 250, 500, 1000, 2500]


def get_request_id() -> str | None:
    """Return the current request id if set by middleware."""
    return request_id_ctx.get()


class MetricsBackend(Protocol):
    """Metrics backend interface."""

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        ...

    def observe_backend_call(
        self,
        operation: str,
        success: bool,
        duration_ms: float,
    ) -> None:
        ...

    def render_prometheus(self) -> str:
        ...


@dataclass
class _Histogram:
    """Cumulative-bucket histogram for one label set."""

    bounds: list[int]
    bucket_counts: list[int] = field(default_factory=list)
    total: float = 0.0
    count: int = 0

    def __post_init__(self) -> None:
        # One slot per bound plus the +Inf overflow slot
        self.bucket_counts = [0] * (len(self.bounds) + 1)

    def observe(self, value: float) -> None:
        index = bisect.bisect_left(self.bounds, value)
        self.bucket_counts[index] += 1
        self.total += value
        self.count += 1

    def render(self, name: str, labels: dict[str, str]) -> list[str]:
        lines = []
        cumulative = 0
        edges = [str(b) for b in self.bounds] + ["+Inf"]
        for edge, bucket_count in zip(edges, self.bucket_counts):
            cumulative += bucket_count
            lines.append(f"{name}_bucket{_labels(labels, le=edge)} {cumulative}")
        lines.append(f"{name}_sum{_labels(labels)} {self.total:.2f}")
        lines.append(f"{name}_count{_labels(labels)} {self.count}")
        return lines


def _labels(labels: dict[str, str], **extra: str) -> str:
    merged = {**labels, **extra}
    return "{" + ",".join(f'{key}="{value}"' for key, value in merged.items()) + "}"


class MetricsCollector:
    """In-process metrics collector with Prometheus text output."""

    def __init__(self, buckets_ms: Iterable[int] | None = None) -> None:
        self._lock = Lock()
        self._buckets_ms = sorted(buckets_ms or DEFAULT_BUCKETS_MS)
        self._request_counts: dict[tuple[str, str, str], int] = defaultdict(int)
        self._request_durations: dict[tuple[str, str], _Histogram] = {}
        self._backend_counts: dict[tuple[str, str], int] = defaultdict(int)
        self._backend_durations: dict[str, _Histogram] = {}

    def _histogram(self, series: dict, key) -> _Histogram:
        histogram = series.get(key)
        if histogram is None:
            histogram = series[key] = _Histogram(self._buckets_ms)
        return histogram

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        with self._lock:
            self._request_counts[(method, path, str(status_code))] += 1
            self._histogram(self._request_durations, (method, path)).observe(duration_ms)

    def observe_backend_call(
        self,
        operation: str,
        success: bool,
        duration_ms: float,
    ) -> None:
        """Record one collaborator call."""
        with self._lock:
            self._backend_counts[(operation, _outcome(success))] += 1
            self._histogram(self._backend_durations, operation).observe(duration_ms)

    def backend_call_count(self, operation: str, success: bool = True) -> int:
        with self._lock:
            return self._backend_counts.get((operation, _outcome(success)), 0)

    def render_prometheus(self) -> str:
        """Render metrics in Prometheus text format."""
        lines: list[str] = []
        with self._lock:
            lines += _header("http_requests_total", "Total HTTP requests", "counter")
            for (method, path, status), count in sorted(self._request_counts.items()):
                labels = {"method": method, "path": path, "status": status}
                lines.append(f"http_requests_total{_labels(labels)} {count}")

            lines += _header(
                "http_request_duration_ms",
                "Request duration in milliseconds",
                "histogram",
            )
            for (method, path), histogram in sorted(self._request_durations.items()):
                lines += histogram.render(
                    "http_request_duration_ms",
                    {"method": method, "path": path},
                )

            lines += _header("backend_calls_total", "Collaborator calls", "counter")
            for (operation, status), count in sorted(self._backend_counts.items()):
                labels = {"operation": operation, "status": status}
                lines.append(f"backend_calls_total{_labels(labels)} {count}")

            lines += _header(
                "backend_call_duration_ms",
                "Collaborator call duration in milliseconds",
                "histogram",
            )
            for operation, histogram in sorted(self._backend_durations.items()):
                lines += histogram.render("backend_call_duration_ms", {"operation": operation})
        return "\n".join(lines) + "\n"


def _header(name: str, help_text: str, kind: str) -> list[str]:
    return [f"# HELP {name} {help_text}", f"# TYPE {name} {kind}"]


def _outcome(success: bool) -> str:
    return "success" if success else "error"


class PrometheusMetrics:
    """Prometheus client-based metrics backend."""

    def __init__(self, buckets_ms: Iterable[int]) -> None:
        self._registry = CollectorRegistry()
        self._buckets_ms = list(buckets_ms)

        self._http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "Request duration in milliseconds",
            ["method", "path"],
            buckets=self._buckets_ms,
            registry=self._registry,
        )
        self._backend_calls_total = Counter(
            "backend_calls_total",
            "Collaborator calls",
            ["operation", "status"],
            registry=self._registry,
        )
        self._backend_call_duration_ms = Histogram(
            "backend_call_duration_ms",
            "Collaborator call duration in milliseconds",
            ["operation"],
            buckets=self._buckets_ms,
            registry=self._registry,
        )

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        self._http_requests_total.labels(method, path, str(status_code)).inc()
        self._http_request_duration_ms.labels(method, path).observe(duration_ms)

    def observe_backend_call(
        self,
        operation: str,
        success: bool,
        duration_ms: float,
    ) -> None:
        self._backend_calls_total.labels(operation, _outcome(success)).inc()
        self._backend_call_duration_ms.labels(operation).observe(duration_ms)

    def render_prometheus(self) -> str:
        return generate_latest(self._registry).decode("utf-8")


_metrics_backend: MetricsBackend | None = None


def get_metrics_backend() -> MetricsBackend:
    """Return a cached metrics backend instance."""
    global _metrics_backend
    if _metrics_backend is None:
        settings = get_settings()
        _metrics_backend = build_metrics_backend(settings.metrics_backend)
    return _metrics_backend


def build_metrics_backend(backend: str) -> MetricsBackend:
    if backend == "prometheus":
        return PrometheusMetrics(DEFAULT_BUCKETS_MS)
    if backend != "inmemory":
        logger.warning("Unknown metrics backend %r, using in-memory metrics", backend)
    return MetricsCollector(DEFAULT_BUCKETS_MS)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, then log and measure it once it completes."""

    def __init__(
        self,
        app: ASGIApp,
        metrics: MetricsBackend | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(app)
        self.metrics = metrics or get_metrics_backend()
        self.logger = logger or logging.getLogger("myfitlog.request")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        started = time.perf_counter()

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            route_path = _route_template(request)
            self.metrics.observe_request(request.method, route_path, status_code, elapsed_ms)
            self.logger.info(
                json.dumps(
                    {
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "route": route_path,
                        "status_code": status_code,
                        "elapsed_ms": round(elapsed_ms, 2),
                    }
                )
            )
            request_id_ctx.reset(token)


def _route_template(request: Request) -> str:
    """The matched route pattern, so ids in URLs do not become metric labels."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "/__unmatched__"
