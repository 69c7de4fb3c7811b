"""Prometheus metrics for capture requests and batch runs."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

CAPTURE_DURATION_SECONDS = Histogram(
    "sitecapture_capture_duration_seconds",
    "Wall-clock time of a single capture request",
    labelnames=("outcome",),
    buckets=(0.5, 1, 2, 5, 10, 20, 30, 60, 120),
)
CAPTURE_COUNTER = Counter(
    "sitecapture_captures_total",
    "Single captures by outcome",
    labelnames=("outcome",),
)
DEGRADED_STEP_COUNTER = Counter(
    "sitecapture_degraded_steps_total",
    "Best-effort steps that fell back instead of succeeding",
    labelnames=("step",),
)
BATCH_FAILURE_COUNTER = Counter(
    "sitecapture_batch_failures_total",
    "Page/viewport pairs a batch run could not capture",
    labelnames=("viewport",),
)
BATCH_DURATION_SECONDS = Histogram(
    "sitecapture_batch_duration_seconds",
    "Wall-clock time of a full batch run",
    buckets=(10, 30, 60, 120, 300, 600, 1200),
)


def observe_capture(duration_seconds: float, *, ok: bool) -> None:
    outcome = "ok" if ok else "failed"
    CAPTURE_DURATION_SECONDS.labels(outcome=outcome).observe(max(0.0, duration_seconds))
    CAPTURE_COUNTER.labels(outcome=outcome).inc()


def record_degraded_step(step: str) -> None:
    DEGRADED_STEP_COUNTER.labels(step=step).inc()


def record_batch_failure(viewport: str) -> None:
    BATCH_FAILURE_COUNTER.labels(viewport=viewport).inc()


def observe_batch(duration_seconds: float) -> None:
    BATCH_DURATION_SECONDS.observe(max(0.0, duration_seconds))
