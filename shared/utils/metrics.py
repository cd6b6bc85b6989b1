"""
Lightweight metrics collection for the data checker.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
STRATEGY_ATTEMPTS = Counter(
    "dc_strategy_attempts_total",
    "Extraction strategy attempts by outcome",
    ["strategy", "outcome"],
)
EXTRACTIONS = Counter(
    "dc_extractions_total",
    "Completed extraction calls by source and terminal strategy tag",
    ["source", "strategy"],
)
FIELD_COMPARISONS = Counter(
    "dc_field_comparisons_total",
    "Field comparisons by resulting status",
    ["status"],
)
BROWSER_LAUNCHES = Counter(
    "dc_browser_launches_total",
    "Headless browser engine launches (first use and relaunch after disconnect)",
)

# ── Histograms ──────────────────────────────────────────────────────────
STRATEGY_LATENCY = Histogram(
    "dc_strategy_latency_seconds",
    "Wall time of a single strategy attempt",
    ["strategy"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 45.0),
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        histogram.labels(**labels).observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
