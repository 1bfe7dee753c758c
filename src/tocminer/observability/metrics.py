"""
Defines the Prometheus metrics recorded by the extraction pipeline.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog
from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import start_http_server

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Importing this module more than once (test reloads, multiple services in
# one process) must not raise duplicate registration errors.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race, fall back to the now-existing collector.
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "strategy_attempts": Counter(
            "tocminer_strategy_attempts_total",
            "Extraction strategy attempts by outcome",
            ["method", "outcome"],
        ),
        "strategy_duration_seconds": Histogram(
            "tocminer_strategy_duration_seconds",
            "Time taken by a single extraction strategy attempt",
            ["method"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
        ),
        "extraction_duration_seconds": Histogram(
            "tocminer_extraction_duration_seconds",
            "End-to-end time of an ordered extraction run",
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
        ),
        "extraction_confidence": Histogram(
            "tocminer_extraction_confidence",
            "Confidence of successful results",
            ["method"],
            buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
        ),
        "provider_results": Counter(
            "tocminer_provider_results_total",
            "Multi-source provider outcomes",
            ["provider", "outcome"],
        ),
        "cache_lookups": Counter(
            "tocminer_cache_lookups_total",
            "Result cache lookups by outcome",
            ["outcome"],
        ),
        "fetch_latency_seconds": Histogram(
            "tocminer_fetch_latency_seconds",
            "Time taken to fetch a URL including retries",
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
        ),
        "fetch_responses": Counter(
            "tocminer_fetch_responses_total",
            "HTTP responses by status class",
            ["status_class"],
        ),
        "session_handshakes": Counter(
            "tocminer_session_handshakes_total",
            "Session handshakes by outcome",
            ["outcome"],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def start_metrics_server(port: Optional[int]) -> bool:
    """Expose METRICS over HTTP on ``port``; ``None`` leaves the exporter off."""
    if not port:
        return False
    start_http_server(port)
    logger.info("Prometheus metrics server started", port=port)
    return True
