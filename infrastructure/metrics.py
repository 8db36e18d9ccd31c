"""Prometheus metrics for the live dissonance analyzer.

Tracks the health of the real-time pipeline: how many frames are produced,
how long each one takes, and how much audio or display output is dropped to
keep up with the microphone.

Metrics:
    improve_frames_total               Analysis frames produced
    improve_frame_latency_seconds      Histogram of per-frame analysis time
    improve_samples_discarded_total    Samples dropped by the discard policy
    improve_table_builds_total         Dissonance table (re)builds
    improve_nonfinite_scores_total     NaN/inf values replaced by numeric guards
    improve_snapshots_dropped_total    Score snapshots skipped by a slow display

Usage::

    from infrastructure import metrics

    with metrics.LatencyTimer() as t:
        scores = calculator.calculate(spectrum)
    metrics.record_frame(latency_seconds=t.elapsed)

    metrics.start_metrics_server(9100)   # optional scrape endpoint
"""

from __future__ import annotations

import logging
import time

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

_REGISTRY = CollectorRegistry()

frames_total = Counter(
    "improve_frames_total",
    "Analysis frames produced",
    registry=_REGISTRY,
)

frame_latency_seconds = Histogram(
    "improve_frame_latency_seconds",
    "Time spent analysing and scoring one window, in seconds",
    buckets=[0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0],
    registry=_REGISTRY,
)

samples_discarded_total = Counter(
    "improve_samples_discarded_total",
    "Audio samples dropped because analysis fell behind capture",
    registry=_REGISTRY,
)

table_builds_total = Counter(
    "improve_table_builds_total",
    "Dissonance lookup table builds",
    registry=_REGISTRY,
)

nonfinite_scores_total = Counter(
    "improve_nonfinite_scores_total",
    "Non-finite score values replaced by numeric guards",
    registry=_REGISTRY,
)

snapshots_dropped_total = Counter(
    "improve_snapshots_dropped_total",
    "Score snapshots skipped because the display fell behind",
    registry=_REGISTRY,
)

_enabled = True


def set_enabled(enabled: bool) -> None:
    """Turn recording on or off; disabled record_*() calls are no-ops."""
    global _enabled
    _enabled = enabled
    logger.debug("Metrics recording %s", "enabled" if enabled else "disabled")


def is_enabled() -> bool:
    return _enabled


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def record_frame(*, latency_seconds: float) -> None:
    """Record one completed analysis frame.

    Args:
        latency_seconds: Wall-clock time spent on the frame.
    """
    if not _enabled:
        return
    frames_total.inc()
    frame_latency_seconds.observe(latency_seconds)


def record_samples_discarded(count: int) -> None:
    """Add ``count`` dropped samples."""
    if _enabled and count > 0:
        samples_discarded_total.inc(count)


def record_table_build() -> None:
    """Increment the dissonance table build counter."""
    if _enabled:
        table_builds_total.inc()


def record_nonfinite(count: int) -> None:
    """Add ``count`` non-finite values replaced by a guard."""
    if _enabled and count > 0:
        nonfinite_scores_total.inc(count)


def record_snapshots_dropped(count: int) -> None:
    """Add ``count`` snapshots skipped by a display."""
    if _enabled and count > 0:
        snapshots_dropped_total.inc(count)


def start_metrics_server(port: int, addr: str = "0.0.0.0") -> None:
    """Serve the metrics registry over HTTP on a daemon thread.

    Scrape ``http://<addr>:<port>/metrics`` while the analyzer runs.

    Raises:
        ValueError: If ``port`` is outside 1..65535.
        OSError: If the port cannot be bound.
    """
    if not 0 < port < 65536:
        raise ValueError(f"metrics port must be in 1..65535, got {port}")
    start_http_server(port, addr=addr, registry=_REGISTRY)
    logger.info("Serving Prometheus metrics on %s:%d/metrics", addr, port)


class LatencyTimer:
    """Context manager for measuring latency.

    Usage::

        with LatencyTimer() as t:
            scores = calculator.calculate(spectrum)
        record_frame(latency_seconds=t.elapsed)
    """

    def __init__(self) -> None:
        """Initialize timer."""
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> LatencyTimer:
        """Start timing."""
        self._start = time.perf_counter()
        return self

    def __exit__(self, *_: object) -> None:
        """Stop timing and record elapsed."""
        self.elapsed = time.perf_counter() - self._start
