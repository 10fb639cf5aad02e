"""
Process-local instrumentation for the analysis pipeline.

Nothing is shipped to a metrics backend. Counters and timings live in memory
so tests can check how a request was served (cache hits, classifier
fallbacks, dropped events) and the structured events go to the
``calvibes.telemetry`` logger.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections import Counter, defaultdict
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("calvibes.telemetry")

_counts: Counter[str] = Counter()
_timings: defaultdict[str, list[float]] = defaultdict(list)


def log_event(event_name: str, **fields: Any) -> None:
    """
    Emit a structured event at INFO.

    Fields carry counts, model names and hashed ids only; raw event titles
    never go into telemetry.
    """
    rendered = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
    logger.info("event=%s %s", event_name, rendered)


def counter(name: str, increment: int = 1) -> int:
    """Add ``increment`` to a named counter and return the new total."""
    _counts[name] += increment
    logger.debug("counter=%s value=%d", name, _counts[name])
    return _counts[name]


def get_counter(name: str) -> int:
    return _counts[name]


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """Record the wall time of the enclosed block under ``metric_name``."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - started
        _timings[metric_name].append(elapsed)
        logger.debug("timing=%s seconds=%.6f", metric_name, elapsed)


def get_latency_stats(metric_name: str) -> dict[str, float]:
    """count/min/max/avg/p50/p95 in seconds; zeros when nothing was timed."""
    samples = sorted(_timings.get(metric_name, ()))
    if not samples:
        return dict.fromkeys(("count", "min", "max", "avg", "p50", "p95"), 0)

    last = len(samples) - 1
    return {
        "count": len(samples),
        "min": samples[0],
        "max": samples[-1],
        "avg": sum(samples) / len(samples),
        "p50": samples[round(last * 0.50)],
        "p95": samples[round(last * 0.95)],
    }


def reset() -> None:
    """Forget all counters and timings."""
    _counts.clear()
    _timings.clear()
