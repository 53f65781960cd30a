"""
Prometheus metrics for deployment runs.

A deployment is a short-lived CLI process, so metrics are collected in a
dedicated registry and written once at exit in the node-exporter textfile
format instead of being served over HTTP.

Environment Variables:
    RELAYMINT_METRICS_FILE: Path of the .prom file to write - default: unset (disabled)

Usage:
    from relaymint.core.metrics import track_step_duration, track_relay_attempt

    with track_step_duration("create_asset"):
        ...
    track_relay_attempt("accepted")
"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

from prometheus_client import CollectorRegistry, Counter, Histogram, write_to_textfile

logger = logging.getLogger(__name__)

REGISTRY = CollectorRegistry()

RELAY_ATTEMPTS = Counter(
    "relaymint_relay_attempts_total",
    "Relay submission attempts by outcome",
    labelnames=["outcome"],
    registry=REGISTRY,
)

STEP_OUTCOMES = Counter(
    "relaymint_step_outcomes_total",
    "Step executor outcomes",
    labelnames=["step", "status"],
    registry=REGISTRY,
)

STEP_DURATION = Histogram(
    "relaymint_step_duration_seconds",
    "Duration of step executions in seconds (includes confirmation wait)",
    labelnames=["step"],
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0),
    registry=REGISTRY,
)


@contextmanager
def track_step_duration(step: str) -> Generator[None, None, None]:
    with STEP_DURATION.labels(step=step).time():
        yield


def track_step_outcome(step: str, status: str) -> None:
    STEP_OUTCOMES.labels(step=step, status=status).inc()


def track_relay_attempt(outcome: str) -> None:
    """
    Count one relay attempt.

    Args:
        outcome: accepted, transport_error, rejected, dry_run
    """
    RELAY_ATTEMPTS.labels(outcome=outcome).inc()


def write_metrics(path: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """
    Write the registry to a textfile.

    Args:
        path: Target file (default: RELAYMINT_METRICS_FILE; no-op when unset)

    Returns:
        Path written, or None when disabled
    """
    target = path or os.getenv("RELAYMINT_METRICS_FILE")
    if not target:
        return None
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(str(target), REGISTRY)
    logger.debug(f"Metrics written to {target}")
    return target
