# -*- coding: utf-8 -*-
"""
Prometheus Metrics - Parcel Resolver

7 Prometheus metrics for parcel resolver monitoring with graceful
fallback when prometheus_client is not installed.

Metrics:
    1. ll_pr_batches_processed_total (Counter, labels: status)
    2. ll_pr_records_total (Counter, labels: outcome)
    3. ll_pr_rows_mapped_total (Counter, labels: source)
    4. ll_pr_merge_conflicts_total (Counter, labels: field)
    5. ll_pr_match_score (Histogram)
    6. ll_pr_processing_duration_seconds (Histogram, labels: operation)
    7. ll_pr_processing_errors_total (Counter, labels: error_type)
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Graceful prometheus_client import
# ---------------------------------------------------------------------------

try:
    from prometheus_client import Counter, Histogram
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    logger.info(
        "prometheus_client not installed; parcel resolver metrics disabled"
    )


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

if PROMETHEUS_AVAILABLE:
    # 1. Merge batches by status
    pr_batches_processed_total = Counter(
        "ll_pr_batches_processed_total",
        "Total merge batches processed",
        labelnames=["status"],
    )

    # 2. Incoming records by batch outcome
    pr_records_total = Counter(
        "ll_pr_records_total",
        "Total incoming records by outcome",
        labelnames=["outcome"],
    )

    # 3. Raw rows mapped to canonical records by source label
    pr_rows_mapped_total = Counter(
        "ll_pr_rows_mapped_total",
        "Total raw rows mapped to canonical records",
        labelnames=["source"],
    )

    # 4. Conflicting values recorded during merges by field
    pr_merge_conflicts_total = Counter(
        "ll_pr_merge_conflicts_total",
        "Total conflicting values recorded during merges",
        labelnames=["field"],
    )

    # 5. Best-candidate match score distribution
    pr_match_score = Histogram(
        "ll_pr_match_score",
        "Best candidate match score distribution",
        buckets=(
            0.0, 0.1, 0.2, 0.3, 0.4, 0.5,
            0.6, 0.69, 0.7, 0.8, 0.9, 1.0,
        ),
    )

    # 6. Processing duration histogram by operation type
    pr_processing_duration_seconds = Histogram(
        "ll_pr_processing_duration_seconds",
        "Parcel resolver processing duration in seconds",
        labelnames=["operation"],
        buckets=(
            0.001, 0.005, 0.01, 0.05, 0.1, 0.25,
            0.5, 1.0, 2.5, 5.0, 10.0, 30.0,
        ),
    )

    # 7. Processing errors by error type
    pr_processing_errors_total = Counter(
        "ll_pr_processing_errors_total",
        "Total processing errors encountered",
        labelnames=["error_type"],
    )

else:
    # No-op placeholders
    pr_batches_processed_total = None  # type: ignore[assignment]
    pr_records_total = None  # type: ignore[assignment]
    pr_rows_mapped_total = None  # type: ignore[assignment]
    pr_merge_conflicts_total = None  # type: ignore[assignment]
    pr_match_score = None  # type: ignore[assignment]
    pr_processing_duration_seconds = None  # type: ignore[assignment]
    pr_processing_errors_total = None  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# Helper functions (safe to call even without prometheus_client)
# ---------------------------------------------------------------------------


def inc_batches(status: str) -> None:
    """Record a merge batch processed event.

    Args:
        status: Batch status (completed, failed).
    """
    if not PROMETHEUS_AVAILABLE:
        return
    pr_batches_processed_total.labels(
        status=status,
    ).inc()


def inc_records(outcome: str, count: int = 1) -> None:
    """Record incoming records by outcome.

    Args:
        outcome: Batch outcome (created, merged, flagged, invalid).
        count: Number of records.
    """
    if not PROMETHEUS_AVAILABLE or count <= 0:
        return
    pr_records_total.labels(
        outcome=outcome,
    ).inc(count)


def inc_rows_mapped(source: str, count: int = 1) -> None:
    """Record raw rows mapped to canonical records.

    Args:
        source: Source label of the rows (csv, xlsx, import ...).
        count: Number of rows mapped.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    pr_rows_mapped_total.labels(
        source=source,
    ).inc(count)


def inc_conflicts(field: str, count: int = 1) -> None:
    """Record conflicting values appended during a merge.

    Args:
        field: Conflicting field name (owner, apn, address.zip ...).
        count: Number of new conflicting values.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    pr_merge_conflicts_total.labels(
        field=field,
    ).inc(count)


def observe_match_score(score: float) -> None:
    """Record the best candidate score for one incoming record."""
    if not PROMETHEUS_AVAILABLE:
        return
    pr_match_score.observe(score)


def observe_duration(operation: str, duration: float) -> None:
    """Record processing duration for an operation.

    Args:
        operation: Operation type (map_row, match, merge_records,
            merge_canonical, parse_csv, parse_xlsx).
        duration: Duration in seconds.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    pr_processing_duration_seconds.labels(
        operation=operation,
    ).observe(duration)


def inc_errors(error_type: str) -> None:
    """Record a processing error event.

    Args:
        error_type: Error classification (mapping, match, merge,
            dependency, unknown).
    """
    if not PROMETHEUS_AVAILABLE:
        return
    pr_processing_errors_total.labels(
        error_type=error_type,
    ).inc()


__all__ = [
    "PROMETHEUS_AVAILABLE",
    # Metric objects
    "pr_batches_processed_total",
    "pr_records_total",
    "pr_rows_mapped_total",
    "pr_merge_conflicts_total",
    "pr_match_score",
    "pr_processing_duration_seconds",
    "pr_processing_errors_total",
    # Helper functions
    "inc_batches",
    "inc_records",
    "inc_rows_mapped",
    "inc_conflicts",
    "observe_match_score",
    "observe_duration",
    "inc_errors",
]
