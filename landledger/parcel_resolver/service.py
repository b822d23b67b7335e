# -*- coding: utf-8 -*-
"""
Parcel Resolver Service Facade

Provides ``ParcelResolverService``, a single entry point bundling the row
mapper, record matcher and merge engine configured from
``ParcelResolverConfig``. The facade owns self-monitoring: it updates
aggregate statistics and Prometheus metrics for every operation.

Also exposes ``configure_parcel_resolver(config)`` and
``get_parcel_resolver()`` for a process-wide singleton.

Usage:
    >>> from landledger.parcel_resolver.service import get_parcel_resolver
    >>> service = get_parcel_resolver()
    >>> result = service.ingest(existing=[], rows=[{"APN": "1-2", "County": "Dane"}])
    >>> result.summary.created
    1
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, Field

from landledger.exceptions import SpreadsheetDependencyError
from landledger.parcel_resolver.config import ParcelResolverConfig, get_config
from landledger.parcel_resolver.key_builder import RecordLike
from landledger.parcel_resolver.matcher import RecordMatcher
from landledger.parcel_resolver.merge_engine import MergeEngine
from landledger.parcel_resolver.metrics import (
    PROMETHEUS_AVAILABLE,
    inc_batches,
    inc_conflicts,
    inc_errors,
    inc_records,
    inc_rows_mapped,
    observe_duration,
    observe_match_score,
)
from landledger.parcel_resolver.models import (
    BatchResult,
    CanonicalRecord,
    MatchDetail,
    MergeOptions,
)
from landledger.parcel_resolver.readers import (
    parse_csv_to_canonical,
    parse_xlsx_to_canonical,
)
from landledger.parcel_resolver.row_mapper import RowMapper

logger = logging.getLogger(__name__)


# ===================================================================
# Response models
# ===================================================================


class StatsResponse(BaseModel):
    """Aggregate statistics for the parcel resolver service.

    Attributes:
        total_batches: Merge batches run.
        failed_batches: Merge batches that raised.
        total_rows_mapped: Raw rows mapped to canonical records.
        total_records_processed: Incoming records seen by merge batches.
        total_created: Records appended as new.
        total_merged: Records merged in place.
        total_flagged: Records routed to manual review.
        total_invalid: Records without any blocking key.
        total_conflicts: Conflicting values recorded during merges.
        total_comparisons: Pairwise comparisons requested via ``compare``.
    """
    total_batches: int = Field(default=0)
    failed_batches: int = Field(default=0)
    total_rows_mapped: int = Field(default=0)
    total_records_processed: int = Field(default=0)
    total_created: int = Field(default=0)
    total_merged: int = Field(default=0)
    total_flagged: int = Field(default=0)
    total_invalid: int = Field(default=0)
    total_conflicts: int = Field(default=0)
    total_comparisons: int = Field(default=0)


# ===================================================================
# Singleton state
# ===================================================================

_singleton_lock = threading.Lock()
_singleton_instance: Optional["ParcelResolverService"] = None


def _count_new_conflicts(before: CanonicalRecord, after: CanonicalRecord) -> dict:
    """Per-field number of conflict values added by one merge."""
    added = {}
    old = before.extra.conflicts
    for field, values in after.extra.conflicts.items():
        delta = len(values) - len(old.get(field, ()))
        if delta > 0:
            added[field] = delta
    return added


# ===================================================================
# ParcelResolverService facade
# ===================================================================


class ParcelResolverService:
    """Unified facade over the parcel resolver engines.

    Attributes:
        config: ParcelResolverConfig instance.

    Example:
        >>> service = ParcelResolverService()
        >>> detail = service.compare(record_a, record_b)
        >>> print(detail.score)
    """

    def __init__(
        self,
        config: Optional[ParcelResolverConfig] = None,
    ) -> None:
        """Initialize the service facade.

        Args:
            config: Optional configuration. Uses global config if None.
        """
        self.config = config or get_config()
        self._row_mapper = RowMapper(source_label=self.config.default_source_label)
        self._matcher = RecordMatcher()
        self._merge_engine = MergeEngine(
            matcher=self._matcher, row_mapper=self._row_mapper,
        )
        self._stats = StatsResponse()
        self._stats_lock = threading.Lock()
        logger.info(
            "ParcelResolverService created: metrics=%s (prometheus=%s)",
            self.config.enable_metrics, PROMETHEUS_AVAILABLE,
        )

    # ------------------------------------------------------------------
    # Engine properties
    # ------------------------------------------------------------------

    @property
    def row_mapper(self) -> RowMapper:
        return self._row_mapper

    @property
    def matcher(self) -> RecordMatcher:
        return self._matcher

    @property
    def merge_engine(self) -> MergeEngine:
        return self._merge_engine

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def default_options(self, **overrides: Any) -> MergeOptions:
        """Batch options derived from this service's configuration."""
        return MergeOptions.from_config(self.config, **overrides)

    def map_rows(
        self,
        rows: Iterable[Any],
        source_label: Optional[str] = None,
    ) -> List[CanonicalRecord]:
        """Map raw rows onto prepared canonical records."""
        start_time = time.time()
        try:
            records = self._row_mapper.map_rows(rows, source_label)
        except Exception:
            self._on_error("mapping")
            raise
        label = source_label or self.config.default_source_label
        self._after_mapping(label, len(records))
        self._observe("map_rows", time.time() - start_time)
        return records

    def parse_csv(self, text: str, source_label: str = "csv") -> List[CanonicalRecord]:
        """Parse CSV text into prepared canonical records."""
        start_time = time.time()
        try:
            records = parse_csv_to_canonical(text, source_label, mapper=self._row_mapper)
        except Exception:
            self._on_error("mapping")
            raise
        self._after_mapping(source_label, len(records))
        self._observe("parse_csv", time.time() - start_time)
        return records

    def parse_xlsx(self, content: bytes, source_label: str = "xlsx") -> List[CanonicalRecord]:
        """Parse XLSX bytes into prepared canonical records.

        Raises:
            SpreadsheetDependencyError: If openpyxl is not installed.
        """
        start_time = time.time()
        try:
            records = parse_xlsx_to_canonical(content, source_label, mapper=self._row_mapper)
        except SpreadsheetDependencyError:
            self._on_error("dependency")
            raise
        except Exception:
            self._on_error("mapping")
            raise
        self._after_mapping(source_label, len(records))
        self._observe("parse_xlsx", time.time() - start_time)
        return records

    def merge(
        self,
        existing: Optional[Iterable[RecordLike]] = None,
        incoming: Optional[Iterable[Any]] = None,
        options: Optional[MergeOptions] = None,
    ) -> BatchResult:
        """Run one merge batch and record its outcome."""
        start_time = time.time()
        try:
            result = self._merge_engine.merge_canonical(
                existing, incoming, options or self.default_options(),
            )
        except Exception:
            with self._stats_lock:
                self._stats.total_batches += 1
                self._stats.failed_batches += 1
            if self.config.enable_metrics:
                inc_batches("failed")
            self._on_error("merge")
            raise

        self._after_batch(result)
        self._observe("merge_canonical", time.time() - start_time)
        return result

    def ingest(
        self,
        existing: Optional[Iterable[RecordLike]],
        rows: Iterable[Any],
        source_label: Optional[str] = None,
        options: Optional[MergeOptions] = None,
    ) -> BatchResult:
        """Map raw rows and merge them into ``existing`` in one call."""
        records = self.map_rows(rows, source_label)
        return self.merge(existing, records, options)

    def compare(self, a: RecordLike, b: RecordLike) -> MatchDetail:
        """Score a single pair of records."""
        start_time = time.time()
        try:
            detail = self._matcher.match_details(a, b)
        except Exception:
            self._on_error("match")
            raise
        with self._stats_lock:
            self._stats.total_comparisons += 1
        if self.config.enable_metrics:
            observe_match_score(detail.score)
        self._observe("match", time.time() - start_time)
        return detail

    def get_statistics(self) -> StatsResponse:
        """Get aggregated parcel resolver statistics."""
        with self._stats_lock:
            return self._stats.model_copy()

    def get_engine_statistics(self) -> dict:
        """Per-engine operational statistics."""
        return {
            "row_mapper": self._row_mapper.get_statistics(),
            "matcher": self._matcher.get_statistics(),
            "merge_engine": self._merge_engine.get_statistics(),
        }

    def health_check(self) -> dict:
        return {
            "status": "healthy",
            "service": "parcel-resolver",
            "prometheus_available": PROMETHEUS_AVAILABLE,
            "metrics_enabled": self.config.enable_metrics,
        }

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _after_mapping(self, source_label: str, count: int) -> None:
        with self._stats_lock:
            self._stats.total_rows_mapped += count
        if self.config.enable_metrics:
            inc_rows_mapped(source_label, count)

    def _after_batch(self, result: BatchResult) -> None:
        summary = result.summary
        conflicts: dict = {}
        for entry in result.merged:
            for field, added in _count_new_conflicts(entry.before, entry.after).items():
                conflicts[field] = conflicts.get(field, 0) + added

        with self._stats_lock:
            self._stats.total_batches += 1
            self._stats.total_records_processed += summary.processed
            self._stats.total_created += summary.created
            self._stats.total_merged += summary.merged
            self._stats.total_flagged += summary.flagged
            self._stats.total_invalid += summary.invalid
            self._stats.total_conflicts += sum(conflicts.values())

        if not self.config.enable_metrics:
            return
        inc_batches("completed")
        inc_records("created", summary.created)
        inc_records("merged", summary.merged)
        inc_records("flagged", summary.flagged)
        inc_records("invalid", summary.invalid)
        for field, added in conflicts.items():
            inc_conflicts(field, added)
        for entry in result.merged:
            observe_match_score(entry.detail.score)
        for item in result.review_queue:
            observe_match_score(item.score)

    def _observe(self, operation: str, duration: float) -> None:
        if self.config.enable_metrics:
            observe_duration(operation, duration)

    def _on_error(self, error_type: str) -> None:
        if self.config.enable_metrics:
            inc_errors(error_type)


# ===================================================================
# Module-level configuration functions
# ===================================================================


def configure_parcel_resolver(
    config: Optional[ParcelResolverConfig] = None,
) -> ParcelResolverService:
    """Create the ParcelResolverService singleton.

    Args:
        config: Optional parcel resolver config.

    Returns:
        ParcelResolverService instance.
    """
    global _singleton_instance

    service = ParcelResolverService(config=config)
    with _singleton_lock:
        _singleton_instance = service
    logger.info("Parcel resolver service configured")
    return service


def get_parcel_resolver() -> ParcelResolverService:
    """Return the ParcelResolverService singleton, creating it if needed."""
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = ParcelResolverService()
    return _singleton_instance


def reset_parcel_resolver() -> None:
    """Drop the singleton (primarily for test teardown)."""
    global _singleton_instance
    with _singleton_lock:
        _singleton_instance = None


__all__ = [
    "ParcelResolverService",
    "StatsResponse",
    "configure_parcel_resolver",
    "get_parcel_resolver",
    "reset_parcel_resolver",
]
