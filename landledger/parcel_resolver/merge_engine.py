# -*- coding: utf-8 -*-
"""
Merge Engine - Parcel Resolver

Folds a batch of incoming records into an existing canonical record set.
Each incoming record is processed in order against the set as it stands
after all previous decisions (greedy, best candidate wins):

    1. Prepare (raw rows are mapped first). No blocking key -> invalid.
    2. Candidates = union of blocking index hits on each non-empty key.
    3. Score every candidate. With ``prevent_cross_zip`` a ZIP mismatch
       caps the score at 0.69 and tags it ``zip-mismatch``. The strictly
       highest score wins; ties keep the first candidate found.
    4. Decide:
         zip-mismatch best (guard on)   -> flag "zip-mismatch"
         score >= 0.90                  -> merge if APN matched or
                                           auto-merge without APN is on,
                                           else flag "auto-merge-disabled"
         0.70 <= score < 0.90           -> flag (detail reason or
                                           "low-confidence")
         record key already present     -> flag "duplicate-key"
         otherwise                      -> create
    5. Blocking indexes are rebuilt after every create or merge.

Field-level merging keeps the existing value on disagreement and records
the rejected incoming value once in ``extra.conflicts``.

Example:
    >>> from landledger.parcel_resolver.merge_engine import MergeEngine
    >>> engine = MergeEngine()
    >>> result = engine.merge_canonical(existing, incoming)
    >>> print(result.summary.merged, len(result.review_queue))
"""

from __future__ import annotations

import copy
import logging
import math
import threading
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from landledger.parcel_resolver.config import get_config
from landledger.parcel_resolver.field_normalizer import (
    dedupe_normalized,
    normalize_email,
    normalize_phone,
)
from landledger.parcel_resolver.key_builder import (
    RecordLike,
    clone_record,
    prepare_record,
    record_key,
)
from landledger.parcel_resolver.matcher import RecordMatcher
from landledger.parcel_resolver.models import (
    ADDRESS_FIELDS,
    INVALID_REASON,
    BatchOutcome,
    BatchResult,
    CanonicalRecord,
    CreatedEntry,
    InvalidItem,
    MatchDetail,
    MatchKeys,
    MergedEntry,
    MergeOptions,
    ProvenanceEntry,
    ReviewItem,
    ReviewReason,
)
from landledger.parcel_resolver.row_mapper import RowMapper

logger = logging.getLogger(__name__)

__all__ = [
    "AUTO_MERGE_THRESHOLD",
    "REVIEW_THRESHOLD",
    "CROSS_ZIP_SCORE_CAP",
    "BlockingIndex",
    "MergeEngine",
    "merge_canonical",
]


# ---------------------------------------------------------------------------
# Decision policy
# ---------------------------------------------------------------------------

AUTO_MERGE_THRESHOLD: float = 0.90
REVIEW_THRESHOLD: float = 0.70
CROSS_ZIP_SCORE_CAP: float = 0.69


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


# ---------------------------------------------------------------------------
# Blocking index
# ---------------------------------------------------------------------------


class BlockingIndex:
    """Three key -> record-position indexes over one record list.

    Scoped to a single batch; rebuilt from scratch whenever the list
    changes.
    """

    def __init__(self, records: Sequence[CanonicalRecord]) -> None:
        self.by_apn: Dict[str, List[int]] = {}
        self.by_addr_full: Dict[str, List[int]] = {}
        self.by_owner_addr: Dict[str, List[int]] = {}
        for idx, record in enumerate(records):
            keys = record.match_keys or prepare_record(record).match_keys
            if keys.k_apn:
                self.by_apn.setdefault(keys.k_apn, []).append(idx)
            if keys.k_addr_full:
                self.by_addr_full.setdefault(keys.k_addr_full, []).append(idx)
            if keys.k_owner_addr_lite:
                self.by_owner_addr.setdefault(keys.k_owner_addr_lite, []).append(idx)

    def candidates(self, keys: MatchKeys) -> List[int]:
        """Union of positions sharing any non-empty key, in first-seen order."""
        seen: Dict[int, None] = {}
        lookups: Tuple[Tuple[str, Dict[str, List[int]]], ...] = (
            (keys.k_apn, self.by_apn),
            (keys.k_addr_full, self.by_addr_full),
            (keys.k_owner_addr_lite, self.by_owner_addr),
        )
        for key, index in lookups:
            if not key:
                continue
            for idx in index.get(key, ()):
                seen.setdefault(idx, None)
        return list(seen)


# ---------------------------------------------------------------------------
# MergeEngine
# ---------------------------------------------------------------------------


class MergeEngine:
    """Batch merge engine for canonical parcel records.

    Attributes:
        _matcher: RecordMatcher used to score candidates.
        _row_mapper: RowMapper used for raw incoming rows.
        _stats_lock: Threading lock for stats updates.
        _invocations: Total invocation count.
        _successes: Total successful invocations.
        _failures: Total failed invocations.
        _total_duration_ms: Cumulative processing time.

    Example:
        >>> engine = MergeEngine()
        >>> merged = engine.merge_records(existing_record, incoming_record)
        >>> merged.extra.conflicts
        {'owner': ['Jane Q Example']}
    """

    def __init__(
        self,
        matcher: Optional[RecordMatcher] = None,
        row_mapper: Optional[RowMapper] = None,
    ) -> None:
        """Initialize MergeEngine.

        Args:
            matcher: Optional shared RecordMatcher.
            row_mapper: Optional shared RowMapper for raw incoming rows.
        """
        self._matcher = matcher or RecordMatcher()
        self._row_mapper = row_mapper or RowMapper()
        self._stats_lock = threading.Lock()
        self._invocations: int = 0
        self._successes: int = 0
        self._failures: int = 0
        self._total_duration_ms: float = 0.0
        self._last_invoked_at: Optional[datetime] = None
        self._outcome_totals: Dict[str, int] = {o.value: 0 for o in BatchOutcome}
        logger.info("MergeEngine initialized")

    # ------------------------------------------------------------------
    # Public API - Pairwise merge
    # ------------------------------------------------------------------

    def merge_records(
        self,
        existing: RecordLike,
        incoming: RecordLike,
        detail: Optional[MatchDetail] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> CanonicalRecord:
        """Merge ``incoming`` into a copy of ``existing``.

        Args:
            existing: Record that keeps precedence on disagreement.
            incoming: Record whose values fill gaps or become conflicts.
            detail: Match detail stored as ``extra.last_merge_detail``.
            now: Clock for provenance entries lacking a timestamp.

        Returns:
            New prepared CanonicalRecord; neither input is mutated.
        """
        clock = now or _utcnow
        left = prepare_record(existing, now=clock)
        right = prepare_record(incoming, now=clock)
        result = clone_record(left)
        conflicts = result.extra.conflicts

        def prefer(a: Any, b: Any, field: str) -> Any:
            if _is_blank(a):
                return b
            if _is_blank(b):
                return a
            if str(a) == str(b):
                return a
            rejected = conflicts.setdefault(field, [])
            if b not in rejected:
                rejected.append(b)
            return a

        result.owner = prefer(left.owner, right.owner, "owner")
        result.county = prefer(left.county, right.county, "county")
        result.apn = prefer(left.apn, right.apn, "apn")

        for field in ADDRESS_FIELDS:
            setattr(
                result.address,
                field,
                prefer(
                    getattr(left.address, field),
                    getattr(right.address, field),
                    f"address.{field}",
                ),
            )

        result.acreage = left.acreage if _finite(left.acreage) else right.acreage
        result.est_value = left.est_value if _finite(left.est_value) else right.est_value
        result.lat = left.lat if _finite(left.lat) else right.lat
        result.lng = left.lng if _finite(left.lng) else right.lng

        result.phones = dedupe_normalized(
            normalize_phone(p) for p in left.phones + right.phones
        )
        result.emails = dedupe_normalized(
            normalize_email(e) for e in left.emails + right.emails
        )
        result.dnc = bool(left.dnc or right.dnc)

        result.notes = [copy.copy(n) for n in left.notes + right.notes]
        result.history = [copy.copy(h) for h in left.history + right.history]

        provenance = [entry.model_copy() for entry in left.provenance]
        for entry in right.provenance:
            entry = entry.model_copy()
            if entry.imported_at is None:
                entry.imported_at = clock()
            provenance.append(entry)
        result.provenance = provenance

        if detail is not None:
            result.extra.last_merge_detail = detail.model_copy()

        return prepare_record(result, now=clock)

    # ------------------------------------------------------------------
    # Public API - Batch merge
    # ------------------------------------------------------------------

    def merge_canonical(
        self,
        existing: Optional[Iterable[RecordLike]] = None,
        incoming: Optional[Iterable[Any]] = None,
        options: Optional[MergeOptions] = None,
    ) -> BatchResult:
        """Fold ``incoming`` into ``existing`` and classify every record.

        Args:
            existing: Current canonical records (not mutated).
            incoming: CanonicalRecord instances, canonical-shaped mappings
                (carrying an ``address`` mapping), or raw rows.
            options: Batch policy; defaults derive from the active config.

        Returns:
            BatchResult with the new record set and all classifications.
        """
        start_time = time.monotonic()
        try:
            config = get_config()
            opts = options or MergeOptions.from_config(config)
            incoming_items = list(incoming or [])
            if len(incoming_items) > config.max_records_per_batch:
                logger.warning(
                    "Merge batch of %d incoming records exceeds "
                    "max_records_per_batch=%d",
                    len(incoming_items), config.max_records_per_batch,
                )

            final: List[CanonicalRecord] = [
                prepare_record(r, now=opts.now) for r in (existing or [])
            ]
            result = BatchResult()
            index = BlockingIndex(final)

            for item in incoming_items:
                result.summary.processed += 1
                candidate = self._coerce_incoming(item, opts)
                outcome = self._process_one(candidate, final, index, opts, result)
                if outcome in (BatchOutcome.CREATED, BatchOutcome.MERGED):
                    index = BlockingIndex(final)

            result.records = final
            self._record_success(time.monotonic() - start_time, result)
            logger.info(
                "Merge batch complete: processed=%d, created=%d, merged=%d, "
                "flagged=%d, invalid=%d (%.1f ms)",
                result.summary.processed, result.summary.created,
                result.summary.merged, result.summary.flagged,
                result.summary.invalid,
                (time.monotonic() - start_time) * 1000,
            )
            return result

        except Exception as e:
            self._record_failure(time.monotonic() - start_time)
            logger.error("Merge batch failed: %s", e)
            raise

    def get_statistics(self) -> Dict[str, Any]:
        """Return current engine operational statistics."""
        with self._stats_lock:
            avg_ms = 0.0
            if self._invocations > 0:
                avg_ms = self._total_duration_ms / self._invocations
            return {
                "engine_name": "MergeEngine",
                "invocations": self._invocations,
                "successes": self._successes,
                "failures": self._failures,
                "total_duration_ms": round(self._total_duration_ms, 3),
                "avg_duration_ms": round(avg_ms, 3),
                "last_invoked_at": (
                    self._last_invoked_at.isoformat()
                    if self._last_invoked_at else None
                ),
                "outcome_totals": dict(self._outcome_totals),
            }

    def reset_statistics(self) -> None:
        """Reset all operational statistics to zero."""
        with self._stats_lock:
            self._invocations = 0
            self._successes = 0
            self._failures = 0
            self._total_duration_ms = 0.0
            self._last_invoked_at = None
            for key in self._outcome_totals:
                self._outcome_totals[key] = 0

    # ------------------------------------------------------------------
    # Private methods
    # ------------------------------------------------------------------

    def _coerce_incoming(self, item: Any, opts: MergeOptions) -> CanonicalRecord:
        """Turn one incoming item into a prepared record.

        Conflicts already carried by an incoming record are kept; a record
        without provenance gets one entry stamped by ``opts.now``.
        """
        if isinstance(item, CanonicalRecord) or (
            isinstance(item, Mapping) and isinstance(item.get("address"), Mapping)
        ):
            record = clone_record(item)
        else:
            record = self._row_mapper.map_row(item, now=opts.now)

        if not record.provenance:
            record.provenance = [
                ProvenanceEntry(source=record.source, imported_at=opts.now()),
            ]
        return prepare_record(record, now=opts.now)

    def _process_one(
        self,
        incoming: CanonicalRecord,
        final: List[CanonicalRecord],
        index: BlockingIndex,
        opts: MergeOptions,
        result: BatchResult,
    ) -> BatchOutcome:
        """Classify one prepared incoming record and apply the decision."""
        keys = incoming.match_keys
        if not keys.any():
            result.summary.invalid += 1
            result.invalid.append(InvalidItem(record=incoming, reason=INVALID_REASON))
            logger.debug("Incoming record has no blocking key; marked invalid")
            return BatchOutcome.INVALID

        best_idx, best = self._best_candidate(incoming, final, index, opts)

        if best is not None:
            if opts.prevent_cross_zip and best.zip_mismatch:
                return self._flag(
                    result, final[best_idx], incoming, best,
                    ReviewReason.ZIP_MISMATCH.value,
                )

            if best.score >= AUTO_MERGE_THRESHOLD:
                if best.apn_match or opts.auto_merge_without_apn:
                    self._merge_into(final, best_idx, incoming, best, opts, result)
                    return BatchOutcome.MERGED
                return self._flag(
                    result, final[best_idx], incoming, best,
                    ReviewReason.AUTO_MERGE_DISABLED.value,
                )

            if best.score >= REVIEW_THRESHOLD:
                return self._flag(
                    result, final[best_idx], incoming, best,
                    best.reason or ReviewReason.LOW_CONFIDENCE.value,
                )

        key = record_key(incoming)
        if key:
            for record in final:
                if record_key(record) == key:
                    return self._flag(
                        result, record, incoming, best,
                        ReviewReason.DUPLICATE_KEY.value,
                    )

        final.append(incoming)
        result.summary.created += 1
        result.created.append(CreatedEntry(record=incoming))
        if key:
            result.status_by_key[key] = BatchOutcome.CREATED
        logger.debug("Created new record key=%s", key)
        return BatchOutcome.CREATED

    def _best_candidate(
        self,
        incoming: CanonicalRecord,
        final: List[CanonicalRecord],
        index: BlockingIndex,
        opts: MergeOptions,
    ) -> Tuple[int, Optional[MatchDetail]]:
        best_idx = -1
        best: Optional[MatchDetail] = None
        for idx in index.candidates(incoming.match_keys):
            detail = self._matcher.match_details(final[idx], incoming)
            if opts.prevent_cross_zip and detail.zip_mismatch:
                detail = detail.model_copy(update={
                    "score": min(detail.score, CROSS_ZIP_SCORE_CAP),
                    "reason": ReviewReason.ZIP_MISMATCH.value,
                })
            if best is None or detail.score > best.score:
                best_idx, best = idx, detail
        return best_idx, best

    def _merge_into(
        self,
        final: List[CanonicalRecord],
        idx: int,
        incoming: CanonicalRecord,
        detail: MatchDetail,
        opts: MergeOptions,
        result: BatchResult,
    ) -> None:
        before = clone_record(final[idx])
        merged = self.merge_records(final[idx], incoming, detail, now=opts.now)
        final[idx] = merged
        result.summary.merged += 1
        result.merged.append(MergedEntry(
            before=before, after=merged, incoming=incoming, detail=detail,
        ))
        key = record_key(merged)
        if key:
            result.status_by_key[key] = BatchOutcome.MERGED
        logger.debug("Merged incoming into position %d (score=%.4f)", idx, detail.score)

    @staticmethod
    def _flag(
        result: BatchResult,
        existing: Optional[CanonicalRecord],
        incoming: CanonicalRecord,
        detail: Optional[MatchDetail],
        reason: str,
    ) -> BatchOutcome:
        result.summary.flagged += 1
        result.review_queue.append(ReviewItem(
            existing=existing,
            incoming=incoming,
            score=detail.score if detail is not None else 0.0,
            detail=detail,
            reason=reason,
        ))
        logger.debug("Flagged incoming record for review: %s", reason)
        return BatchOutcome.FLAGGED

    def _record_success(self, elapsed_seconds: float, result: BatchResult) -> None:
        """Record a successful batch and its outcome counts."""
        ms = elapsed_seconds * 1000.0
        summary = result.summary
        with self._stats_lock:
            self._invocations += 1
            self._successes += 1
            self._total_duration_ms += ms
            self._last_invoked_at = _utcnow()
            self._outcome_totals[BatchOutcome.CREATED.value] += summary.created
            self._outcome_totals[BatchOutcome.MERGED.value] += summary.merged
            self._outcome_totals[BatchOutcome.FLAGGED.value] += summary.flagged
            self._outcome_totals[BatchOutcome.INVALID.value] += summary.invalid

    def _record_failure(self, elapsed_seconds: float) -> None:
        """Record a failed invocation."""
        ms = elapsed_seconds * 1000.0
        with self._stats_lock:
            self._invocations += 1
            self._failures += 1
            self._total_duration_ms += ms
            self._last_invoked_at = _utcnow()


# ---------------------------------------------------------------------------
# Module-level convenience
# ---------------------------------------------------------------------------

_default_engine: Optional[MergeEngine] = None
_default_engine_lock = threading.Lock()


def _get_default_engine() -> MergeEngine:
    global _default_engine
    if _default_engine is None:
        with _default_engine_lock:
            if _default_engine is None:
                _default_engine = MergeEngine()
    return _default_engine


def merge_canonical(
    existing: Optional[Iterable[RecordLike]] = None,
    incoming: Optional[Iterable[Any]] = None,
    options: Optional[MergeOptions] = None,
) -> BatchResult:
    """Run one merge batch with the shared default MergeEngine."""
    return _get_default_engine().merge_canonical(existing, incoming, options)
