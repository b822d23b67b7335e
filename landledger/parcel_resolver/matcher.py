# -*- coding: utf-8 -*-
"""
Record Matcher - Parcel Resolver

Scores a pair of canonical records with a fixed, explainable, additive
heuristic. Each signal contributes a fixed weight and the total is capped
at 1.0:

    APN      +0.90  both APN keys non-empty and equal
    Address  +0.50  both full-address keys non-empty and equal
    Owner    +0.20  Jaro-Winkler >= 0.90 or equal initials sequences
    Geo      +0.20  both points finite and within 15 m (Haversine)

``zip_mismatch`` is reported (both ZIPs present and different) but does
not change the score; it is an input to the merge policy.

Scores are rounded to 6 decimals so that sums of weights compare cleanly
against decision thresholds. Scoring is symmetric.

Example:
    >>> from landledger.parcel_resolver.matcher import RecordMatcher
    >>> matcher = RecordMatcher()
    >>> detail = matcher.match_details(record_a, record_b)
    >>> print(detail.score, detail.apn_match, detail.owner_similarity)
"""

from __future__ import annotations

import logging
import math
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from landledger.parcel_resolver.key_builder import RecordLike, prepare_record
from landledger.parcel_resolver.models import MatchDetail

logger = logging.getLogger(__name__)

__all__ = [
    "APN_WEIGHT",
    "ADDRESS_WEIGHT",
    "OWNER_WEIGHT",
    "GEO_WEIGHT",
    "OWNER_SIMILARITY_THRESHOLD",
    "GEO_THRESHOLD_METERS",
    "EARTH_RADIUS_METERS",
    "jaro_winkler_similarity",
    "initials_match",
    "haversine_meters",
    "RecordMatcher",
    "match_details",
    "match_score",
]


# ---------------------------------------------------------------------------
# Scoring policy
# ---------------------------------------------------------------------------

APN_WEIGHT: float = 0.90
ADDRESS_WEIGHT: float = 0.50
OWNER_WEIGHT: float = 0.20
GEO_WEIGHT: float = 0.20

OWNER_SIMILARITY_THRESHOLD: float = 0.90
GEO_THRESHOLD_METERS: float = 15.0
EARTH_RADIUS_METERS: float = 6_371_000.0


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# ---------------------------------------------------------------------------
# Primitive similarity functions
# ---------------------------------------------------------------------------


def jaro_winkler_similarity(
    a: Optional[str], b: Optional[str], winkler_prefix_weight: float = 0.1,
) -> float:
    """Jaro-Winkler string similarity.

    Jaro = (1/3) * (m/|a| + m/|b| + (m-t)/m)
    Winkler = Jaro + L * p * (1 - Jaro), with L capped at 4.

    Args:
        a: First string (trimmed; None or empty scores 0.0).
        b: Second string.
        winkler_prefix_weight: Winkler prefix weight (default 0.1).

    Returns:
        Jaro-Winkler similarity (0.0 to 1.0).
    """
    a = (a or "").strip()
    b = (b or "").strip()
    if not a or not b:
        return 0.0

    len_a, len_b = len(a), len(b)
    # Single-character strings get an empty window and score 0.0.
    match_distance = max(len_a, len_b) // 2 - 1

    a_matches = [False] * len_a
    b_matches = [False] * len_b
    matches = 0
    transpositions = 0

    for i in range(len_a):
        start = max(0, i - match_distance)
        end = min(i + match_distance + 1, len_b)
        for j in range(start, end):
            if b_matches[j] or a[i] != b[j]:
                continue
            a_matches[i] = True
            b_matches[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    k = 0
    for i in range(len_a):
        if not a_matches[i]:
            continue
        while not b_matches[k]:
            k += 1
        if a[i] != b[k]:
            transpositions += 1
        k += 1

    jaro = (
        matches / len_a + matches / len_b
        + (matches - transpositions / 2) / matches
    ) / 3.0

    prefix_len = 0
    for i in range(min(4, len_a, len_b)):
        if a[i] == b[i]:
            prefix_len += 1
        else:
            break

    winkler = jaro + prefix_len * winkler_prefix_weight * (1.0 - jaro)
    return max(0.0, min(1.0, winkler))


def initials_match(a: Optional[str], b: Optional[str]) -> bool:
    """True when both names yield the same non-empty initials sequence."""
    initials_a = "".join(word[0] for word in (a or "").split())
    initials_b = "".join(word[0] for word in (b or "").split())
    return bool(initials_a) and initials_a == initials_b


def haversine_meters(
    lat1: Optional[float],
    lng1: Optional[float],
    lat2: Optional[float],
    lng2: Optional[float],
) -> float:
    """Great-circle distance in meters; ``inf`` if any coordinate is unusable."""
    coords = (lat1, lng1, lat2, lng2)
    if any(
        c is None or isinstance(c, bool) or not math.isfinite(c) for c in coords
    ):
        return math.inf

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


# ---------------------------------------------------------------------------
# RecordMatcher
# ---------------------------------------------------------------------------


class RecordMatcher:
    """Pairwise record scoring engine.

    Attributes:
        _stats_lock: Threading lock for stats updates.
        _invocations: Total invocation count.
        _successes: Total successful invocations.
        _failures: Total failed invocations.
        _total_duration_ms: Cumulative processing time.
    """

    def __init__(self) -> None:
        """Initialize RecordMatcher with empty statistics."""
        self._stats_lock = threading.Lock()
        self._invocations: int = 0
        self._successes: int = 0
        self._failures: int = 0
        self._total_duration_ms: float = 0.0
        self._last_invoked_at: Optional[datetime] = None
        self._signal_counts: Dict[str, int] = {
            "apn": 0, "address": 0, "owner": 0, "geo": 0, "zip_mismatch": 0,
        }
        logger.info("RecordMatcher initialized")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def match_details(self, a: RecordLike, b: RecordLike) -> MatchDetail:
        """Score two records and explain which signals fired.

        Both records are prepared first; neither input is mutated.

        Args:
            a: First record (CanonicalRecord or canonical-shaped mapping).
            b: Second record.

        Returns:
            MatchDetail with the capped score and per-signal flags.
        """
        start_time = time.monotonic()
        try:
            left = prepare_record(a)
            right = prepare_record(b)
            keys_a, keys_b = left.match_keys, right.match_keys
            view_a, view_b = left.normalized, right.normalized

            score = 0.0
            apn_match = bool(keys_a.k_apn) and keys_a.k_apn == keys_b.k_apn
            if apn_match:
                score += APN_WEIGHT

            address_match = (
                bool(keys_a.k_addr_full) and keys_a.k_addr_full == keys_b.k_addr_full
            )
            if address_match:
                score += ADDRESS_WEIGHT

            owner_similarity = 0.0
            owner_match = False
            if view_a.owner and view_b.owner:
                owner_similarity = jaro_winkler_similarity(view_a.owner, view_b.owner)
                owner_match = (
                    owner_similarity >= OWNER_SIMILARITY_THRESHOLD
                    or initials_match(view_a.owner, view_b.owner)
                )
                if owner_match:
                    score += OWNER_WEIGHT

            distance: Optional[float] = None
            geo_match = False
            if None not in (view_a.lat, view_a.lng, view_b.lat, view_b.lng):
                distance = haversine_meters(
                    view_a.lat, view_a.lng, view_b.lat, view_b.lng,
                )
                geo_match = distance <= GEO_THRESHOLD_METERS
                if geo_match:
                    score += GEO_WEIGHT

            zip_mismatch = bool(
                view_a.zip and view_b.zip and view_a.zip != view_b.zip
            )

            detail = MatchDetail(
                score=round(min(score, 1.0), 6),
                apn_match=apn_match,
                address_match=address_match,
                owner_match=owner_match,
                geo_match=geo_match,
                zip_mismatch=zip_mismatch,
                owner_similarity=round(owner_similarity, 6),
                distance_meters=(
                    round(distance, 6) if distance is not None else None
                ),
            )

            self._record_success(time.monotonic() - start_time, detail)
            logger.debug(
                "Matched pair: score=%.4f apn=%s addr=%s owner=%s geo=%s zip_mismatch=%s",
                detail.score, apn_match, address_match, owner_match,
                geo_match, zip_mismatch,
            )
            return detail

        except Exception as e:
            self._record_failure(time.monotonic() - start_time)
            logger.error("Record matching failed: %s", e)
            raise

    def match_score(self, a: RecordLike, b: RecordLike) -> float:
        """Return only the capped score of ``match_details``."""
        return self.match_details(a, b).score

    def get_statistics(self) -> Dict[str, Any]:
        """Return current engine operational statistics."""
        with self._stats_lock:
            avg_ms = 0.0
            if self._invocations > 0:
                avg_ms = self._total_duration_ms / self._invocations
            return {
                "engine_name": "RecordMatcher",
                "invocations": self._invocations,
                "successes": self._successes,
                "failures": self._failures,
                "total_duration_ms": round(self._total_duration_ms, 3),
                "avg_duration_ms": round(avg_ms, 3),
                "last_invoked_at": (
                    self._last_invoked_at.isoformat()
                    if self._last_invoked_at else None
                ),
                "signal_counts": dict(self._signal_counts),
            }

    def reset_statistics(self) -> None:
        """Reset all operational statistics to zero."""
        with self._stats_lock:
            self._invocations = 0
            self._successes = 0
            self._failures = 0
            self._total_duration_ms = 0.0
            self._last_invoked_at = None
            for key in self._signal_counts:
                self._signal_counts[key] = 0

    # ------------------------------------------------------------------
    # Private methods
    # ------------------------------------------------------------------

    def _record_success(self, elapsed_seconds: float, detail: MatchDetail) -> None:
        """Record a successful invocation and the signals it fired."""
        ms = elapsed_seconds * 1000.0
        with self._stats_lock:
            self._invocations += 1
            self._successes += 1
            self._total_duration_ms += ms
            self._last_invoked_at = _utcnow()
            self._signal_counts["apn"] += int(detail.apn_match)
            self._signal_counts["address"] += int(detail.address_match)
            self._signal_counts["owner"] += int(detail.owner_match)
            self._signal_counts["geo"] += int(detail.geo_match)
            self._signal_counts["zip_mismatch"] += int(detail.zip_mismatch)

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

_default_matcher: Optional[RecordMatcher] = None
_default_matcher_lock = threading.Lock()


def _get_default_matcher() -> RecordMatcher:
    global _default_matcher
    if _default_matcher is None:
        with _default_matcher_lock:
            if _default_matcher is None:
                _default_matcher = RecordMatcher()
    return _default_matcher


def match_details(a: RecordLike, b: RecordLike) -> MatchDetail:
    """Score two records with a shared default RecordMatcher."""
    return _get_default_matcher().match_details(a, b)


def match_score(a: RecordLike, b: RecordLike) -> float:
    """Capped score of two records with a shared default RecordMatcher."""
    return _get_default_matcher().match_score(a, b)
