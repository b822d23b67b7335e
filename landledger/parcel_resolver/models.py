# -*- coding: utf-8 -*-
"""
Parcel Resolver Data Models

Pydantic v2 data models for the parcel resolver. Provides type-safe
models for canonical property/owner records, their cached normalized view
and blocking keys, pairwise match details, merge options, and the batch
result returned by the merge engine.

Enumerations (2):
    - BatchOutcome, ReviewReason

Record models (6):
    - Address, ProvenanceEntry, RecordExtra, NormalizedView, MatchKeys,
      CanonicalRecord

Matching and batch models (8):
    - ParsedStreet, MatchDetail, MergeOptions, ReviewItem, InvalidItem,
      CreatedEntry, MergedEntry, BatchSummary, BatchResult

Canonical records accept both snake_case field names and the camelCase
aliases used by upstream spreadsheet tooling (``estValue``,
``streetNumber``, ``_provenance``, ``importedAt`` ...).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from landledger.parcel_resolver.field_normalizer import (
    parse_flag,
    parse_number,
    strip_value,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Reason attached to incoming records that yield no blocking key.
INVALID_REASON: str = "missing APN or address/owner details"

#: Address sub-fields merged (and conflict-tracked) independently.
ADDRESS_FIELDS: tuple = (
    "line1", "city", "state", "zip",
    "street_number", "street_name", "street_suffix", "street_dir",
)


# =============================================================================
# Enumerations
# =============================================================================


class BatchOutcome(str, Enum):
    """Per-record outcome of a merge batch."""

    CREATED = "created"
    MERGED = "merged"
    FLAGGED = "flagged"
    INVALID = "invalid"


class ReviewReason(str, Enum):
    """Why an incoming record was routed to the manual review queue.

    ZIP_MISMATCH: Best candidate sits in a different ZIP.
    AUTO_MERGE_DISABLED: High score without an APN match while
        auto-merge without APN is switched off.
    LOW_CONFIDENCE: Score between the review and auto-merge thresholds.
    DUPLICATE_KEY: The record key already exists in the final set.
    """

    ZIP_MISMATCH = "zip-mismatch"
    AUTO_MERGE_DISABLED = "auto-merge-disabled"
    LOW_CONFIDENCE = "low-confidence"
    DUPLICATE_KEY = "duplicate-key"


# =============================================================================
# Record models
# =============================================================================


class Address(BaseModel):
    """Site address of a parcel.

    Attributes:
        line1: Free-text first address line.
        city: City name as supplied.
        state: Two-letter state code (uppercase).
        zip: ZIP digits, up to 10 (ZIP+4 kept).
        street_number: House number.
        street_name: Street name without direction or suffix.
        street_suffix: Title-cased street suffix (``Drive``).
        street_dir: Uppercase directional (``N``, ``SW``).
    """

    line1: str = Field(default="", description="Free-text first address line")
    city: str = Field(default="", description="City name")
    state: str = Field(default="", description="Two-letter state code")
    zip: str = Field(default="", description="ZIP digits (up to 10)")
    street_number: str = Field(
        default="", alias="streetNumber", description="House number",
    )
    street_name: str = Field(
        default="", alias="streetName", description="Street name",
    )
    street_suffix: str = Field(
        default="", alias="streetSuffix", description="Title-cased street suffix",
    )
    street_dir: str = Field(
        default="", alias="streetDir", description="Uppercase street direction",
    )

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("*", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        """Render any scalar as a trimmed string."""
        return strip_value(v)


class ProvenanceEntry(BaseModel):
    """Where a record (or a merged-in part of it) came from.

    Attributes:
        source: Source label (``csv``, ``xlsx``, ``import`` ...).
        imported_at: When the row entered the engine.
        raw_snapshot: Untouched copy of the raw input row, including
            headers that did not map to a canonical field.
    """

    source: str = Field(default="import", description="Source label")
    imported_at: Optional[datetime] = Field(
        default=None, alias="importedAt", description="Import timestamp",
    )
    raw_snapshot: Optional[Dict[str, Any]] = Field(
        default=None, alias="raw", description="Raw input row snapshot",
    )

    model_config = {"extra": "ignore", "populate_by_name": True}


class ParsedStreet(BaseModel):
    """Tokenized street line produced by the street parser.

    ``core`` (house + direction + street) is the canonical matching form.
    """

    core: str = ""
    house: str = ""
    street: str = ""
    street_name: str = ""
    suffix: str = ""
    direction: str = ""

    model_config = {"extra": "forbid", "frozen": True}


class MatchDetail(BaseModel):
    """Explainable result of scoring two canonical records.

    Attributes:
        score: Additive score capped at 1.0.
        apn_match: APN + county blocking keys are equal.
        address_match: Full address keys are equal.
        owner_match: Owner similarity or initials triggered.
        geo_match: Points lie within the geo threshold.
        zip_mismatch: Both ZIPs present and different.
        owner_similarity: Jaro-Winkler similarity of normalized owners.
        distance_meters: Haversine distance when both points are finite.
        reason: Optional policy tag (``zip-mismatch``).
    """

    score: float = Field(default=0.0, ge=0.0, le=1.0)
    apn_match: bool = False
    address_match: bool = False
    owner_match: bool = False
    geo_match: bool = False
    zip_mismatch: bool = False
    owner_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    distance_meters: Optional[float] = Field(default=None, ge=0.0)
    reason: Optional[str] = None

    model_config = {"extra": "forbid"}


class RecordExtra(BaseModel):
    """Open-ended record metadata.

    Attributes:
        conflicts: Field name -> rejected alternative values, in
            first-seen order without duplicates.
        last_merge_detail: Match detail of the most recent merge.
    """

    conflicts: Dict[str, List[Any]] = Field(default_factory=dict)
    last_merge_detail: Optional[MatchDetail] = Field(
        default=None, alias="lastMergeDetail",
    )

    model_config = {"extra": "allow", "populate_by_name": True}

    @field_validator("conflicts", mode="before")
    @classmethod
    def coerce_conflicts(cls, v: Any) -> Dict[str, List[Any]]:
        if not isinstance(v, dict):
            return {}
        return {str(k): _as_list(vals) for k, vals in v.items()}


class NormalizedView(BaseModel):
    """Comparable forms of a record's fields. Derived, never edited."""

    owner: str = ""
    county: str = ""
    apn: str = ""
    street_core: str = ""
    street_number: str = ""
    street_name: str = ""
    street_suffix: str = ""
    direction: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None

    model_config = {"extra": "forbid", "frozen": True}


class MatchKeys(BaseModel):
    """Blocking keys derived from a NormalizedView (empty = not derivable)."""

    k_apn: str = ""
    k_addr_full: str = ""
    k_owner_addr_lite: str = ""

    model_config = {"extra": "forbid", "frozen": True}

    def any(self) -> bool:
        return bool(self.k_apn or self.k_addr_full or self.k_owner_addr_lite)

    def non_empty(self) -> List[str]:
        return [k for k in (self.k_apn, self.k_addr_full, self.k_owner_addr_lite) if k]


class CanonicalRecord(BaseModel):
    """Unified post-normalization representation of one parcel/owner.

    ``normalized`` and ``match_keys`` are caches filled by
    ``key_builder.prepare_record`` and must be recomputed after any field
    change.
    """

    id: Optional[str] = Field(default=None, description="Caller-assigned id")
    source: str = Field(default="import", description="Originating source label")
    owner: str = Field(default="", description="Owner name as supplied")
    address: Address = Field(default_factory=Address)
    county: str = Field(default="", description="County name as supplied")
    apn: str = Field(default="", description="Assessor parcel number as supplied")
    acreage: Optional[float] = Field(default=None, description="Lot acreage")
    est_value: Optional[float] = Field(
        default=None, alias="estValue", description="Estimated market value",
    )
    lat: Optional[float] = Field(default=None, description="Latitude")
    lng: Optional[float] = Field(default=None, description="Longitude")
    phones: List[str] = Field(default_factory=list)
    emails: List[str] = Field(default_factory=list)
    dnc: bool = Field(default=False, description="Do-not-call flag")
    notes: List[Any] = Field(default_factory=list)
    history: List[Any] = Field(default_factory=list)
    extra: RecordExtra = Field(default_factory=RecordExtra)
    provenance: List[ProvenanceEntry] = Field(
        default_factory=list, alias="_provenance",
    )
    normalized: Optional[NormalizedView] = Field(default=None, alias="_normalized")
    match_keys: Optional[MatchKeys] = Field(default=None, alias="_keys")

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        text = strip_value(v)
        return text or None

    @field_validator("source", mode="before")
    @classmethod
    def coerce_source(cls, v: Any) -> str:
        return strip_value(v) or "import"

    @field_validator("owner", "county", "apn", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return strip_value(v)

    @field_validator("acreage", "est_value", "lat", "lng", mode="before")
    @classmethod
    def coerce_number(cls, v: Any) -> Optional[float]:
        """Malformed or non-finite numbers degrade to None."""
        return parse_number(v)

    @field_validator("phones", "emails", mode="before")
    @classmethod
    def coerce_contacts(cls, v: Any) -> List[str]:
        return [strip_value(item) for item in _as_list(v)]

    @field_validator("dnc", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        return parse_flag(v)

    @field_validator("notes", "history", mode="before")
    @classmethod
    def coerce_entries(cls, v: Any) -> List[Any]:
        return _as_list(v)

    @field_validator("extra", mode="before")
    @classmethod
    def coerce_extra(cls, v: Any) -> Any:
        return v if v is not None else {}

    @field_validator("provenance", mode="before")
    @classmethod
    def coerce_provenance(cls, v: Any) -> List[Any]:
        return [item for item in _as_list(v) if isinstance(item, (dict, ProvenanceEntry))]


# =============================================================================
# Merge options and batch result
# =============================================================================


class MergeOptions(BaseModel):
    """Policy switches for one merge batch.

    Attributes:
        auto_merge_without_apn: Merge high-scoring candidates even when
            the APN signal did not fire.
        prevent_cross_zip: Cap cross-ZIP candidates below the review
            threshold and flag them instead of merging.
        now: Clock used for synthesized provenance timestamps.
    """

    auto_merge_without_apn: bool = True
    prevent_cross_zip: bool = True
    now: Callable[[], datetime] = Field(default=_utcnow)

    model_config = {"extra": "forbid", "populate_by_name": True}

    @classmethod
    def from_config(cls, config: Any, **overrides: Any) -> MergeOptions:
        """Build batch options from a ParcelResolverConfig."""
        values: Dict[str, Any] = {
            "auto_merge_without_apn": config.auto_merge_without_apn,
            "prevent_cross_zip": config.prevent_cross_zip,
        }
        values.update(overrides)
        return cls(**values)


class ReviewItem(BaseModel):
    """An incoming record that needs a human decision."""

    existing: Optional[CanonicalRecord] = None
    incoming: CanonicalRecord
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    detail: Optional[MatchDetail] = None
    reason: str


class InvalidItem(BaseModel):
    """An incoming record that could not be blocked against anything."""

    record: CanonicalRecord
    reason: str = INVALID_REASON


class CreatedEntry(BaseModel):
    record: CanonicalRecord


class MergedEntry(BaseModel):
    """Before/after snapshot of one in-place merge."""

    before: CanonicalRecord
    after: CanonicalRecord
    incoming: CanonicalRecord
    detail: MatchDetail


class BatchSummary(BaseModel):
    processed: int = 0
    created: int = 0
    merged: int = 0
    flagged: int = 0
    invalid: int = 0


class BatchResult(BaseModel):
    """Everything a merge batch produced.

    Attributes:
        records: New authoritative record set.
        summary: Outcome counters.
        review_queue: Ambiguous incoming records for manual review.
        invalid: Incoming records without any blocking key.
        created: Records appended as new.
        merged: In-place merges with before/after snapshots.
        status_by_key: Record key -> last outcome (created/merged).
    """

    records: List[CanonicalRecord] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)
    review_queue: List[ReviewItem] = Field(default_factory=list)
    invalid: List[InvalidItem] = Field(default_factory=list)
    created: List[CreatedEntry] = Field(default_factory=list)
    merged: List[MergedEntry] = Field(default_factory=list)
    status_by_key: Dict[str, BatchOutcome] = Field(default_factory=dict)


__all__ = [
    "INVALID_REASON",
    "ADDRESS_FIELDS",
    "BatchOutcome",
    "ReviewReason",
    "Address",
    "ProvenanceEntry",
    "ParsedStreet",
    "MatchDetail",
    "RecordExtra",
    "NormalizedView",
    "MatchKeys",
    "CanonicalRecord",
    "MergeOptions",
    "ReviewItem",
    "InvalidItem",
    "CreatedEntry",
    "MergedEntry",
    "BatchSummary",
    "BatchResult",
]
