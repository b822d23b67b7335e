# -*- coding: utf-8 -*-
"""
LandLedger Parcel Resolver
==========================

Entity resolution and merge engine for property/owner records imported
from heterogeneous spreadsheets. It supports:

- Header alias mapping of arbitrary CSV/XLSX columns onto canonical records
- Deterministic field normalization (APN, county, owner, ZIP, phone, email)
- Street line parsing into house number, direction, name and suffix
- Three blocking keys per record (APN, full address, owner + address)
- Explainable additive match scoring (APN, address, owner, geo)
- Greedy batch merging with merge / flag / create decisions, field-level
  conflict history and provenance
- 7 Prometheus metrics for observability
- Thread-safe configuration with LL_PR_ env prefix

Key Components:
    - config: ParcelResolverConfig with LL_PR_ env prefix
    - field_normalizer: Pure field transforms
    - street_parser: Street line tokenizer
    - row_mapper: Raw row -> canonical record mapping
    - key_builder: Normalized view, blocking keys, record preparation
    - matcher: Pairwise record scoring
    - merge_engine: Batch merge engine
    - readers: CSV and XLSX readers
    - metrics: 7 Prometheus metrics
    - service: ParcelResolverService facade

Example:
    >>> from landledger.parcel_resolver import merge_canonical
    >>> result = merge_canonical([], [{"APN": "12-34", "County": "Dane"}])
    >>> result.summary.created
    1
"""

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from landledger.parcel_resolver.config import (
    ParcelResolverConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from landledger.parcel_resolver.models import (
    INVALID_REASON,
    Address,
    BatchOutcome,
    BatchResult,
    BatchSummary,
    CanonicalRecord,
    CreatedEntry,
    InvalidItem,
    MatchDetail,
    MatchKeys,
    MergedEntry,
    MergeOptions,
    NormalizedView,
    ParsedStreet,
    ProvenanceEntry,
    RecordExtra,
    ReviewItem,
    ReviewReason,
)

# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------
from landledger.parcel_resolver.street_parser import parse_street
from landledger.parcel_resolver.key_builder import (
    build_match_keys,
    clone_record,
    compute_normalized_view,
    prepare_record,
    record_key,
)
from landledger.parcel_resolver.row_mapper import (
    HEADER_ALIASES,
    RowMapper,
    map_row_to_canonical,
)
from landledger.parcel_resolver.matcher import (
    RecordMatcher,
    haversine_meters,
    initials_match,
    jaro_winkler_similarity,
    match_details,
    match_score,
)
from landledger.parcel_resolver.merge_engine import MergeEngine, merge_canonical
from landledger.parcel_resolver.readers import (
    parse_csv_to_canonical,
    parse_xlsx_to_canonical,
)

# ---------------------------------------------------------------------------
# Service facade
# ---------------------------------------------------------------------------
from landledger.parcel_resolver.service import (
    ParcelResolverService,
    configure_parcel_resolver,
    get_parcel_resolver,
)

__all__ = [
    # Configuration
    "ParcelResolverConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Models
    "INVALID_REASON",
    "Address",
    "BatchOutcome",
    "BatchResult",
    "BatchSummary",
    "CanonicalRecord",
    "CreatedEntry",
    "InvalidItem",
    "MatchDetail",
    "MatchKeys",
    "MergedEntry",
    "MergeOptions",
    "NormalizedView",
    "ParsedStreet",
    "ProvenanceEntry",
    "RecordExtra",
    "ReviewItem",
    "ReviewReason",
    # Engines
    "parse_street",
    "build_match_keys",
    "clone_record",
    "compute_normalized_view",
    "prepare_record",
    "record_key",
    "HEADER_ALIASES",
    "RowMapper",
    "map_row_to_canonical",
    "RecordMatcher",
    "haversine_meters",
    "initials_match",
    "jaro_winkler_similarity",
    "match_details",
    "match_score",
    "MergeEngine",
    "merge_canonical",
    "parse_csv_to_canonical",
    "parse_xlsx_to_canonical",
    # Service
    "ParcelResolverService",
    "configure_parcel_resolver",
    "get_parcel_resolver",
]
