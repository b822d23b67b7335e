# -*- coding: utf-8 -*-
"""
Key Builder - Parcel Resolver

Prepares canonical records for matching. Preparation clones the record,
normalizes and dedupes its contact lists, guarantees conflict and
provenance containers, and caches two derived artifacts on the clone:

    NormalizedView: comparable forms of owner, county, APN, street and
        locality fields.
    MatchKeys: three blocking keys used to find candidate matches.

        k_apn             apn:<apn>|c:<county>
        k_addr_full       a:<street core>|ct:<city>|s:<state>|z:<zip>
        k_owner_addr_lite o:<owner>|a:<street core>|ct:<city>|s:<state>

A key is empty unless every component is present. A record whose three
keys are all empty cannot be blocked against anything.

Preparation is idempotent: preparing an already prepared record yields an
equal record.

Example:
    >>> from landledger.parcel_resolver.key_builder import prepare_record, record_key
    >>> rec = prepare_record({"apn": "12-34", "county": "Dane County"})
    >>> record_key(rec)
    'apn:1234|c:dane'
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from landledger.parcel_resolver.field_normalizer import (
    dedupe_normalized,
    normalize_apn,
    normalize_city,
    normalize_county,
    normalize_email,
    normalize_owner,
    normalize_phone,
    normalize_state,
    normalize_zip,
)
from landledger.parcel_resolver.models import (
    CanonicalRecord,
    MatchKeys,
    NormalizedView,
    ProvenanceEntry,
)
from landledger.parcel_resolver.street_parser import parse_street

logger = logging.getLogger(__name__)

__all__ = [
    "as_record",
    "clone_record",
    "compute_normalized_view",
    "build_match_keys",
    "prepare_record",
    "record_key",
]

RecordLike = Union[CanonicalRecord, Mapping]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _join(*parts: str) -> str:
    return " ".join(p for p in parts if p)


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def as_record(value: RecordLike) -> CanonicalRecord:
    """Coerce a canonical-shaped mapping into a CanonicalRecord.

    Raises:
        TypeError: If ``value`` is neither a CanonicalRecord nor a mapping.
    """
    if isinstance(value, CanonicalRecord):
        return value
    if isinstance(value, Mapping):
        return CanonicalRecord.model_validate(dict(value))
    raise TypeError(
        f"Expected CanonicalRecord or mapping, got {type(value).__name__}"
    )


def clone_record(record: RecordLike) -> CanonicalRecord:
    """Return a deep copy of ``record`` sharing no mutable state."""
    return as_record(record).model_copy(deep=True)


# ---------------------------------------------------------------------------
# Derived artifacts
# ---------------------------------------------------------------------------


def compute_normalized_view(record: CanonicalRecord) -> NormalizedView:
    """Compute the comparable forms of a record's fields.

    The street core comes from ``address.line1`` when present, otherwise
    from the joined street sub-fields.
    """
    address = record.address
    number = address.street_number
    direction = address.street_dir
    name = address.street_name
    suffix = address.street_suffix

    core_source = address.line1 or _join(number, direction, name, suffix)
    parsed = parse_street(core_source)

    street_core = parsed.core or _join(
        number, direction, _join(name, suffix),
    ).lower()

    return NormalizedView(
        owner=normalize_owner(record.owner),
        county=normalize_county(record.county),
        apn=normalize_apn(record.apn),
        street_core=" ".join(street_core.split()),
        street_number=parsed.house or number.lower(),
        street_name=parsed.street_name or name.lower(),
        street_suffix=parsed.suffix or suffix.lower(),
        direction=parsed.direction or direction.lower(),
        city=normalize_city(address.city),
        state=normalize_state(address.state),
        zip=normalize_zip(address.zip),
        lat=_finite(record.lat),
        lng=_finite(record.lng),
    )


def build_match_keys(view: NormalizedView) -> MatchKeys:
    """Derive the three blocking keys from a normalized view."""
    apn, county = view.apn, view.county
    core, city, state, zip_code = view.street_core, view.city, view.state, view.zip
    owner = view.owner

    k_apn = f"apn:{apn}|c:{county}" if apn and county else ""
    k_addr_full = (
        f"a:{core}|ct:{city}|s:{state}|z:{zip_code}"
        if core and city and state and zip_code else ""
    )
    k_owner_addr_lite = (
        f"o:{owner}|a:{core}|ct:{city}|s:{state}"
        if owner and core and city and state else ""
    )
    return MatchKeys(
        k_apn=k_apn,
        k_addr_full=k_addr_full,
        k_owner_addr_lite=k_owner_addr_lite,
    )


# ---------------------------------------------------------------------------
# Preparation
# ---------------------------------------------------------------------------


def prepare_record(
    record: RecordLike,
    now: Optional[Callable[[], datetime]] = None,
) -> CanonicalRecord:
    """Return a prepared deep copy of ``record``.

    Args:
        record: CanonicalRecord or canonical-shaped mapping.
        now: Clock used when a provenance entry has to be synthesized.

    Returns:
        New CanonicalRecord with normalized contacts, guaranteed
        provenance, and cached ``normalized`` / ``match_keys``.
    """
    prepared = clone_record(record)

    prepared.phones = dedupe_normalized(normalize_phone(p) for p in prepared.phones)
    prepared.emails = dedupe_normalized(normalize_email(e) for e in prepared.emails)
    prepared.dnc = bool(prepared.dnc)

    if not prepared.provenance:
        clock = now or _utcnow
        prepared.provenance = [
            ProvenanceEntry(source=prepared.source, imported_at=clock()),
        ]

    prepared.normalized = compute_normalized_view(prepared)
    prepared.match_keys = build_match_keys(prepared.normalized)
    return prepared


def record_key(record: Optional[RecordLike]) -> str:
    """Return the record's primary key.

    First non-empty of ``k_apn``, ``k_addr_full``, ``k_owner_addr_lite``;
    ``""`` when none can be derived.
    """
    if record is None:
        return ""
    if isinstance(record, CanonicalRecord) and record.match_keys is not None:
        keys = record.match_keys
    else:
        keys = prepare_record(record).match_keys
    return keys.k_apn or keys.k_addr_full or keys.k_owner_addr_lite or ""
