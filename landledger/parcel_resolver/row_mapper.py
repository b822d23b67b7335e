# -*- coding: utf-8 -*-
"""
Row Mapper - Parcel Resolver

Maps raw tabular rows (arbitrary column headers, inconsistent formatting)
onto prepared CanonicalRecord instances.

Headers are normalized (lowercased, non-alphanumerics stripped) and looked
up in an alias index built once from ``HEADER_ALIASES``. Headers that do
not resolve are ignored for canonical purposes but kept verbatim in the
provenance raw snapshot.

Mapping rules:
    - Owner is the full-name column, else first + last name.
    - Address line is the first non-empty free-text address column, else
      the joined street sub-fields. The street parser backfills any
      street sub-field the row did not supply.
    - Acreage, estimated value, latitude and longitude are parsed
      tolerantly; unusable values become None.
    - Phones come from phone1..3, emails from email1..2 (list values are
      flattened). Invalid entries are dropped.
    - When several headers resolve to the same scalar field, the first
      non-empty value wins.

Example:
    >>> from landledger.parcel_resolver.row_mapper import RowMapper
    >>> mapper = RowMapper()
    >>> rec = mapper.map_row({"Owner Name": "River Bend LLC",
    ...                       "Site Address": "200 Lake Shore Dr",
    ...                       "City": "Madison", "ST": "wi"}, "csv")
    >>> rec.address.state, rec.address.street_suffix
    ('WI', 'Drive')
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from landledger.parcel_resolver.config import get_config
from landledger.parcel_resolver.field_normalizer import (
    clean_zip,
    normalize_email,
    normalize_header_key,
    normalize_phone,
    normalize_state,
    parse_flag,
    parse_number,
    strip_value,
    title_case,
)
from landledger.parcel_resolver.key_builder import prepare_record
from landledger.parcel_resolver.models import (
    Address,
    CanonicalRecord,
    ProvenanceEntry,
)
from landledger.parcel_resolver.street_parser import parse_street

logger = logging.getLogger(__name__)

__all__ = [
    "HEADER_ALIASES",
    "RowMapper",
    "build_header_index",
    "map_row_to_canonical",
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# ---------------------------------------------------------------------------
# Header aliases (canonical field -> known source headers)
# ---------------------------------------------------------------------------

HEADER_ALIASES: Dict[str, List[str]] = {
    "owner": [
        "owner", "ownername", "name", "fullname", "owner1",
        "owner 1 name", "owner 1 full name", "grantee", "mailing name",
        "firstandlastname",
    ],
    "owner_first": ["owner1first", "owner first name", "first name", "ownerfirst"],
    "owner_last": ["owner1last", "owner last name", "last name", "ownerlast"],
    "address_line1": [
        "site address", "situs address", "property address", "address",
        "address line1", "situsaddr", "siteaddress", "propertyaddr",
        "street address", "property full address", "addressline1",
    ],
    "city": ["city", "situs city", "property city", "site city"],
    "state": ["state", "situs state", "property state", "site state", "st"],
    "zip": [
        "zip", "zipcode", "zip code", "postal code", "situs zip",
        "property zip", "site zip",
    ],
    "county": ["county", "countyname", "property county", "site county"],
    "apn": [
        "apn", "parcel", "parcel id", "parcelid", "parcel number",
        "parcelnumber", "parid", "parno", "pin",
        "assessor parcel number (apn)",
    ],
    "acreage": ["acreage", "acres", "lot size", "lotsize", "lot acreage"],
    "est_value": [
        "estimated market value", "est value", "marketvalue",
        "assessedvalue", "avm", "estimated value", "est. value",
    ],
    "lat": ["latitude", "lat"],
    "lng": ["longitude", "lon", "long", "lng"],
    "phone1": [
        "phone", "phone 1", "cell", "mobile", "primary phone",
        "best phone", "phone1",
    ],
    "phone2": [
        "phone 2", "alternate phone", "other phone", "phone2",
        "alt phone", "cell 2",
    ],
    "phone3": ["phone 3", "phone3", "landline"],
    "email1": ["email", "email 1", "primary email", "email1"],
    "email2": ["email 2", "alternate email", "other email", "email2"],
    "dnc": ["dnc", "donotcall", "do not call", "do-not-call", "optout", "dnc flag"],
    "street_number": ["street no", "house no", "streetnumber", "street number"],
    "street_name": ["street", "street name", "road", "streetname"],
    "street_suffix": ["suffix", "street suffix"],
    "street_dir": ["dir", "direction", "prefix dir", "street dir", "street direction"],
}

_PHONE_FIELDS = ("phone1", "phone2", "phone3")
_EMAIL_FIELDS = ("email1", "email2")


def build_header_index(aliases: Mapping) -> Dict[str, str]:
    """Build a normalized-alias -> canonical-field lookup.

    Args:
        aliases: Canonical field name -> list of source header aliases.

    Returns:
        Dictionary keyed by normalized header.
    """
    index: Dict[str, str] = {}
    for canonical, names in aliases.items():
        for name in names:
            key = normalize_header_key(name)
            if key:
                index.setdefault(key, canonical)
    return index


def _flatten(values: Iterable[Any]) -> List[Any]:
    out: List[Any] = []
    for value in values:
        if isinstance(value, (list, tuple)):
            out.extend(value)
        else:
            out.append(value)
    return out


# ---------------------------------------------------------------------------
# RowMapper
# ---------------------------------------------------------------------------


class RowMapper:
    """Maps raw rows onto prepared canonical records.

    Attributes:
        _index: Normalized header -> canonical field lookup.
        _default_source: Source label used when a caller supplies none.
        _now: Clock used for provenance timestamps.
        _stats_lock: Threading lock for stats updates.

    Example:
        >>> mapper = RowMapper(source_label="csv")
        >>> records = mapper.map_rows([{"APN": "1-2", "County": "Dane"}])
        >>> records[0].match_keys.k_apn
        'apn:12|c:dane'
    """

    def __init__(
        self,
        source_label: Optional[str] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize RowMapper.

        Args:
            source_label: Default provenance source label. Falls back to
                the configured ``default_source_label``.
            now: Clock for provenance timestamps (defaults to UTC now).
        """
        self._default_source: str = (
            source_label or get_config().default_source_label
        )
        self._now: Callable[[], datetime] = now or _utcnow
        self._index: Dict[str, str] = build_header_index(HEADER_ALIASES)
        self._stats_lock = threading.Lock()
        self._invocations: int = 0
        self._successes: int = 0
        self._failures: int = 0
        self._total_duration_ms: float = 0.0
        self._last_invoked_at: Optional[datetime] = None
        self._unmapped_headers: int = 0
        logger.info(
            "RowMapper initialized: aliases=%d, default_source=%s",
            len(self._index), self._default_source,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_header(self, header: Any) -> Optional[str]:
        """Return the canonical field for a raw header, or None."""
        return self._index.get(normalize_header_key(header))

    def map_row(
        self,
        row: Optional[Mapping],
        source_label: Optional[str] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> CanonicalRecord:
        """Map one raw row onto a prepared canonical record.

        Args:
            row: Raw row keyed by source header. ``None`` is treated as
                an empty row.
            source_label: Provenance source label for this row.
            now: Clock overriding the mapper clock for this row.

        Returns:
            Prepared CanonicalRecord.

        Raises:
            TypeError: If ``row`` is not a mapping.
        """
        start_time = time.monotonic()
        try:
            if row is None:
                row = {}
            if not isinstance(row, Mapping):
                raise TypeError(
                    f"row must be a mapping, got {type(row).__name__}"
                )
            label = strip_value(source_label) or self._default_source
            record = self._build_record(row, label, now or self._now)
            self._record_success(time.monotonic() - start_time)
            logger.debug(
                "Mapped row from %s: key_apn=%s, owner=%r",
                label, record.match_keys.k_apn, record.owner,
            )
            return record

        except Exception as e:
            self._record_failure(time.monotonic() - start_time)
            logger.error("Row mapping failed: %s", e)
            raise

    def map_rows(
        self,
        rows: Iterable[Optional[Mapping]],
        source_label: Optional[str] = None,
    ) -> List[CanonicalRecord]:
        """Map a sequence of raw rows, preserving order."""
        records = [self.map_row(row, source_label) for row in rows]
        logger.info(
            "Mapped %d rows (source=%s)",
            len(records), source_label or self._default_source,
        )
        return records

    def get_statistics(self) -> Dict[str, Any]:
        """Return current mapper operational statistics."""
        with self._stats_lock:
            avg_ms = 0.0
            if self._invocations > 0:
                avg_ms = self._total_duration_ms / self._invocations
            return {
                "engine_name": "RowMapper",
                "invocations": self._invocations,
                "successes": self._successes,
                "failures": self._failures,
                "total_duration_ms": round(self._total_duration_ms, 3),
                "avg_duration_ms": round(avg_ms, 3),
                "last_invoked_at": (
                    self._last_invoked_at.isoformat()
                    if self._last_invoked_at else None
                ),
                "unmapped_headers": self._unmapped_headers,
                "known_aliases": len(self._index),
            }

    def reset_statistics(self) -> None:
        """Reset all operational statistics to zero."""
        with self._stats_lock:
            self._invocations = 0
            self._successes = 0
            self._failures = 0
            self._total_duration_ms = 0.0
            self._last_invoked_at = None
            self._unmapped_headers = 0

    # ------------------------------------------------------------------
    # Private methods
    # ------------------------------------------------------------------

    def _collect(self, row: Mapping) -> Dict[str, List[Any]]:
        """Group raw values by canonical field in row order."""
        interim: Dict[str, List[Any]] = {}
        unmapped = 0
        for header, value in row.items():
            canonical = self.resolve_header(header)
            if canonical is None:
                unmapped += 1
                continue
            interim.setdefault(canonical, []).append(value)
        if unmapped:
            with self._stats_lock:
                self._unmapped_headers += unmapped
        return interim

    @staticmethod
    def _first(interim: Dict[str, List[Any]], field: str) -> Any:
        """First raw value for ``field`` that is not blank."""
        for value in interim.get(field, ()):
            if isinstance(value, (list, tuple)):
                continue
            if strip_value(value):
                return value
        return None

    def _text(self, interim: Dict[str, List[Any]], field: str) -> str:
        return strip_value(self._first(interim, field))

    def _build_record(
        self,
        row: Mapping,
        label: str,
        clock: Callable[[], datetime],
    ) -> CanonicalRecord:
        interim = self._collect(row)

        def text(field: str) -> str:
            return self._text(interim, field)

        owner = text("owner") or " ".join(
            p for p in (text("owner_first"), text("owner_last")) if p
        )

        number_raw = text("street_number")
        dir_raw = text("street_dir")
        name_raw = text("street_name")
        suffix_raw = text("street_suffix")
        sub_line = " ".join(
            p for p in (number_raw, dir_raw, name_raw, suffix_raw) if p
        )
        line1 = text("address_line1") or sub_line
        parsed = parse_street(line1)

        street_dir = dir_raw or parsed.direction
        street_suffix = suffix_raw or parsed.suffix

        address = Address(
            line1=line1,
            city=text("city"),
            state=normalize_state(text("state")),
            zip=clean_zip(text("zip")),
            street_number=number_raw or parsed.house,
            street_name=name_raw or parsed.street_name,
            street_suffix=title_case(street_suffix),
            street_dir=street_dir.upper(),
        )

        phones = [
            normalize_phone(v)
            for v in _flatten(v for f in _PHONE_FIELDS for v in interim.get(f, ()))
        ]
        emails = [
            normalize_email(v)
            for v in _flatten(v for f in _EMAIL_FIELDS for v in interim.get(f, ()))
        ]

        record = CanonicalRecord(
            id=None,
            source=label,
            owner=owner,
            address=address,
            county=text("county"),
            apn=text("apn"),
            acreage=parse_number(self._first(interim, "acreage")),
            est_value=parse_number(self._first(interim, "est_value")),
            lat=parse_number(self._first(interim, "lat")),
            lng=parse_number(self._first(interim, "lng")),
            phones=[p for p in phones if p],
            emails=[e for e in emails if e],
            dnc=parse_flag(self._first(interim, "dnc")),
            provenance=[
                ProvenanceEntry(
                    source=label,
                    imported_at=clock(),
                    raw_snapshot={str(k): v for k, v in row.items()},
                ),
            ],
        )
        return prepare_record(record, now=clock)

    def _record_success(self, elapsed_seconds: float) -> None:
        """Record a successful invocation."""
        ms = elapsed_seconds * 1000.0
        with self._stats_lock:
            self._invocations += 1
            self._successes += 1
            self._total_duration_ms += ms
            self._last_invoked_at = _utcnow()

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

_default_mapper: Optional[RowMapper] = None
_default_mapper_lock = threading.Lock()


def _get_default_mapper() -> RowMapper:
    global _default_mapper
    if _default_mapper is None:
        with _default_mapper_lock:
            if _default_mapper is None:
                _default_mapper = RowMapper(source_label="import")
    return _default_mapper


def map_row_to_canonical(
    row: Optional[Mapping],
    source_label: Optional[str] = None,
) -> CanonicalRecord:
    """Map one raw row with a shared default RowMapper."""
    return _get_default_mapper().map_row(row, source_label)
