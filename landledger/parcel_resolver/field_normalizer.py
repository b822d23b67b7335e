# -*- coding: utf-8 -*-
"""
Field Normalizer - Parcel Resolver

Pure, deterministic transforms that turn raw spreadsheet values into
comparable forms. Every function accepts any scalar (``None``, numbers,
strings) and never raises on malformed input: unusable values degrade to
an empty string or ``None``.

Owner, county and APN normalization are idempotent:
``normalize_x(normalize_x(v)) == normalize_x(v)``.

Example:
    >>> from landledger.parcel_resolver.field_normalizer import normalize_apn
    >>> normalize_apn("0812-345-6789") == normalize_apn("08123456789")
    True
"""

from __future__ import annotations

import math
import re
from typing import Any, Iterable, List, Optional

__all__ = [
    "strip_value",
    "normalize_header_key",
    "title_case",
    "normalize_apn",
    "normalize_county",
    "normalize_owner",
    "normalize_zip",
    "clean_zip",
    "normalize_phone",
    "normalize_email",
    "normalize_state",
    "normalize_city",
    "parse_flag",
    "parse_number",
    "dedupe_normalized",
]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Values (lowercased) that mark a do-not-call flag as set.
TRUTHY_FLAGS: frozenset = frozenset({"1", "true", "yes", "y", "t"})

_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")
_NON_ALNUM_LOWER = re.compile(r"[^a-z0-9]+")
_NON_DIGIT = re.compile(r"\D+")
_WHITESPACE = re.compile(r"\s+")
_COUNTY_SUFFIX = re.compile(r"(?:\s+county)+$")
_OWNER_PUNCT = re.compile(r"[.,]")
_NUMBER_NOISE = re.compile(r"[^0-9.\-]")
_WORD_START = re.compile(r"\b([a-z])")


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------


def strip_value(value: Any) -> str:
    """Return ``value`` as a trimmed string; ``None`` becomes ``""``.

    Integral floats (as spreadsheet readers produce for ZIPs and phone
    numbers) are rendered without the trailing ``.0``.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def normalize_header_key(header: Any) -> str:
    """Lowercase a header and drop every non-alphanumeric character."""
    return _NON_ALNUM_LOWER.sub("", strip_value(header).lower())


def title_case(value: Any) -> str:
    """Title-case each word (``"lake shore"`` -> ``"Lake Shore"``)."""
    text = strip_value(value)
    if not text:
        return ""
    return _WORD_START.sub(lambda m: m.group(1).upper(), text.lower())


# ---------------------------------------------------------------------------
# Field transforms
# ---------------------------------------------------------------------------


def normalize_apn(value: Any) -> str:
    """Strip non-alphanumerics and uppercase an assessor parcel number."""
    return _NON_ALNUM.sub("", strip_value(value)).upper()


def normalize_county(value: Any) -> str:
    """Lowercase a county name and drop a trailing ``county`` token."""
    text = _WHITESPACE.sub(" ", strip_value(value).lower())
    return _COUNTY_SUFFIX.sub("", text).strip()


def normalize_owner(value: Any) -> str:
    """Lowercase an owner name, strip ``.`` and ``,``, collapse whitespace."""
    text = _OWNER_PUNCT.sub("", strip_value(value).lower())
    return _WHITESPACE.sub(" ", text).strip()


def normalize_zip(value: Any) -> str:
    """Five-digit matching form of a ZIP code."""
    return _NON_DIGIT.sub("", strip_value(value))[:5]


def clean_zip(value: Any) -> str:
    """Stored form of a ZIP code: digits only, ZIP+4 kept (up to 10)."""
    return _NON_DIGIT.sub("", strip_value(value))[:10]


def normalize_phone(value: Any) -> str:
    """Digits-only phone; an 11-digit number with a leading ``1`` loses it.

    No length validation happens here; callers decide what to do with
    short or long digit strings.
    """
    digits = _NON_DIGIT.sub("", strip_value(value))
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits


def normalize_email(value: Any) -> str:
    """Lowercase an email address and remove all whitespace."""
    return _WHITESPACE.sub("", strip_value(value).lower())


def normalize_state(value: Any) -> str:
    return strip_value(value).upper()


def normalize_city(value: Any) -> str:
    return _WHITESPACE.sub(" ", strip_value(value).lower()).strip()


def parse_flag(value: Any) -> bool:
    """Interpret a do-not-call style flag."""
    if isinstance(value, bool):
        return value
    return strip_value(value).lower() in TRUTHY_FLAGS


def parse_number(value: Any) -> Optional[float]:
    """Parse a numeric cell tolerating ``$``, commas and whitespace.

    Returns ``None`` for blanks, unparseable text and non-finite results.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    cleaned = _NUMBER_NOISE.sub("", strip_value(value))
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def dedupe_normalized(values: Iterable[str]) -> List[str]:
    """Drop empty strings and duplicates, keeping first-seen order."""
    seen = set()
    out: List[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out
