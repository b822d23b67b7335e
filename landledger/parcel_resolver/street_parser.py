# -*- coding: utf-8 -*-
"""
Street Parser - Parcel Resolver

Tokenizes a free-text street line into house number, direction, street
name and suffix, and produces the canonical ``core`` matching form
(house + direction + street, lowercase, single-spaced).

Rules:
    1. Lowercase; drop anything from ``apt`` or ``#`` onward; periods and
       commas become spaces; whitespace collapses.
    2. A leading token matching ``^\\d+[a-z]?$`` is the house number.
    3. The next token, if it is a direction word or abbreviation, is the
       direction (full words map to abbreviations).
    4. The last remaining token is the suffix; known abbreviations are
       expanded in place.

Unknown tokens pass through unchanged and empty input yields an
all-empty result.

Example:
    >>> from landledger.parcel_resolver.street_parser import parse_street
    >>> parse_street("200 N. Lake Shore Dr., Apt 4").core
    '200 n lake shore drive'
"""

from __future__ import annotations

import re
from typing import Any, Dict

from landledger.parcel_resolver.field_normalizer import strip_value
from landledger.parcel_resolver.models import ParsedStreet

__all__ = [
    "DIRECTION_MAP",
    "SUFFIX_MAP",
    "parse_street",
]


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

#: Street suffix abbreviation -> expanded form.
SUFFIX_MAP: Dict[str, str] = {
    "st": "street",
    "rd": "road",
    "ave": "avenue",
    "dr": "drive",
    "blvd": "boulevard",
    "ct": "court",
    "ln": "lane",
    "hwy": "highway",
}

#: Full direction word -> abbreviation.
DIRECTION_MAP: Dict[str, str] = {
    "north": "n",
    "south": "s",
    "east": "e",
    "west": "w",
    "northeast": "ne",
    "northwest": "nw",
    "southeast": "se",
    "southwest": "sw",
}

_DIRECTIONS = frozenset(DIRECTION_MAP.values())
_UNIT_TAIL = re.compile(r"\s+apt.*$|#.*$")
_SEPARATORS = re.compile(r"[.,]")
_WHITESPACE = re.compile(r"\s+")
_HOUSE_NUMBER = re.compile(r"^\d+[a-z]?$")

_EMPTY = ParsedStreet()


def _clean_line(line: Any) -> str:
    text = strip_value(line).lower()
    text = _UNIT_TAIL.sub("", text)
    text = _SEPARATORS.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def parse_street(line: Any) -> ParsedStreet:
    """Parse a street line into its components.

    Args:
        line: Free-text street line (``None`` and non-strings allowed).

    Returns:
        ParsedStreet with ``core``, ``house``, ``street``, ``street_name``,
        ``suffix`` and ``direction``; every field is lowercase.
    """
    text = _clean_line(line)
    if not text:
        return _EMPTY

    parts = text.split(" ")

    house = ""
    if _HOUSE_NUMBER.match(parts[0]):
        house = parts.pop(0)

    direction = ""
    if parts:
        candidate = DIRECTION_MAP.get(parts[0], parts[0])
        if candidate in _DIRECTIONS:
            direction = candidate
            parts.pop(0)

    suffix = ""
    if parts:
        suffix = SUFFIX_MAP.get(parts[-1], parts[-1])
        parts[-1] = suffix

    street = " ".join(parts)
    street_name = " ".join(parts[:-1]) if suffix else street
    core = " ".join(p for p in (house, direction, street) if p)

    return ParsedStreet(
        core=core,
        house=house,
        street=street,
        street_name=street_name or street,
        suffix=suffix,
        direction=direction,
    )
