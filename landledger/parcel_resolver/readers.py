# -*- coding: utf-8 -*-
"""
Spreadsheet Readers - Parcel Resolver

Turns CSV text and XLSX workbooks into prepared canonical records by
feeding every data row through the RowMapper.

    - CSV: first row is the header row, blank lines are skipped.
    - XLSX: reads the first sheet whose name matches
      ``lead|property|sheet1`` (case-insensitive), else the first sheet.
      Empty cells become ``""``; columns with no header are dropped.

XLSX support requires openpyxl. When it is not installed,
``parse_xlsx_to_canonical`` raises SpreadsheetDependencyError.

Example:
    >>> from landledger.parcel_resolver.readers import parse_csv_to_canonical
    >>> records = parse_csv_to_canonical("APN,County\\n12-34,Dane\\n")
    >>> records[0].match_keys.k_apn
    'apn:1234|c:dane'
"""

from __future__ import annotations

import csv
import io
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from landledger.exceptions import SpreadsheetDependencyError
from landledger.parcel_resolver.models import CanonicalRecord
from landledger.parcel_resolver.row_mapper import RowMapper, map_row_to_canonical

logger = logging.getLogger(__name__)

__all__ = [
    "SHEET_NAME_PATTERN",
    "parse_csv_to_canonical",
    "parse_xlsx_to_canonical",
]

# ---------------------------------------------------------------------------
# Optional dependency detection
# ---------------------------------------------------------------------------

_OPENPYXL_AVAILABLE = False
try:
    import openpyxl  # noqa: F401
    _OPENPYXL_AVAILABLE = True
except ImportError:
    pass

#: Preferred worksheet names, in workbook order.
SHEET_NAME_PATTERN = re.compile(r"lead|property|sheet1", re.IGNORECASE)


def _is_blank_row(cells: Sequence[Any]) -> bool:
    return all(cell is None or str(cell).strip() == "" for cell in cells)


def _rows_to_dicts(
    header: Sequence[Any],
    rows: Sequence[Sequence[Any]],
) -> List[Dict[str, Any]]:
    """Zip data rows with the header row; missing and empty cells become ``""``."""
    names = ["" if h is None else str(h).strip() for h in header]
    out: List[Dict[str, Any]] = []
    for cells in rows:
        if _is_blank_row(cells):
            continue
        row: Dict[str, Any] = {}
        for pos, name in enumerate(names):
            if not name:
                continue
            value = cells[pos] if pos < len(cells) else None
            row[name] = "" if value is None else value
        out.append(row)
    return out


def _map_all(
    rows: List[Dict[str, Any]],
    source_label: str,
    mapper: Optional[RowMapper],
) -> List[CanonicalRecord]:
    if mapper is not None:
        return mapper.map_rows(rows, source_label)
    return [map_row_to_canonical(row, source_label) for row in rows]


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def parse_csv_to_canonical(
    text: str,
    source_label: str = "csv",
    mapper: Optional[RowMapper] = None,
) -> List[CanonicalRecord]:
    """Parse CSV text into prepared canonical records.

    Args:
        text: Full CSV document; quoted fields are honored.
        source_label: Provenance source label for every row.
        mapper: Optional RowMapper (a shared default is used otherwise).

    Returns:
        One CanonicalRecord per non-blank data row, in file order.

    Raises:
        TypeError: If ``text`` is not a string.
    """
    if not isinstance(text, str):
        raise TypeError(f"CSV text must be str, got {type(text).__name__}")

    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    all_rows = [row for row in reader if not _is_blank_row(row)]
    if not all_rows:
        return []

    rows = _rows_to_dicts(all_rows[0], all_rows[1:])
    records = _map_all(rows, source_label, mapper)
    logger.info("Parsed %d CSV rows (source=%s)", len(records), source_label)
    return records


# ---------------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------------


def _select_sheet_name(sheet_names: Sequence[str]) -> str:
    for name in sheet_names:
        if SHEET_NAME_PATTERN.search(name):
            return name
    return sheet_names[0]


def parse_xlsx_to_canonical(
    content: bytes,
    source_label: str = "xlsx",
    mapper: Optional[RowMapper] = None,
) -> List[CanonicalRecord]:
    """Parse an XLSX workbook into prepared canonical records.

    Args:
        content: Raw ``.xlsx`` file bytes.
        source_label: Provenance source label for every row.
        mapper: Optional RowMapper (a shared default is used otherwise).

    Returns:
        One CanonicalRecord per non-blank data row of the selected sheet.

    Raises:
        SpreadsheetDependencyError: If openpyxl is not installed.
    """
    if not _OPENPYXL_AVAILABLE:
        raise SpreadsheetDependencyError(
            message="openpyxl is required to parse XLSX files",
            dependency="openpyxl",
            component="readers",
            context={"source_label": source_label},
        )

    import openpyxl

    wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        if not wb.sheetnames:
            return []
        sheet_name = _select_sheet_name(wb.sheetnames)
        ws = wb[sheet_name]
        all_rows = [
            list(row) for row in ws.iter_rows(values_only=True)
            if not _is_blank_row(row)
        ]
    finally:
        wb.close()

    if not all_rows:
        return []

    rows = _rows_to_dicts(all_rows[0], all_rows[1:])
    records = _map_all(rows, source_label, mapper)
    logger.info(
        "Parsed %d XLSX rows from sheet %r (source=%s)",
        len(records), sheet_name, source_label,
    )
    return records
