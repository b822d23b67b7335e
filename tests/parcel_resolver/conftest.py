# -*- coding: utf-8 -*-
"""Shared fixtures for parcel resolver tests."""

from datetime import datetime, timezone

import pytest

from landledger.parcel_resolver.config import ParcelResolverConfig, reset_config, set_config
from landledger.parcel_resolver.models import MergeOptions
from landledger.parcel_resolver.service import reset_parcel_resolver


FROZEN_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Give every test a fresh default config and no service singleton."""
    for name in (
        "AUTO_MERGE_WITHOUT_APN", "PREVENT_CROSS_ZIP", "DEFAULT_SOURCE_LABEL",
        "MAX_RECORDS_PER_BATCH", "LOG_LEVEL", "ENABLE_METRICS",
    ):
        monkeypatch.delenv(f"LL_PR_{name}", raising=False)
    reset_config()
    set_config(ParcelResolverConfig(enable_metrics=False))
    reset_parcel_resolver()
    yield
    reset_config()
    reset_parcel_resolver()


@pytest.fixture
def frozen_now():
    """Deterministic clock for provenance timestamps."""
    return lambda: FROZEN_NOW


@pytest.fixture
def options(frozen_now):
    """Default merge options with a frozen clock."""
    return MergeOptions(now=frozen_now)


@pytest.fixture
def harbor_address():
    return {
        "line1": "123 Main St",
        "city": "Springfield",
        "state": "IL",
        "zip": "62704",
    }


@pytest.fixture
def harbor_record(harbor_address):
    """Canonical-shaped existing record with APN, address and contacts."""
    return {
        "id": "existing-1",
        "owner": "Harbor Estates",
        "address": dict(harbor_address),
        "county": "Bay",
        "apn": "555-111",
        "phones": ["5551234567"],
        "emails": ["seller@harbor.com"],
        "dnc": False,
        "notes": ["Existing note"],
        "history": [{"id": "h1", "type": "Note", "note": "Old history"}],
    }


@pytest.fixture
def river_bend_csv_row():
    return {
        "Owner Name": "River Bend LLC",
        "Site Address": "200 Lake Shore Dr",
        "City": "Madison",
        "State": "WI",
        "Zip": "53703",
        "County": "Dane",
        "Parcel Number": "0812-345-6789",
    }


@pytest.fixture
def river_bend_xlsx_row():
    return {
        "Owner": "River Bend LLC",
        "Property Address": "200 Lake Shore Dr",
        "Situs City": "Madison",
        "Situs State": "WI",
        "Situs Zip": "53703",
        "County Name": "Dane County",
        "Parcel ID": "08123456789",
    }
