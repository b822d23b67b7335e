# -*- coding: utf-8 -*-
"""
Test suite for the parcel resolver row mapper.

Tests header alias resolution, value normalization, street sub-field
backfilling, contact collection and provenance snapshots.
"""

import pytest

from landledger.parcel_resolver.config import ParcelResolverConfig, set_config
from landledger.parcel_resolver.key_builder import record_key
from landledger.parcel_resolver.row_mapper import (
    HEADER_ALIASES,
    RowMapper,
    build_header_index,
    map_row_to_canonical,
)


@pytest.fixture
def mapper(frozen_now):
    return RowMapper(source_label="csv", now=frozen_now)


class TestHeaderIndex:
    """Test alias index construction."""

    def test_every_alias_resolves(self, mapper):
        for canonical, aliases in HEADER_ALIASES.items():
            for alias in aliases:
                assert mapper.resolve_header(alias) == canonical

    def test_index_keys_are_normalized(self):
        index = build_header_index({"owner": ["Owner 1 Full Name", "  "]})
        assert index == {"owner1fullname": "owner"}

    @pytest.mark.parametrize("header,expected", [
        ("Owner 1 Full Name", "owner"),
        ("PARCEL-ID", "apn"),
        ("ST", "state"),
        ("Est. Value", "est_value"),
        ("Do-Not-Call", "dnc"),
        ("Favorite Color", None),
    ])
    def test_resolve_header(self, mapper, header, expected):
        assert mapper.resolve_header(header) == expected


class TestMapRow:
    """Test mapping a single row."""

    def test_header_variants_and_values(self, mapper):
        row = {
            "Owner 1 Full Name": "Jane Example",
            "Parcel Number": " 123-456-789 ",
            "Property Address": "101 Elm St",
            "City": "Ridgefield",
            "ST": "wa",
            "Situs Zip": "98642-1234",
            "Phone 1": "(555) 123-4567",
            "Alternate Phone": "1-555-222-3333",
            "Email 1": "Jane@Example.com ",
            "Alternate Email": "Seller@Example.com",
            "County": "Clark",
            "Acreage": " 10.5 ",
            "Estimated Market Value": "$250,000",
            "Latitude": "45.1234",
            "Longitude": "-122.9876",
            "DNC": "yes",
        }
        record = mapper.map_row(row)

        assert record.owner == "Jane Example"
        assert record.apn == "123-456-789"
        assert record.address.line1 == "101 Elm St"
        assert record.address.city == "Ridgefield"
        assert record.address.state == "WA"
        assert record.address.zip == "986421234"
        assert record.phones == ["5551234567", "5552223333"]
        assert record.emails == ["jane@example.com", "seller@example.com"]
        assert record.county == "Clark"
        assert record.acreage == 10.5
        assert record.est_value == 250000.0
        assert record.lat == 45.1234
        assert record.lng == -122.9876
        assert record.dnc is True
        assert record.source == "csv"

    def test_street_subfields_backfilled_from_line(self, mapper):
        record = mapper.map_row({"Site Address": "200 N Lake Shore Dr"})
        assert record.address.street_number == "200"
        assert record.address.street_dir == "N"
        assert record.address.street_suffix == "Drive"
        assert record.address.street_name == "lake shore"

    def test_row_supplied_subfields_win(self, mapper):
        record = mapper.map_row({
            "Site Address": "200 N Lake Shore Dr",
            "Street Number": "200A",
            "Street Suffix": "blvd",
        })
        assert record.address.street_number == "200A"
        assert record.address.street_suffix == "Blvd"
        assert record.address.street_dir == "N"

    def test_line_synthesized_from_subfields(self, mapper):
        record = mapper.map_row({
            "Street Number": "789",
            "Street Name": "Pine",
            "Street Suffix": "Rd",
            "City": "Everett",
            "State": "WA",
            "Zip": "98201",
        })
        assert record.address.line1 == "789 Pine Rd"
        assert record.normalized.street_core == "789 pine road"

    def test_owner_from_first_and_last(self, mapper):
        record = mapper.map_row({"First Name": "Ada", "Last Name": "Lovelace"})
        assert record.owner == "Ada Lovelace"

    def test_owner_from_last_name_only(self, mapper):
        record = mapper.map_row({"Last Name": "Lovelace"})
        assert record.owner == "Lovelace"

    def test_full_name_preferred_over_parts(self, mapper):
        record = mapper.map_row({
            "Owner": "Lovelace Trust", "First Name": "Ada", "Last Name": "Lovelace",
        })
        assert record.owner == "Lovelace Trust"

    def test_first_non_empty_scalar_wins(self, mapper):
        record = mapper.map_row({"City": "", "Situs City": "Madison", "Site City": "Other"})
        assert record.address.city == "Madison"

    def test_phone_list_values_flattened_and_deduped(self, mapper):
        record = mapper.map_row({
            "Phone": ["555-123-4567", "(555) 999-8888"],
            "Phone 2": "5551234567",
            "Phone 3": "",
        })
        assert record.phones == ["5551234567", "5559998888"]

    def test_malformed_numbers_become_none(self, mapper):
        record = mapper.map_row({"Acreage": "n/a", "Latitude": "north", "Longitude": ""})
        assert record.acreage is None
        assert record.lat is None
        assert record.lng is None

    def test_float_cells_from_spreadsheets(self, mapper):
        record = mapper.map_row({"Zip": 53703.0, "Phone": 5551234567.0})
        assert record.address.zip == "53703"
        assert record.phones == ["5551234567"]

    def test_provenance_snapshot_keeps_unmapped_headers(self, mapper, frozen_now):
        row = {"APN": "1-2", "County": "Dane", "Favorite Color": "green"}
        record = mapper.map_row(row, "xlsx")
        assert len(record.provenance) == 1
        entry = record.provenance[0]
        assert entry.source == "xlsx"
        assert entry.imported_at == frozen_now()
        assert entry.raw_snapshot == row

    def test_result_is_prepared(self, mapper):
        record = mapper.map_row({"APN": "1-2", "County": "Dane County"})
        assert record.normalized is not None
        assert record.match_keys.k_apn == "apn:12|c:dane"

    def test_empty_and_none_rows(self, mapper):
        for row in ({}, None):
            record = mapper.map_row(row)
            assert not record.match_keys.any()

    def test_non_mapping_row_rejected(self, mapper):
        with pytest.raises(TypeError):
            mapper.map_row(["APN", "1-2"])
        assert mapper.get_statistics()["failures"] == 1


class TestRecordKeyAcrossExports:
    """Equivalent rows exported with different headers share a key."""

    def test_apn_key_matches(self, river_bend_csv_row, river_bend_xlsx_row):
        csv_record = map_row_to_canonical(river_bend_csv_row, "csv")
        xlsx_record = map_row_to_canonical(river_bend_xlsx_row, "xlsx")
        assert record_key(csv_record) == "apn:08123456789|c:dane"
        assert record_key(csv_record) == record_key(xlsx_record)

    def test_owner_address_fallback_matches(self):
        a = map_row_to_canonical({
            "Owner": "No APN Holdings", "Address": "789 Pine Rd",
            "City": "Everett", "State": "WA",
        })
        b = map_row_to_canonical({
            "Owner Name": "No APN Holdings", "Site Address": "789 Pine Road",
            "Situs City": "everett", "Situs State": "wa",
        })
        assert record_key(a).startswith("o:")
        assert record_key(a) == record_key(b)


class TestMapperConfiguration:
    """Test source label defaults and statistics."""

    def test_default_source_label_from_config(self):
        set_config(ParcelResolverConfig(default_source_label="county-export"))
        record = RowMapper().map_row({"APN": "1"})
        assert record.source == "county-export"

    def test_map_rows_and_statistics(self, mapper):
        records = mapper.map_rows([{"APN": "1", "Color": "red"}, {"APN": "2"}])
        assert len(records) == 2
        stats = mapper.get_statistics()
        assert stats["invocations"] == 2
        assert stats["successes"] == 2
        assert stats["unmapped_headers"] == 1
        mapper.reset_statistics()
        assert mapper.get_statistics()["invocations"] == 0
