# -*- coding: utf-8 -*-
"""
Test suite for the parcel resolver field normalizer.

Covers APN, county, owner, ZIP, phone, email, state and city transforms,
flag and number parsing, and header normalization.
"""

import math

import pytest

from landledger.parcel_resolver.field_normalizer import (
    clean_zip,
    dedupe_normalized,
    normalize_apn,
    normalize_city,
    normalize_county,
    normalize_email,
    normalize_header_key,
    normalize_owner,
    normalize_phone,
    normalize_state,
    normalize_zip,
    parse_flag,
    parse_number,
    strip_value,
    title_case,
)


class TestStripValue:
    """Test scalar rendering."""

    def test_none_is_empty(self):
        assert strip_value(None) == ""

    def test_integral_float_drops_decimal(self):
        """Spreadsheet readers hand back ZIPs as floats."""
        assert strip_value(53703.0) == "53703"

    def test_non_finite_float_is_empty(self):
        assert strip_value(float("nan")) == ""

    def test_trims_text(self):
        assert strip_value("  Dane  ") == "Dane"


class TestApnNormalization:
    """Test APN normalization."""

    def test_punctuation_variants_collapse(self):
        assert normalize_apn("0812-345-6789") == normalize_apn("08123456789")

    def test_uppercases(self):
        assert normalize_apn(" ab-12.c ") == "AB12C"

    @pytest.mark.parametrize("value", ["12-34 a", "X.Y/Z", "", None, 123])
    def test_idempotent(self, value):
        once = normalize_apn(value)
        assert normalize_apn(once) == once


class TestCountyNormalization:
    """Test county normalization."""

    def test_strips_trailing_county(self):
        assert normalize_county("Dane County") == "dane"

    def test_plain_name(self):
        assert normalize_county("  CLARK ") == "clark"

    def test_county_inside_name_kept(self):
        assert normalize_county("County Line") == "county line"

    @pytest.mark.parametrize("value", ["Dane County", "x county county", "Bay", ""])
    def test_idempotent(self, value):
        once = normalize_county(value)
        assert normalize_county(once) == once


class TestOwnerNormalization:
    """Test owner normalization."""

    def test_strips_punctuation_and_whitespace(self):
        assert normalize_owner("  Smith,  John   Q. ") == "smith john q"

    @pytest.mark.parametrize("value", ["River Bend, L.L.C.", "A  B", None])
    def test_idempotent(self, value):
        once = normalize_owner(value)
        assert normalize_owner(once) == once


class TestZipNormalization:
    """Test matching and stored ZIP forms."""

    def test_matching_form_is_five_digits(self):
        assert normalize_zip("98642-1234") == "98642"

    def test_stored_form_keeps_plus_four(self):
        assert clean_zip("98642-1234") == "986421234"

    def test_stored_form_capped_at_ten(self):
        assert clean_zip("123456789012") == "1234567890"

    def test_float_zip(self):
        assert normalize_zip(2134.0) == "2134"


class TestContactNormalization:
    """Test phone and email normalization."""

    def test_phone_digits_only(self):
        assert normalize_phone("(555) 123-4567") == "5551234567"

    def test_phone_drops_leading_country_code(self):
        assert normalize_phone("1-555-222-3333") == "5552223333"

    def test_phone_keeps_other_lengths(self):
        assert normalize_phone("123") == "123"
        assert normalize_phone("25552223333") == "25552223333"

    def test_email_lowercased_without_whitespace(self):
        assert normalize_email(" Jane@Example.com ") == "jane@example.com"

    def test_state_and_city(self):
        assert normalize_state(" wa ") == "WA"
        assert normalize_city("  New   York ") == "new york"


class TestFlagAndNumberParsing:
    """Test flag and tolerant number parsing."""

    @pytest.mark.parametrize("value", ["1", "true", "YES", "y", "T", True])
    def test_truthy_flags(self, value):
        assert parse_flag(value) is True

    @pytest.mark.parametrize("value", ["0", "no", "", None, "maybe", False])
    def test_falsy_flags(self, value):
        assert parse_flag(value) is False

    def test_currency_and_commas(self):
        assert parse_number("$250,000") == 250000.0

    def test_whitespace(self):
        assert parse_number(" 10.5 ") == 10.5

    def test_negative(self):
        assert parse_number("-122.9876") == -122.9876

    @pytest.mark.parametrize("value", ["", None, "n/a", "-", "1.2.3", True])
    def test_unparseable_is_none(self, value):
        assert parse_number(value) is None

    def test_non_finite_is_none(self):
        assert parse_number(float("inf")) is None
        assert parse_number(float("nan")) is None

    def test_numeric_passthrough(self):
        assert parse_number(3) == 3.0
        assert not math.isnan(parse_number(0.0))


class TestHelpers:
    """Test header normalization and small helpers."""

    def test_header_key(self):
        assert normalize_header_key("Owner 1 Full Name") == "owner1fullname"
        assert normalize_header_key("Assessor Parcel Number (APN)") == "assessorparcelnumberapn"

    def test_title_case(self):
        assert title_case("lake SHORE drive") == "Lake Shore Drive"
        assert title_case(None) == ""

    def test_dedupe_keeps_first_seen_order(self):
        assert dedupe_normalized(["b", "", "a", "b", "a"]) == ["b", "a"]
