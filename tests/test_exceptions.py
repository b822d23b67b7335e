"""Tests for the LandLedger Exception Hierarchy.

Test suite covering:
- Base exception functionality
- DataException hierarchy
- Rich error context
- Exception serialization
"""

import json
from datetime import datetime

import pytest

from landledger.exceptions import (
    DataException,
    LandLedgerException,
    SpreadsheetDependencyError,
)


# ==============================================================================
# Base Exception Tests
# ==============================================================================

class TestLandLedgerException:
    """Tests for base LandLedgerException."""

    def test_create_basic_exception(self):
        """Can create basic exception with message."""
        exc = LandLedgerException("Something went wrong")

        assert exc.message == "Something went wrong"
        assert exc.error_code.startswith("LL_")
        assert exc.component is None
        assert exc.context == {}
        assert isinstance(exc.timestamp, datetime)

    def test_create_exception_with_context(self):
        exc = LandLedgerException(
            message="Test error",
            error_code="LL_TEST_001",
            component="readers",
            context={"key": "value", "count": 42},
        )

        assert exc.error_code == "LL_TEST_001"
        assert exc.component == "readers"
        assert exc.context == {"key": "value", "count": 42}

    def test_exception_str_representation(self):
        exc = LandLedgerException("Boom", error_code="LL_X", component="readers")
        assert str(exc) == "[LL_X] - Component: readers - Boom"

    def test_exception_to_dict(self):
        exc = LandLedgerException("Boom", component="readers", context={"a": 1})
        data = exc.to_dict()

        assert data["error_type"] == "LandLedgerException"
        assert data["message"] == "Boom"
        assert data["component"] == "readers"
        assert data["context"] == {"a": 1}
        assert "timestamp" in data

    def test_exception_to_json(self):
        exc = LandLedgerException("Boom", context={"when": datetime(2026, 1, 1)})
        data = json.loads(exc.to_json())
        assert data["context"]["when"].startswith("2026-01-01")

    def test_auto_generated_error_code(self):
        assert LandLedgerException("x").error_code == "LL_LAND_LEDGER_EXCEPTION"


# ==============================================================================
# Data Exception Tests
# ==============================================================================

class TestDataExceptions:
    """Tests for data-layer exceptions."""

    def test_data_exception_prefix(self):
        assert DataException("x").error_code == "LL_DATA_DATA_EXCEPTION"

    def test_spreadsheet_dependency_error(self):
        exc = SpreadsheetDependencyError(
            message="openpyxl is required to parse XLSX files",
            dependency="openpyxl",
            component="readers",
            context={"source_label": "xlsx"},
        )

        assert exc.error_code == "LL_DATA_SPREADSHEET_DEPENDENCY_ERROR"
        assert exc.context == {"source_label": "xlsx", "dependency": "openpyxl"}
        assert exc.component == "readers"

    def test_dependency_without_context(self):
        exc = SpreadsheetDependencyError("missing", dependency="openpyxl")
        assert exc.context == {"dependency": "openpyxl"}

    def test_caller_context_not_mutated(self):
        context = {"source_label": "xlsx"}
        exc = SpreadsheetDependencyError("missing", dependency="openpyxl", context=context)
        assert context == {"source_label": "xlsx"}
        assert exc.context is not context
        assert exc.context["dependency"] == "openpyxl"

    def test_inheritance_chain(self):
        with pytest.raises(LandLedgerException):
            raise SpreadsheetDependencyError("missing")
        assert issubclass(SpreadsheetDependencyError, DataException)
        assert issubclass(DataException, Exception)
