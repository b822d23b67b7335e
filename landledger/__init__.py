"""
LandLedger: property and owner record consolidation
====================================================

LandLedger turns heterogeneous parcel spreadsheets into one deduplicated,
conflict-aware canonical record set. The resolution engine lives in
``landledger.parcel_resolver``.
"""

from ._version import __version__

__author__ = "LandLedger Team"
__license__ = "MIT"

__all__ = ["__version__"]
