"""LandLedger Custom Exception Hierarchy.

Expected data-quality problems (unusable rows, ambiguous matches) are never
raised; they are reported as classified outcomes in a batch result. The
exceptions below cover the remaining failures of the surrounding system.

Exception Hierarchy:
    LandLedgerException (base)
    └── DataException
        └── SpreadsheetDependencyError

All exceptions include rich context:
- error_code: Unique error identifier
- component: Name of the component that raised the error
- context: Dictionary with error-specific details
- timestamp: When the error occurred

Example:
    >>> from landledger.exceptions import SpreadsheetDependencyError
    >>> raise SpreadsheetDependencyError(
    ...     message="openpyxl is required to parse XLSX files",
    ...     component="readers",
    ...     context={"source_label": "xlsx"},
    ... )
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class LandLedgerException(Exception):
    """Base exception for all LandLedger errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "LL_DATA_SPREADSHEET_DEPENDENCY_ERROR")
        component: Name of the component that raised the error (optional)
        context: Dictionary with error-specific details
        timestamp: When the error occurred
    """

    ERROR_PREFIX = "LL"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        component: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize LandLedger exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            component: Name of the component that raised the error
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.component = component
        self.context = context or {}
        self.timestamp = datetime.now()

    def _generate_error_code(self) -> str:
        """Generate an error code from the exception class name.

        Returns:
            Error code like "LL_DATA_SPREADSHEET_DEPENDENCY_ERROR"
        """
        error_type = re.sub(r"(?<!^)(?=[A-Z])", "_", self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "component": self.component,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        """String representation with error code and message."""
        parts = [f"[{self.error_code}]"]
        if self.component:
            parts.append(f"Component: {self.component}")
        parts.append(self.message)
        return " - ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"component='{self.component}')"
        )


# ==============================================================================
# Data Exceptions
# ==============================================================================

class DataException(LandLedgerException):
    """Base exception for data access errors."""
    ERROR_PREFIX = "LL_DATA"


class SpreadsheetDependencyError(DataException):
    """A spreadsheet decoding library is not installed.

    Fatal and not retried: the caller must install the dependency.

    Example:
        >>> raise SpreadsheetDependencyError(
        ...     message="openpyxl is required to parse XLSX files",
        ...     dependency="openpyxl",
        ... )
    """

    def __init__(
        self,
        message: str,
        dependency: Optional[str] = None,
        component: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if dependency:
            context = dict(context or {})
            context["dependency"] = dependency
        super().__init__(message, component=component, context=context)


__all__ = [
    "LandLedgerException",
    "DataException",
    "SpreadsheetDependencyError",
]
