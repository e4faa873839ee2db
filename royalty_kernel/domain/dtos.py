"""
Data Transfer Objects shared across the royalty packages.

Validation problems are values, not exceptions: a row that fails carries one
or more ValidationError instances through the pipeline into the failure
report.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message, optional field
        name, and optional details dict.

    Non-goals:
        - Does NOT raise -- it IS the error representation.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None

    def describe(self) -> str:
        """``CODE: message`` as written to the failure report."""
        return f"{self.code}: {self.message}"
