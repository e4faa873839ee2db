"""
Pure domain layer.

Immutable value objects and records with NO dependencies on the ORM, the
database, the clock or I/O.
"""

from royalty_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from royalty_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from royalty_kernel.domain.dtos import ValidationError
from royalty_kernel.domain.records import (
    Artist,
    BreakdownEntry,
    ImportRun,
    ImportRunStatus,
    PaidStatus,
    QuarterlySummary,
    RoyaltyRecord,
    Track,
    TrackSummary,
    quarter_of,
)
from royalty_kernel.domain.values import Currency, Money, Percentage

__all__ = [
    "Artist",
    "BreakdownEntry",
    "Clock",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "ImportRun",
    "ImportRunStatus",
    "Money",
    "PaidStatus",
    "Percentage",
    "QuarterlySummary",
    "RoyaltyRecord",
    "SystemClock",
    "Track",
    "TrackSummary",
    "ValidationError",
    "quarter_of",
]
