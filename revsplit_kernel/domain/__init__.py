"""Domain layer for the revenue split kernel: pure value objects and records."""

from revsplit_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from revsplit_kernel.domain.dtos import FlaggedItem
from revsplit_kernel.domain.records import (
    LedgerEntry,
    PartnerPayout,
    RevenueCategory,
    SplitRecord,
)
from revsplit_kernel.domain.values import Currency, Money, Percentage

__all__ = [
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "FlaggedItem",
    "LedgerEntry",
    "Money",
    "PartnerPayout",
    "Percentage",
    "RevenueCategory",
    "SplitRecord",
]
