"""
Records -- Immutable input facts consumed by the split engines.

Responsibility:
    Typed shapes of the three snapshots the accounting subsystem hands to
    the engines: effective-dated split configuration, invoice/payment
    ledger facts and partner bill/payment rows.

Architecture position:
    Kernel > Domain -- pure data, zero I/O. Built by
    revsplit_ingestion.mapping at the data-access boundary.

Invariants enforced:
    - SplitRecord percentages are Percentage values (fractions in [0, 1]).
    - Every field holds the type it is declared with; construction raises
      TypeError otherwise.  ``shape_problem()`` re-checks an instance, so
      engines can flag a record that bypassed construction instead of
      failing mid-batch.
    - Records are frozen; a split correction is a new record with its own
      effective_date, never an edit.
    - Derived compensation figures are never stored on a LedgerEntry.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar

from revsplit_kernel.domain.values import Money, Percentage


class RevenueCategory(str, Enum):
    """Revenue stream an invoice belongs to; selects the split percentage."""

    ADS = "ads"
    PROGRAMMATIC = "programmatic"


# (field, predicate, expected type label, None allowed)
_FieldCheck = tuple[str, Callable[[Any], bool], str, bool]


def _is_text(value: Any) -> bool:
    return isinstance(value, str)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_date(value: Any) -> bool:
    # datetime is a date subclass but does not compare with plain dates.
    return isinstance(value, date) and not isinstance(value, datetime)


def _is_money(value: Any) -> bool:
    return isinstance(value, Money)


def _is_percentage(value: Any) -> bool:
    return isinstance(value, Percentage)


def _is_category(value: Any) -> bool:
    return isinstance(value, RevenueCategory)


class _Shaped:
    """Field type checks shared by the record classes."""

    __slots__ = ()

    _CHECKS: ClassVar[tuple[_FieldCheck, ...]] = ()

    def shape_problem(self) -> str | None:
        """First field whose value has the wrong type, described; None if sound."""
        for name, accepts, label, optional in self._CHECKS:
            value = getattr(self, name, None)
            if value is None and optional:
                continue
            if not accepts(value):
                expected = f"{label} or None" if optional else label
                return f"{name} must be {expected}, got {type(value).__name__}"
        return None

    def __post_init__(self) -> None:
        problem = self.shape_problem()
        if problem is not None:
            raise TypeError(f"{type(self).__name__}: {problem}")


@dataclass(frozen=True, slots=True)
class SplitRecord(_Shaped):
    """
    One effective-dated split configuration for a (show, vendor) pair.

    ``partner_pct_*`` is the partner's share of collected revenue; the
    network (evergreen) keeps the complement.
    """

    _CHECKS: ClassVar[tuple[_FieldCheck, ...]] = (
        ("id", _is_int, "int", False),
        ("show_id", _is_text, "str", False),
        ("vendor_id", _is_text, "str", False),
        ("partner_pct_ads", _is_percentage, "Percentage", False),
        ("partner_pct_programmatic", _is_percentage, "Percentage", False),
        ("effective_date", _is_date, "date", False),
    )

    id: int
    show_id: str
    vendor_id: str
    partner_pct_ads: Percentage
    partner_pct_programmatic: Percentage
    effective_date: date

    @property
    def pair(self) -> tuple[str, str]:
        return (self.show_id, self.vendor_id)

    def partner_pct(self, category: RevenueCategory) -> Percentage:
        """Partner share applicable to the given revenue category."""
        if category is RevenueCategory.ADS:
            return self.partner_pct_ads
        if category is RevenueCategory.PROGRAMMATIC:
            return self.partner_pct_programmatic
        raise ValueError(f"Unknown revenue category: {category!r}")


@dataclass(frozen=True, slots=True)
class LedgerEntry(_Shaped):
    """
    One billed-and-collected revenue event for a show.

    ``effective_payment_received`` is None while the payment is not yet
    known; that is distinct from a zero payment.
    """

    _CHECKS: ClassVar[tuple[_FieldCheck, ...]] = (
        ("entry_id", _is_text, "str", False),
        ("show_id", _is_text, "str", False),
        ("vendor_id", _is_text, "str", False),
        ("invoice_date", _is_date, "date", False),
        ("invoice_amount", _is_money, "Money", False),
        ("effective_payment_received", _is_money, "Money", True),
        ("category", _is_category, "RevenueCategory", False),
    )

    entry_id: str
    show_id: str
    vendor_id: str
    customer: str
    invoice_date: date
    invoice_amount: Money
    effective_payment_received: Money | None
    category: RevenueCategory = RevenueCategory.ADS
    invoice_description: str = ""

    @property
    def is_payment_known(self) -> bool:
        return self.effective_payment_received is not None


@dataclass(frozen=True, slots=True)
class PartnerPayout(_Shaped):
    """
    One partner bill line, optionally settled by a payment.

    Several rows may carry the same ``payment_id`` when one payment settles
    several bills; ``payment_id`` None is an unpaid bill.
    """

    _CHECKS: ClassVar[tuple[_FieldCheck, ...]] = (
        ("bill_number", _is_text, "str", False),
        ("bill_date", _is_date, "date", False),
        ("partner_id", _is_text, "str", False),
        ("show_id", _is_text, "str", False),
        ("bill_amount", _is_money, "Money", True),
        ("payment_id", _is_text, "str", True),
        ("date_of_payment", _is_date, "date", True),
        ("effective_billed_amount_paid", _is_money, "Money", True),
    )

    bill_number: str
    bill_date: date
    partner_id: str
    show_id: str
    bill_amount: Money | None
    payment_id: str | None = None
    date_of_payment: date | None = None
    effective_billed_amount_paid: Money | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_id is not None
