"""
revsplit_engines.ledger_store -- Read-only views over ledger and payout snapshots.

Responsibility:
    Hold an immutable collection of LedgerEntry facts and select subsets of
    it by show and invoice date.  Also filters PartnerPayout rows the way
    the payouts view does: a row belongs to a date range when its bill date
    or its payment date falls inside it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - The store never derives or stores compensation figures; it only holds
      the facts it was constructed with.
    - Selections preserve input order.
    - Date ranges are inclusive on both ends; an open end (None) is unbounded.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from datetime import date

from revsplit_kernel.domain.records import LedgerEntry, PartnerPayout
from revsplit_kernel.logging_config import get_logger

logger = get_logger("engines.ledger_store")


def _in_range(value: date | None, date_from: date | None, date_to: date | None) -> bool:
    if value is None:
        return False
    if date_from is not None and value < date_from:
        return False
    if date_to is not None and value > date_to:
        return False
    return True


def _check_range(date_from: date | None, date_to: date | None) -> None:
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValueError(
            f"date_from {date_from.isoformat()} is after date_to {date_to.isoformat()}"
        )


class LedgerStore:
    """
    Immutable snapshot of ledger entries.

    Contract:
        Accepts any iterable of LedgerEntry; duplicate entry ids are
        rejected because entries are identified by id in flagged results.
    Guarantees:
        - ``entries`` is a tuple in construction order.
        - Every selection returns a new LedgerStore.
    """

    def __init__(self, entries: Iterable[LedgerEntry] = ()) -> None:
        entries = tuple(entries)
        seen: set[str] = set()
        for entry in entries:
            if not isinstance(entry, LedgerEntry):
                raise TypeError(f"expected LedgerEntry, got {type(entry).__name__}")
            if entry.entry_id in seen:
                raise ValueError(f"duplicate ledger entry id: {entry.entry_id!r}")
            seen.add(entry.entry_id)
        self._entries = entries

    @property
    def entries(self) -> tuple[LedgerEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(self._entries)

    def shows(self) -> tuple[str, ...]:
        """Distinct show ids, sorted."""
        return tuple(sorted({e.show_id for e in self._entries}))

    def for_show(self, show_id: str) -> LedgerStore:
        return LedgerStore(e for e in self._entries if e.show_id == show_id)

    def between(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> LedgerStore:
        """Entries whose invoice_date lies in the inclusive range."""
        _check_range(date_from, date_to)
        return LedgerStore(
            e for e in self._entries if _in_range(e.invoice_date, date_from, date_to)
        )

    def get(self, entry_id: str) -> LedgerEntry | None:
        for entry in self._entries:
            if entry.entry_id == entry_id:
                return entry
        return None


def select_payouts(
    payouts: Sequence[PartnerPayout],
    show_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> tuple[PartnerPayout, ...]:
    """
    Filter payout rows by show and date range.

    A row matches the range when either its bill_date or its
    date_of_payment falls inside it.  With no bounds every row of the show
    is kept.
    """
    _check_range(date_from, date_to)
    bounded = date_from is not None or date_to is not None

    selected = []
    for payout in payouts:
        if show_id is not None and payout.show_id != show_id:
            continue
        if bounded and not (
            _in_range(payout.bill_date, date_from, date_to)
            or _in_range(payout.date_of_payment, date_from, date_to)
        ):
            continue
        selected.append(payout)

    logger.debug("payouts_selected", extra={
        "show_id": show_id,
        "date_from": date_from,
        "date_to": date_to,
        "input_count": len(payouts),
        "selected_count": len(selected),
    })
    return tuple(selected)
