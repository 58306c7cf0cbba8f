"""
revsplit_engines.compensation -- Per-invoice evergreen/partner split.

Responsibility:
    Combine one LedgerEntry with the SplitRecord effective on its invoice
    date and produce the network (evergreen) share, the partner share and
    the outstanding balance.  ``compute_batch`` does this for a whole
    ledger, resolving splits from a SplitHistory snapshot.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Percentages apply to the received amount, never the invoice amount.
    - evergreen + partner == received exactly; evergreen is derived as the
      remainder so no cent is created or lost.
    - An unknown payment (None) yields unknown compensation (None), never
      zero.
    - A missing split is never guessed.  It is flagged unless the caller
      passes an explicit FallbackPolicy, and a fallback is recorded on the
      result.
    - compute_batch output order equals input order for any max_workers.

Failure modes:
    - compute: ValueError when the split belongs to another (show, vendor)
      pair or the entry mixes currencies.
    - compute_batch: never raises for data gaps; NO_APPLICABLE_SPLIT,
      UNKNOWN_PAYMENT and MALFORMED_RECORD come back as FlaggedItems.

Usage:
    calculator = CompensationCalculator()
    batch = calculator.compute_batch(entries, history)
    for comp in batch.computed:
        print(comp.entry_id, comp.evergreen_compensation)
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from itertools import repeat

from revsplit_engines.split_history import SplitHistory
from revsplit_engines.tracer import traced_engine
from revsplit_kernel.domain.dtos import FlaggedItem
from revsplit_kernel.domain.records import LedgerEntry, RevenueCategory, SplitRecord
from revsplit_kernel.domain.values import Money, Percentage
from revsplit_kernel.exceptions import (
    MalformedRecordError,
    NoApplicableSplitError,
    UnknownPaymentError,
)
from revsplit_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.compensation")


class FallbackPolicy(str, Enum):
    """Explicit caller choice for entries with no applicable split."""

    # Whole received amount stays with the network; partner share is zero.
    ALL_EVERGREEN = "all_evergreen"


@dataclass(frozen=True)
class Compensation:
    """
    Derived split of one ledger entry.

    Contract:
        Frozen dataclass. Monetary fields are exact (unrounded) Money;
        call ``Money.round`` at the presentation boundary.
    Guarantees:
        - received is None  <=>  evergreen, partner and outstanding are None.
        - Otherwise evergreen_compensation + partner_compensation == received.
    Non-goals:
        - Not stored on the LedgerEntry; recomputed per snapshot.
    """

    entry_id: str
    show_id: str
    vendor_id: str
    invoice_date: date
    category: RevenueCategory
    invoice_amount: Money
    received: Money | None
    evergreen_compensation: Money | None
    partner_compensation: Money | None
    outstanding_balance: Money | None
    split_id: int | None
    partner_pct: Percentage
    evergreen_pct: Percentage
    split_history_version: str | None = None
    fallback_applied: bool = False

    @property
    def is_known(self) -> bool:
        """True when the payment, and therefore the split, is known."""
        return self.received is not None


@dataclass(frozen=True)
class CompensationBatch:
    """Per-entry outcomes of compute_batch, each in input order."""

    computed: tuple[Compensation, ...]
    flagged: tuple[FlaggedItem, ...]

    @property
    def computed_count(self) -> int:
        return len(self.computed)

    @property
    def flagged_count(self) -> int:
        return len(self.flagged)

    def flagged_with(self, code: str) -> tuple[FlaggedItem, ...]:
        return tuple(f for f in self.flagged if f.code == code)


_EntryOutcome = tuple[Compensation | None, tuple[FlaggedItem, ...]]


class CompensationCalculator:
    """
    Stateless compensation engine.

    Contract:
        ``compute`` is a pure function of (entry, split).  ``compute_batch``
        adds split resolution against one SplitHistory snapshot.
    Guarantees:
        - Identical inputs always yield identical Compensation values.
        - Safe to share across threads; holds no mutable state.
    """

    @traced_engine("compensation", "1.0", fingerprint_fields=("entry", "split"))
    def compute(
        self,
        entry: LedgerEntry,
        split: SplitRecord,
        split_history_version: str | None = None,
    ) -> Compensation:
        """
        Compute evergreen and partner compensation for one entry.

        Raises:
            ValueError: ``split`` is for a different (show, vendor) pair, or
                the received amount is in another currency than the invoice.
        """
        if split.pair != (entry.show_id, entry.vendor_id):
            raise ValueError(
                f"Split {split.id} is for {split.pair}, entry {entry.entry_id!r} "
                f"is for {(entry.show_id, entry.vendor_id)}"
            )
        return self._apply(
            entry,
            partner_pct=split.partner_pct(entry.category),
            split_id=split.id,
            split_history_version=split_history_version,
            fallback_applied=False,
        )

    def compute_batch(
        self,
        entries: Sequence[LedgerEntry],
        history: SplitHistory,
        fallback: FallbackPolicy | None = None,
        max_workers: int | None = None,
    ) -> CompensationBatch:
        """
        Resolve and compute every entry against one history snapshot.

        Args:
            entries: Ledger entries; anything that is not a LedgerEntry is
                flagged MALFORMED_RECORD.
            history: Snapshot used for every resolution in the batch.
            fallback: Explicit policy for entries with no applicable split.
                None (default) flags them instead of computing.
            max_workers: Evaluate entries on a thread pool of this size.
                None or 1 evaluates sequentially.

        Returns:
            CompensationBatch with computed results and flagged items, both
            in input order.
        """
        if fallback is not None and not isinstance(fallback, FallbackPolicy):
            raise TypeError(f"fallback must be a FallbackPolicy, got {fallback!r}")
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        entries = tuple(entries)
        positions = range(len(entries))

        if max_workers is None or max_workers == 1:
            outcomes = [
                self._evaluate(position, entry, history, fallback)
                for position, entry in zip(positions, entries)
            ]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(
                    self._evaluate, positions, entries, repeat(history), repeat(fallback),
                ))

        computed: list[Compensation] = []
        flagged: list[FlaggedItem] = []
        for compensation, issues in outcomes:
            if compensation is not None:
                computed.append(compensation)
            flagged.extend(issues)

        batch = CompensationBatch(computed=tuple(computed), flagged=tuple(flagged))
        logger.info("compensation_batch_completed", extra={
            "entry_count": len(entries),
            "computed_count": batch.computed_count,
            "flagged_count": batch.flagged_count,
            "fallback_policy": fallback,
            "snapshot_version": history.version,
            "max_workers": max_workers or 1,
        })
        return batch

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _evaluate(
        self,
        position: int,
        entry: LedgerEntry,
        history: SplitHistory,
        fallback: FallbackPolicy | None,
    ) -> _EntryOutcome:
        if not isinstance(entry, LedgerEntry):
            return self._malformed(
                f"entry[{position}]", f"expected LedgerEntry, got {type(entry).__name__}"
            )
        problem = entry.shape_problem()
        if problem is not None:
            key = entry.entry_id if isinstance(entry.entry_id, str) else f"entry[{position}]"
            return self._malformed(key, problem)

        with LogContext.bind(entry_id=entry.entry_id, show_id=entry.show_id):
            try:
                return self._evaluate_entry(entry, history, fallback)
            except (TypeError, ValueError) as e:
                return self._malformed(entry.entry_id, str(e))

    @staticmethod
    def _malformed(key: str, reason: str) -> _EntryOutcome:
        error = MalformedRecordError(key, reason)
        logger.warning("compensation_entry_malformed", extra={
            "record_key": key,
            "reason": reason,
        })
        return None, (FlaggedItem.from_error(key, error),)

    def _evaluate_entry(
        self,
        entry: LedgerEntry,
        history: SplitHistory,
        fallback: FallbackPolicy | None,
    ) -> _EntryOutcome:
        issues: list[FlaggedItem] = []

        try:
            resolution = history.resolution(entry.show_id, entry.vendor_id, entry.invoice_date)
        except NoApplicableSplitError as e:
            if fallback is None:
                logger.warning("compensation_split_missing", extra={
                    "vendor_id": entry.vendor_id,
                    "invoice_date": entry.invoice_date,
                })
                return None, (FlaggedItem.from_error(entry.entry_id, e),)
            resolution = None
            logger.info("compensation_fallback_applied", extra={
                "vendor_id": entry.vendor_id,
                "invoice_date": entry.invoice_date,
                "fallback_policy": fallback,
            })

        if resolution is None:
            compensation = self._apply(
                entry,
                partner_pct=Percentage.zero(),
                split_id=None,
                split_history_version=history.version,
                fallback_applied=True,
            )
        else:
            compensation = self.compute(entry, resolution.record, history.version)
            if resolution.integrity_issue is not None:
                issues.append(replace(resolution.integrity_issue, item_key=entry.entry_id))

        if not compensation.is_known:
            issues.append(
                FlaggedItem.from_error(entry.entry_id, UnknownPaymentError(entry.entry_id))
            )

        return compensation, tuple(issues)

    @staticmethod
    def _apply(
        entry: LedgerEntry,
        partner_pct: Percentage,
        split_id: int | None,
        split_history_version: str | None,
        fallback_applied: bool,
    ) -> Compensation:
        received = entry.effective_payment_received
        if received is None:
            partner = evergreen = outstanding = None
        else:
            if received.currency != entry.invoice_amount.currency:
                raise ValueError(
                    f"Entry {entry.entry_id!r} received {received.currency} "
                    f"against an invoice in {entry.invoice_amount.currency}"
                )
            partner = received * partner_pct
            evergreen = received - partner
            outstanding = entry.invoice_amount - received

        return Compensation(
            entry_id=entry.entry_id,
            show_id=entry.show_id,
            vendor_id=entry.vendor_id,
            invoice_date=entry.invoice_date,
            category=entry.category,
            invoice_amount=entry.invoice_amount,
            received=received,
            evergreen_compensation=evergreen,
            partner_compensation=partner,
            outstanding_balance=outstanding,
            split_id=split_id,
            partner_pct=partner_pct,
            evergreen_pct=partner_pct.complement(),
            split_history_version=split_history_version,
            fallback_applied=fallback_applied,
        )
