"""
revsplit_engines.payout_reconciler -- Paid/outstanding totals with payment dedup.

Responsibility:
    Aggregate PartnerPayout rows into paid and billed totals overall, per
    partner and per show.  One payment may settle several bill lines and
    therefore appear on several rows; its amount is counted exactly once.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - total_paid equals the sum of one amount per distinct payment_id,
      regardless of row order or duplication.
    - Rows with payment_id None are unpaid and add nothing to paid totals.
    - The row that attributes a shared payment to a partner and a show is
      the minimum of (bill_date, bill_number, partner_id, show_id), so every
      map is independent of row order.
    - A payment row without an amount is excluded and reported, never
      counted as zero.
    - The seen-set lives inside one call; concurrent calls share nothing.

Failure modes:
    - Never raises for data problems.  MISSING_PAYMENT_AMOUNT,
      PAYMENT_AMOUNT_CONFLICT and MALFORMED_RECORD come back in ``issues``.

Usage:
    result = PayoutReconciler().reconcile(payouts)
    result.total_paid, result.by_partner["p-1"]
"""

from __future__ import annotations

import hashlib
from collections import defaultdict
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal

from revsplit_engines.tracer import traced_engine
from revsplit_kernel.domain.dtos import FlaggedItem
from revsplit_kernel.domain.records import PartnerPayout
from revsplit_kernel.domain.values import Currency, Money
from revsplit_kernel.exceptions import (
    MalformedRecordError,
    MissingPaymentAmountError,
    PaymentAmountConflictError,
)
from revsplit_kernel.logging_config import get_logger

logger = get_logger("engines.payout_reconciler")


@dataclass(frozen=True)
class PayoutReconciliation:
    """
    Result of reconciling one payout snapshot.

    Contract:
        Frozen dataclass; all maps are keyed and ordered by id.
    Guarantees:
        - total_paid == sum(by_partner.values()) == sum(by_show.values()).
        - outstanding_billed == total_billed - total_paid (may be negative
          when payments exceed the bills in the snapshot).
    """

    currency: Currency
    total_paid: Money
    total_billed: Money
    outstanding_billed: Money
    by_partner: dict[str, Money]
    by_show: dict[str, Money]
    billed_by_partner: dict[str, Money]
    outstanding_by_partner: dict[str, Money]
    counted_payment_ids: tuple[str, ...]
    row_count: int
    duplicate_row_count: int
    unpaid_row_count: int
    issues: tuple[FlaggedItem, ...] = ()

    @property
    def payment_count(self) -> int:
        return len(self.counted_payment_ids)

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)


_ORDER_KEY = "bill_date, bill_number, partner_id, show_id"


def _attribution_key(row: PartnerPayout) -> tuple:
    return (row.bill_date, row.bill_number, row.partner_id, row.show_id)


def _row_key(row: object, position: int) -> str:
    if isinstance(row, PartnerPayout) and isinstance(row.bill_number, str):
        return row.bill_number
    return f"payout[{position}]"


@dataclass
class _Tally:
    """Mutable accumulator for one reconcile pass (or one partition)."""

    billed_total: Decimal = Decimal("0")
    billed_by_partner: dict[str, Decimal] = field(default_factory=lambda: defaultdict(Decimal))
    paid_total: Decimal = Decimal("0")
    paid_by_partner: dict[str, Decimal] = field(default_factory=lambda: defaultdict(Decimal))
    paid_by_show: dict[str, Decimal] = field(default_factory=lambda: defaultdict(Decimal))
    counted_ids: set[str] = field(default_factory=set)
    row_count: int = 0
    duplicate_row_count: int = 0
    unpaid_row_count: int = 0
    row_issues: list[tuple[int, FlaggedItem]] = field(default_factory=list)
    payment_issues: list[tuple[str, FlaggedItem]] = field(default_factory=list)

    def merge(self, other: _Tally) -> None:
        self.billed_total += other.billed_total
        self.paid_total += other.paid_total
        for target, source in (
            (self.billed_by_partner, other.billed_by_partner),
            (self.paid_by_partner, other.paid_by_partner),
            (self.paid_by_show, other.paid_by_show),
        ):
            for key, amount in source.items():
                target[key] += amount
        overlap = self.counted_ids & other.counted_ids
        if overlap:
            raise RuntimeError(f"payment ids counted by two partitions: {sorted(overlap)}")
        self.counted_ids |= other.counted_ids
        self.row_count += other.row_count
        self.duplicate_row_count += other.duplicate_row_count
        self.unpaid_row_count += other.unpaid_row_count
        self.row_issues.extend(other.row_issues)
        self.payment_issues.extend(other.payment_issues)


def partition_of(key: str, partitions: int) -> int:
    """Stable partition index for a payment id (independent of PYTHONHASHSEED)."""
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % partitions


class PayoutReconciler:
    """
    Stateless payout reconciliation engine.

    Contract:
        Amounts outside ``currency`` are flagged MALFORMED_RECORD and left
        out of every total.
        A payment is attributed whole to one row.  When it settles bills of
        several partners, the attributed partner receives the full amount
        (its ``outstanding_by_partner`` may go negative) and the others
        keep their bills outstanding; ``payout_shared_across_partners`` is
        logged for each such payment.
    Guarantees:
        - reconcile is deterministic and order independent.
        - reconcile_partitioned returns a result equal to reconcile.
    """

    def __init__(self, currency: str | Currency = "USD") -> None:
        self._currency = currency if isinstance(currency, Currency) else Currency(currency)

    @property
    def currency(self) -> Currency:
        return self._currency

    @traced_engine("payout_reconciler", "1.0", fingerprint_fields=("payouts",))
    def reconcile(self, payouts: Sequence[PartnerPayout]) -> PayoutReconciliation:
        """Reconcile one snapshot of payout rows in a single pass."""
        tally = self._tally(enumerate(payouts))
        return self._build(tally, partitions=1)

    @traced_engine(
        "payout_reconciler", "1.0",
        fingerprint_fields=("payouts", "partitions"),
    )
    def reconcile_partitioned(
        self,
        payouts: Sequence[PartnerPayout],
        partitions: int,
        max_workers: int | None = None,
    ) -> PayoutReconciliation:
        """
        Reconcile partitions of the snapshot concurrently and merge them.

        Rows are assigned by a stable hash of payment_id, so each payment
        has exactly one owning partition.  Unpaid rows are spread by
        bill_number.  The merged result equals ``reconcile(payouts)``.
        """
        if partitions < 1:
            raise ValueError(f"partitions must be >= 1, got {partitions}")
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        buckets: list[list[tuple[int, PartnerPayout]]] = [[] for _ in range(partitions)]
        for position, row in enumerate(payouts):
            if not isinstance(row, PartnerPayout) or row.shape_problem() is not None:
                index = 0
            elif row.payment_id is not None:
                index = partition_of(row.payment_id, partitions)
            else:
                index = partition_of(f"bill:{row.bill_number}", partitions)
            buckets[index].append((position, row))

        with ThreadPoolExecutor(max_workers=max_workers or partitions) as pool:
            tallies = list(pool.map(self._tally, buckets))

        merged = _Tally()
        for tally in tallies:
            merged.merge(tally)
        return self._build(merged, partitions=partitions)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _tally(self, indexed_rows: Iterable[tuple[int, PartnerPayout]]) -> _Tally:
        tally = _Tally()
        by_payment: dict[str, list[PartnerPayout]] = defaultdict(list)

        for position, row in indexed_rows:
            tally.row_count += 1
            problem = self._row_problem(row)
            if problem is not None:
                key = _row_key(row, position)
                error = MalformedRecordError(key, problem)
                logger.warning("payout_row_malformed", extra={
                    "position": position,
                    "reason": problem,
                })
                tally.row_issues.append((position, FlaggedItem.from_error(key, error)))
                continue

            if row.bill_amount is not None:
                tally.billed_total += row.bill_amount.amount
                tally.billed_by_partner[row.partner_id] += row.bill_amount.amount

            if row.payment_id is None:
                tally.unpaid_row_count += 1
                continue

            if row.effective_billed_amount_paid is None:
                error = MissingPaymentAmountError(row.bill_number, row.payment_id)
                logger.warning("payout_missing_amount", extra={
                    "bill_number": row.bill_number,
                    "payment_id": row.payment_id,
                    "partner_id": row.partner_id,
                })
                tally.row_issues.append(
                    (position, FlaggedItem.from_error(row.bill_number, error))
                )
                continue

            by_payment[row.payment_id].append(row)

        for payment_id, rows in by_payment.items():
            attributed = min(rows, key=_attribution_key)
            amount = attributed.effective_billed_amount_paid.amount

            distinct = sorted({r.effective_billed_amount_paid.amount for r in rows})
            if len(distinct) > 1:
                error = PaymentAmountConflictError(
                    payment_id, tuple(str(a) for a in distinct), str(amount)
                )
                logger.warning("payout_amount_conflict", extra={
                    "payment_id": payment_id,
                    "amounts": distinct,
                    "counted": amount,
                    "attribution_order": _ORDER_KEY,
                })
                tally.payment_issues.append((payment_id, FlaggedItem.from_error(payment_id, error)))

            partners = sorted({r.partner_id for r in rows})
            if len(partners) > 1:
                logger.info("payout_shared_across_partners", extra={
                    "payment_id": payment_id,
                    "partner_ids": partners,
                    "attributed_partner_id": attributed.partner_id,
                })

            tally.counted_ids.add(payment_id)
            tally.duplicate_row_count += len(rows) - 1
            tally.paid_total += amount
            tally.paid_by_partner[attributed.partner_id] += amount
            tally.paid_by_show[attributed.show_id] += amount

        return tally

    def _row_problem(self, row: object) -> str | None:
        if not isinstance(row, PartnerPayout):
            return f"expected PartnerPayout, got {type(row).__name__}"
        problem = row.shape_problem()
        if problem is not None:
            return problem
        for label, money in (
            ("bill_amount", row.bill_amount),
            ("effective_billed_amount_paid", row.effective_billed_amount_paid),
        ):
            if money is not None and money.currency != self._currency:
                return f"{label} is in {money.currency}, expected {self._currency}"
        return None

    def _build(self, tally: _Tally, partitions: int) -> PayoutReconciliation:
        currency = self._currency

        def money(amount: Decimal) -> Money:
            return Money(amount=amount, currency=currency)

        def money_map(values: dict[str, Decimal]) -> dict[str, Money]:
            return {key: money(values[key]) for key in sorted(values)}

        partners = set(tally.billed_by_partner) | set(tally.paid_by_partner)
        outstanding_by_partner = {
            p: money(tally.billed_by_partner.get(p, Decimal("0"))
                     - tally.paid_by_partner.get(p, Decimal("0")))
            for p in sorted(partners)
        }

        issues = tuple(
            [item for _, item in sorted(tally.row_issues, key=lambda pair: pair[0])]
            + [item for _, item in sorted(tally.payment_issues, key=lambda pair: pair[0])]
        )

        result = PayoutReconciliation(
            currency=currency,
            total_paid=money(tally.paid_total),
            total_billed=money(tally.billed_total),
            outstanding_billed=money(tally.billed_total - tally.paid_total),
            by_partner=money_map(tally.paid_by_partner),
            by_show=money_map(tally.paid_by_show),
            billed_by_partner=money_map(tally.billed_by_partner),
            outstanding_by_partner=outstanding_by_partner,
            counted_payment_ids=tuple(sorted(tally.counted_ids)),
            row_count=tally.row_count,
            duplicate_row_count=tally.duplicate_row_count,
            unpaid_row_count=tally.unpaid_row_count,
            issues=issues,
        )

        logger.info("payout_reconciliation_completed", extra={
            "row_count": result.row_count,
            "payment_count": result.payment_count,
            "duplicate_row_count": result.duplicate_row_count,
            "unpaid_row_count": result.unpaid_row_count,
            "issue_count": len(issues),
            "total_paid": result.total_paid.amount,
            "partitions": partitions,
        })
        return result
