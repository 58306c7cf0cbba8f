"""
revsplit_engines.reporting -- Aggregate revenue views over compensations.

Responsibility:
    Sum per-invoice Compensation results into headline totals and a
    month-by-month revenue trend.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Unknown compensations (received None) are excluded from every total
      and counted in ``excluded_count``; they are never treated as zero.
    - Totals are exact Money sums; rounding is left to presentation.
    - total_evergreen_share + total_partner_share == total_net_revenue.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from revsplit_engines.compensation import Compensation
from revsplit_engines.tracer import traced_engine
from revsplit_kernel.domain.dtos import FlaggedItem
from revsplit_kernel.domain.values import Currency, Money
from revsplit_kernel.logging_config import get_logger

logger = get_logger("engines.reporting")


@dataclass(frozen=True)
class RevenueSummary:
    """
    Headline totals for a set of compensations.

    ``excluded_entry_ids`` lists, in first-seen order, every entry that did
    not contribute: unknown compensations and flagged entries that were not
    computed.
    """

    currency: Currency
    total_net_revenue: Money
    total_evergreen_share: Money
    total_partner_share: Money
    total_outstanding: Money
    included_count: int
    excluded_count: int
    excluded_entry_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class MonthlyRevenue:
    """Revenue collected and evergreen share for one invoice month."""

    month: str  # YYYY-MM
    revenue: Money
    evergreen: Money
    partner: Money
    entry_count: int


def _as_currency(currency: str | Currency) -> Currency:
    return currency if isinstance(currency, Currency) else Currency(currency)


@traced_engine("reporting", "1.0", fingerprint_fields=("compensations", "flagged"))
def summarize(
    compensations: Sequence[Compensation],
    flagged: Iterable[FlaggedItem] = (),
    currency: str | Currency = "USD",
) -> RevenueSummary:
    """
    Total received, evergreen and partner shares over known compensations.

    Args:
        compensations: Results of CompensationCalculator.
        flagged: Flagged items from the same batch.  Items whose key is not
            an included compensation count as excluded.
        currency: Currency of the totals; also used when nothing is included.

    Raises:
        ValueError: a compensation is in another currency.
    """
    currency = _as_currency(currency)
    revenue = evergreen = partner = outstanding = Money.zero(currency)

    included_ids: set[str] = set()
    excluded: dict[str, None] = {}
    for comp in compensations:
        if not comp.is_known:
            excluded.setdefault(comp.entry_id)
            continue
        revenue = revenue + comp.received
        evergreen = evergreen + comp.evergreen_compensation
        partner = partner + comp.partner_compensation
        outstanding = outstanding + comp.outstanding_balance
        included_ids.add(comp.entry_id)

    for item in flagged:
        if item.item_key not in included_ids:
            excluded.setdefault(item.item_key)

    summary = RevenueSummary(
        currency=currency,
        total_net_revenue=revenue,
        total_evergreen_share=evergreen,
        total_partner_share=partner,
        total_outstanding=outstanding,
        included_count=len(included_ids),
        excluded_count=len(excluded),
        excluded_entry_ids=tuple(excluded),
    )

    if summary.excluded_count:
        logger.info("revenue_summary_exclusions", extra={
            "excluded_count": summary.excluded_count,
            "included_count": summary.included_count,
        })
    return summary


@traced_engine("reporting", "1.0", fingerprint_fields=("compensations", "last", "since"))
def monthly_trend(
    compensations: Sequence[Compensation],
    last: int | None = None,
    since: date | None = None,
    currency: str | Currency = "USD",
) -> tuple[MonthlyRevenue, ...]:
    """
    Revenue and evergreen share per invoice month, oldest first.

    Args:
        compensations: Results of CompensationCalculator; unknown ones are
            skipped.
        last: Keep only the most recent N months that have data.
        since: Ignore invoices dated before this day.
        currency: Currency of the buckets.
    """
    if last is not None and last < 1:
        raise ValueError(f"last must be >= 1, got {last}")
    currency = _as_currency(currency)

    buckets: dict[str, list[Decimal]] = defaultdict(lambda: [Decimal("0")] * 3)
    counts: dict[str, int] = defaultdict(int)
    for comp in compensations:
        if not comp.is_known:
            continue
        if since is not None and comp.invoice_date < since:
            continue
        for money in (comp.received, comp.evergreen_compensation, comp.partner_compensation):
            if money.currency != currency:
                raise ValueError(
                    f"Compensation {comp.entry_id!r} is in {money.currency}, expected {currency}"
                )
        month = comp.invoice_date.strftime("%Y-%m")
        totals = buckets[month]
        totals[0] += comp.received.amount
        totals[1] += comp.evergreen_compensation.amount
        totals[2] += comp.partner_compensation.amount
        counts[month] += 1

    months = sorted(buckets)
    if last is not None:
        months = months[-last:]

    return tuple(
        MonthlyRevenue(
            month=month,
            revenue=Money(amount=buckets[month][0], currency=currency),
            evergreen=Money(amount=buckets[month][1], currency=currency),
            partner=Money(amount=buckets[month][2], currency=currency),
            entry_count=counts[month],
        )
        for month in months
    )
