"""
revsplit_engines.run -- One end-to-end reconciliation over a set of snapshots.

Responsibility:
    Wire the pure engines together under one ``EngineSettings``: compute
    the compensation batch, summarise it, build the monthly trend and
    reconcile the partner payouts.

Architecture position:
    Engines -- orchestration of pure engines, still zero I/O.  Settings
    are passed in; nothing here reads files or the environment.

Invariants enforced:
    - Every step of a run sees the same SplitHistory snapshot; its version
      is recorded on the report.
    - A missing split is only backfilled when the settings explicitly ask
      for ``all_evergreen``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import uuid4

from revsplit_config.loader import compute_checksum
from revsplit_config.schema import EngineSettings, MissingSplitPolicy
from revsplit_engines.compensation import (
    CompensationBatch,
    CompensationCalculator,
    FallbackPolicy,
)
from revsplit_engines.payout_reconciler import PayoutReconciler, PayoutReconciliation
from revsplit_engines.reporting import (
    MonthlyRevenue,
    RevenueSummary,
    monthly_trend,
    summarize,
)
from revsplit_engines.split_history import SplitHistory
from revsplit_kernel.domain.dtos import FlaggedItem
from revsplit_kernel.domain.records import LedgerEntry, PartnerPayout
from revsplit_kernel.domain.values import Money
from revsplit_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.run")

_FALLBACKS = {
    MissingSplitPolicy.FLAG: None,
    MissingSplitPolicy.ALL_EVERGREEN: FallbackPolicy.ALL_EVERGREEN,
}


def _display_totals(
    summary: RevenueSummary,
    payouts: PayoutReconciliation,
    rounding: str,
) -> dict[str, Money]:
    """Headline totals rounded once, to the currency minor unit, for presentation."""
    totals = {
        "total_net_revenue": summary.total_net_revenue,
        "total_evergreen_share": summary.total_evergreen_share,
        "total_partner_share": summary.total_partner_share,
        "total_outstanding": summary.total_outstanding,
        "total_paid": payouts.total_paid,
        "total_billed": payouts.total_billed,
        "outstanding_billed": payouts.outstanding_billed,
    }
    return {name: amount.round(rounding) for name, amount in totals.items()}


@dataclass(frozen=True)
class RunReport:
    """
    Everything one reconciliation run produced.

    ``display_totals`` holds the headline amounts rounded with the
    settings' ``display_rounding``; every other figure is unrounded.
    """

    correlation_id: str
    snapshot_version: str
    settings_checksum: str
    compensations: CompensationBatch
    summary: RevenueSummary
    trend: tuple[MonthlyRevenue, ...]
    payouts: PayoutReconciliation
    display_totals: dict[str, Money]

    @property
    def issues(self) -> tuple[FlaggedItem, ...]:
        """Compensation flags followed by payout issues."""
        return self.compensations.flagged + self.payouts.issues


class ReconciliationRun:
    """
    Runs every engine over one set of snapshots.

    Contract:
        ``execute`` is deterministic for identical inputs apart from the
        generated correlation id.
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        calculator: CompensationCalculator | None = None,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._calculator = calculator or CompensationCalculator()
        self._reconciler = PayoutReconciler(self._settings.currency)

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    def execute(
        self,
        history: SplitHistory,
        entries: Sequence[LedgerEntry],
        payouts: Sequence[PartnerPayout] = (),
        correlation_id: str | None = None,
        trend_months: int | None = None,
    ) -> RunReport:
        settings = self._settings
        correlation_id = correlation_id or str(uuid4())

        with LogContext.bind(
            correlation_id=correlation_id,
            snapshot_version=history.version,
        ):
            batch = self._calculator.compute_batch(
                entries,
                history,
                fallback=_FALLBACKS[settings.missing_split_policy],
                max_workers=settings.max_workers,
            )
            summary = summarize(batch.computed, batch.flagged, currency=settings.currency)
            trend = monthly_trend(batch.computed, last=trend_months, currency=settings.currency)

            if settings.reconcile_partitions > 1:
                reconciliation = self._reconciler.reconcile_partitioned(
                    payouts,
                    settings.reconcile_partitions,
                    max_workers=settings.max_workers,
                )
            else:
                reconciliation = self._reconciler.reconcile(payouts)

            report = RunReport(
                correlation_id=correlation_id,
                snapshot_version=history.version,
                settings_checksum=compute_checksum(settings),
                compensations=batch,
                summary=summary,
                trend=trend,
                payouts=reconciliation,
                display_totals=_display_totals(summary, reconciliation, settings.display_rounding),
            )

            logger.info("reconciliation_run_completed", extra={
                "entry_count": len(entries),
                "payout_row_count": reconciliation.row_count,
                "computed_count": batch.computed_count,
                "flagged_count": batch.flagged_count,
                "payout_issue_count": len(reconciliation.issues),
                "total_net_revenue": summary.total_net_revenue.amount,
                "total_paid": reconciliation.total_paid.amount,
                "settings_checksum": report.settings_checksum,
            })

        return report
