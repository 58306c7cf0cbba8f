"""
Module: revsplit_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for callers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports revsplit_kernel (and, for ReconciliationRun only, the
    revsplit_config schema).

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in as explicit parameters.
    - Decimal-only arithmetic: all monetary amounts use ``Decimal``; floats
      are rejected by the value objects.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine invocations are traced via the ``@traced_engine`` decorator
    (see ``revsplit_engines.tracer``), emitting REVSPLIT_ENGINE_TRACE log
    records that include engine name, version, input fingerprint, and
    duration.

Usage:
    from revsplit_engines import SplitHistory, CompensationCalculator
    from revsplit_engines import PayoutReconciler, summarize
"""

from revsplit_engines.compensation import (
    Compensation,
    CompensationBatch,
    CompensationCalculator,
    FallbackPolicy,
)
from revsplit_engines.ledger_store import LedgerStore, select_payouts
from revsplit_engines.payout_reconciler import PayoutReconciler, PayoutReconciliation
from revsplit_engines.reporting import (
    MonthlyRevenue,
    RevenueSummary,
    monthly_trend,
    summarize,
)
from revsplit_engines.run import ReconciliationRun, RunReport
from revsplit_engines.split_history import SplitHistory, SplitResolution
from revsplit_engines.tracer import traced_engine

__all__ = [
    # Split history
    "SplitHistory",
    "SplitResolution",
    # Ledger selection
    "LedgerStore",
    "select_payouts",
    # Compensation
    "Compensation",
    "CompensationBatch",
    "CompensationCalculator",
    "FallbackPolicy",
    # Payouts
    "PayoutReconciler",
    "PayoutReconciliation",
    # Reporting
    "MonthlyRevenue",
    "RevenueSummary",
    "monthly_trend",
    "summarize",
    # Orchestration
    "ReconciliationRun",
    "RunReport",
    # Tracing
    "traced_engine",
]
