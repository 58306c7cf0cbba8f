"""
Tests for CompensationCalculator.

Covers:
- Split arithmetic on the received amount
- Null propagation for unknown payments
- Category selection (ads vs programmatic)
- compute_batch flagging, fallback policy and ordering
"""

from datetime import date
from decimal import Decimal

import pytest

from revsplit_engines.compensation import (
    CompensationCalculator,
    FallbackPolicy,
)
from revsplit_engines.split_history import SplitHistory
from revsplit_kernel.domain.records import RevenueCategory
from revsplit_kernel.domain.values import Money, Percentage
from tests.builders import make_entry, make_split, unchecked, usd


class TestCompute:
    """Tests for compute()."""

    def setup_method(self):
        self.calculator = CompensationCalculator()
        self.split = make_split(1, date(2024, 1, 1), ads="0.30", programmatic="0.50")

    def test_thirty_percent_partner_split(self):
        """Received 1000.00 at 30% partner: partner 300.00, evergreen 700.00."""
        entry = make_entry("E-1", date(2024, 3, 15), invoice_amount="1000.00", received="1000.00")

        comp = self.calculator.compute(entry, self.split)

        assert comp.partner_compensation == usd("300.00")
        assert comp.evergreen_compensation == usd("700.00")
        assert comp.outstanding_balance == usd("0.00")
        assert comp.partner_pct == Percentage.of("0.30")
        assert comp.evergreen_pct == Percentage.of("0.70")
        assert comp.split_id == 1
        assert not comp.fallback_applied

    def test_percentage_applies_to_received_not_invoice(self):
        entry = make_entry("E-2", date(2024, 3, 15), invoice_amount="1000.00", received="400.00")

        comp = self.calculator.compute(entry, self.split)

        assert comp.partner_compensation.amount == Decimal("120.0000")
        assert comp.evergreen_compensation.amount == Decimal("280.0000")
        assert comp.outstanding_balance == usd("600.00")

    def test_overpayment_keeps_negative_outstanding(self):
        entry = make_entry("E-3", date(2024, 3, 15), invoice_amount="100.00", received="150.00")

        comp = self.calculator.compute(entry, self.split)

        assert comp.outstanding_balance == usd("-50.00")

    def test_unknown_payment_propagates_none(self):
        entry = make_entry("E-4", date(2024, 3, 15), received=None)

        comp = self.calculator.compute(entry, self.split)

        assert comp.received is None
        assert comp.evergreen_compensation is None
        assert comp.partner_compensation is None
        assert comp.outstanding_balance is None
        assert not comp.is_known

    def test_zero_payment_is_not_unknown(self):
        entry = make_entry("E-5", date(2024, 3, 15), received="0.00")

        comp = self.calculator.compute(entry, self.split)

        assert comp.is_known
        assert comp.partner_compensation.is_zero
        assert comp.outstanding_balance == usd("1000.00")

    def test_programmatic_category_uses_programmatic_pct(self):
        entry = make_entry(
            "E-6", date(2024, 3, 15), received="200.00",
            category=RevenueCategory.PROGRAMMATIC,
        )

        comp = self.calculator.compute(entry, self.split)

        assert comp.partner_compensation.amount == Decimal("100.0000")
        assert comp.evergreen_compensation.amount == Decimal("100.0000")

    def test_identity_holds_without_rounding(self):
        entry = make_entry("E-7", date(2024, 3, 15), received="333.33")
        split = make_split(1, date(2024, 1, 1), ads="0.3333")

        comp = self.calculator.compute(entry, split)

        assert comp.evergreen_compensation + comp.partner_compensation == comp.received

    def test_split_for_other_pair_rejected(self):
        entry = make_entry("E-8", date(2024, 3, 15), vendor_id="vendor-2")
        with pytest.raises(ValueError, match="is for"):
            self.calculator.compute(entry, self.split)

    def test_mixed_currency_rejected(self):
        entry = make_entry("E-9", date(2024, 3, 15))
        entry = type(entry)(
            entry_id=entry.entry_id,
            show_id=entry.show_id,
            vendor_id=entry.vendor_id,
            customer=entry.customer,
            invoice_date=entry.invoice_date,
            invoice_amount=entry.invoice_amount,
            effective_payment_received=Money.of("10", "EUR"),
        )
        with pytest.raises(ValueError):
            self.calculator.compute(entry, self.split)

    def test_compute_is_traced(self, captured_logs):
        entry = make_entry("E-10", date(2024, 3, 15))
        self.calculator.compute(entry, self.split)

        traces = [r for r in captured_logs() if r["message"] == "REVSPLIT_ENGINE_TRACE"]
        assert traces[0]["engine_name"] == "compensation"
        assert len(traces[0]["input_fingerprint"]) == 16


class TestComputeBatch:
    """Tests for compute_batch()."""

    def setup_method(self):
        self.calculator = CompensationCalculator()
        self.history = SplitHistory([
            make_split(1, date(2024, 1, 1), ads="0.30"),
            make_split(2, date(2024, 6, 1), ads="0.40"),
        ])

    def test_each_entry_uses_split_in_force(self):
        entries = [
            make_entry("E-1", date(2024, 3, 1)),
            make_entry("E-2", date(2024, 7, 1)),
        ]

        batch = self.calculator.compute_batch(entries, self.history)

        assert [c.split_id for c in batch.computed] == [1, 2]
        assert batch.computed[1].partner_compensation == usd("400.00")
        assert all(c.split_history_version == self.history.version for c in batch.computed)
        assert batch.flagged == ()

    def test_missing_split_flagged_not_computed(self):
        entries = [
            make_entry("E-early", date(2023, 12, 31)),
            make_entry("E-ok", date(2024, 2, 1)),
        ]

        batch = self.calculator.compute_batch(entries, self.history)

        assert [c.entry_id for c in batch.computed] == ["E-ok"]
        assert len(batch.flagged) == 1
        assert batch.flagged[0].item_key == "E-early"
        assert batch.flagged[0].code == "NO_APPLICABLE_SPLIT"

    def test_fallback_all_evergreen(self):
        entries = [make_entry("E-early", date(2023, 12, 31), received="250.00")]

        batch = self.calculator.compute_batch(
            entries, self.history, fallback=FallbackPolicy.ALL_EVERGREEN,
        )

        comp = batch.computed[0]
        assert comp.fallback_applied
        assert comp.split_id is None
        assert comp.partner_compensation.is_zero
        assert comp.evergreen_compensation == usd("250.00")
        assert batch.flagged == ()

    def test_unknown_payment_computed_and_flagged(self):
        entries = [make_entry("E-null", date(2024, 3, 1), received=None)]

        batch = self.calculator.compute_batch(entries, self.history)

        assert batch.computed[0].evergreen_compensation is None
        assert batch.flagged_with("UNKNOWN_PAYMENT")[0].item_key == "E-null"

    def test_malformed_entry_does_not_stop_batch(self):
        entries = [
            make_entry("E-1", date(2024, 3, 1)),
            {"entry_id": "raw-dict"},
            make_entry("E-3", date(2024, 3, 2)),
        ]

        batch = self.calculator.compute_batch(entries, self.history)

        assert [c.entry_id for c in batch.computed] == ["E-1", "E-3"]
        assert batch.flagged[0].code == "MALFORMED_RECORD"
        assert batch.flagged[0].item_key == "entry[1]"

    def test_ambiguous_split_flagged_with_entry_key(self):
        history = SplitHistory([
            make_split(1, date(2024, 1, 1), ads="0.30"),
            make_split(2, date(2024, 1, 1), ads="0.35"),
        ])

        batch = self.calculator.compute_batch([make_entry("E-1", date(2024, 2, 1))], history)

        assert batch.computed[0].split_id == 2
        assert batch.flagged[0].code == "AMBIGUOUS_SPLIT"
        assert batch.flagged[0].item_key == "E-1"

    def test_parallel_preserves_input_order(self):
        entries = [make_entry(f"E-{i}", date(2024, 1 + i % 12, 1)) for i in range(40)]

        sequential = self.calculator.compute_batch(entries, self.history)
        parallel = self.calculator.compute_batch(entries, self.history, max_workers=4)

        assert parallel == sequential
        assert [c.entry_id for c in parallel.computed] == [e.entry_id for e in entries]

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            self.calculator.compute_batch([], self.history, max_workers=0)
        with pytest.raises(TypeError):
            self.calculator.compute_batch([], self.history, fallback="all_evergreen")

    def test_batch_completion_logged(self, captured_logs):
        self.calculator.compute_batch([make_entry("E-1", date(2024, 3, 1))], self.history)

        done = [r for r in captured_logs() if r["message"] == "compensation_batch_completed"]
        assert done[0]["computed_count"] == 1
        assert done[0]["snapshot_version"] == self.history.version


class TestMistypedEntries:
    """A wrongly typed LedgerEntry is flagged; the rest of the batch is computed."""

    def setup_method(self):
        self.calculator = CompensationCalculator()
        self.history = SplitHistory([make_split(1, date(2024, 1, 1), ads="0.30")])
        self.good = make_entry("E-good", date(2024, 3, 1))

    @pytest.mark.parametrize("changes, field", [
        ({"invoice_date": "2024-03-01"}, "invoice_date"),
        ({"invoice_amount": None}, "invoice_amount"),
        ({"effective_payment_received": Decimal("1000.00")}, "effective_payment_received"),
        ({"category": "ads"}, "category"),
    ])
    def test_flagged_and_batch_continues(self, changes, field):
        bad = unchecked(make_entry("E-bad", date(2024, 3, 1)), **changes)

        batch = self.calculator.compute_batch([self.good, bad, self.good], self.history)

        assert [c.entry_id for c in batch.computed] == ["E-good", "E-good"]
        assert len(batch.flagged) == 1
        assert batch.flagged[0].code == "MALFORMED_RECORD"
        assert batch.flagged[0].item_key == "E-bad"
        assert field in batch.flagged[0].details["reason"]

    def test_mistyped_entry_id_keyed_by_position(self):
        bad = unchecked(make_entry("E-bad", date(2024, 3, 1)), entry_id=17)

        batch = self.calculator.compute_batch([self.good, bad], self.history)

        assert batch.computed_count == 1
        assert batch.flagged[0].item_key == "entry[1]"

    def test_parallel_batch_also_continues(self):
        bad = unchecked(make_entry("E-bad", date(2024, 3, 1)), invoice_date=None)
        entries = [self.good, bad] * 5

        sequential = self.calculator.compute_batch(entries, self.history)
        parallel = self.calculator.compute_batch(entries, self.history, max_workers=4)

        assert parallel == sequential
        assert parallel.flagged_count == 5
