"""
Tests for SplitHistory.

Covers:
- Effective-date resolution (latest record on or before the date wins)
- Missing split raises, never guessed
- Duplicate effective dates: deterministic tie-break, logged and reported
- Append-only evolution and snapshot versions
"""

from datetime import date
from decimal import Decimal

import pytest

from revsplit_engines.split_history import SplitHistory
from revsplit_kernel.exceptions import (
    MalformedRecordError,
    NoApplicableSplitError,
    SplitHistoryAppendError,
)
from tests.builders import make_split


class TestResolve:
    """Tests for resolve()."""

    def test_resolves_on_effective_date(self, history):
        split = history.resolve("show-1", "vendor-1", date(2024, 1, 1))
        assert split.id == 1

    def test_resolves_between_records(self, history):
        split = history.resolve("show-1", "vendor-1", date(2024, 5, 31))
        assert split.id == 1
        assert split.partner_pct_ads.value == Decimal("0.30")

    def test_later_record_wins(self, history):
        split = history.resolve("show-1", "vendor-1", date(2024, 6, 1))
        assert split.id == 2

    def test_far_future_uses_latest(self, history):
        assert history.resolve("show-1", "vendor-1", date(2030, 1, 1)).id == 2

    def test_invoice_before_every_split_raises(self):
        """Invoice dated 2023-12-31 with only a 2024-01-01 split."""
        history = SplitHistory([make_split(1, date(2024, 1, 1))])

        with pytest.raises(NoApplicableSplitError) as exc_info:
            history.resolve("show-1", "vendor-1", date(2023, 12, 31))

        assert exc_info.value.code == "NO_APPLICABLE_SPLIT"
        assert exc_info.value.as_of_date == "2023-12-31"

    def test_unknown_pair_raises(self, history):
        with pytest.raises(NoApplicableSplitError):
            history.resolve("show-1", "vendor-2", date(2024, 7, 1))

    def test_pairs_do_not_leak(self):
        history = SplitHistory([
            make_split(1, date(2024, 1, 1), ads="0.10", vendor_id="vendor-a"),
            make_split(2, date(2024, 2, 1), ads="0.90", vendor_id="vendor-b"),
        ])
        assert history.resolve("show-1", "vendor-a", date(2024, 3, 1)).id == 1
        assert history.resolve("show-1", "vendor-b", date(2024, 3, 1)).id == 2

    def test_input_order_irrelevant(self):
        records = [
            make_split(3, date(2024, 9, 1)),
            make_split(1, date(2024, 1, 1)),
            make_split(2, date(2024, 6, 1)),
        ]
        forward = SplitHistory(records)
        backward = SplitHistory(reversed(records))

        for day in (date(2024, 1, 15), date(2024, 6, 15), date(2024, 9, 15)):
            assert (
                forward.resolve("show-1", "vendor-1", day)
                == backward.resolve("show-1", "vendor-1", day)
            )
        assert forward.version == backward.version

    def test_resolution_logged(self, history, captured_logs):
        history.resolve("show-1", "vendor-1", date(2024, 2, 1))

        logs = captured_logs()
        resolved = [r for r in logs if r["message"] == "split_resolved"]
        assert resolved and resolved[0]["split_id"] == 1
        assert any(r["message"] == "REVSPLIT_ENGINE_TRACE" for r in logs)


class TestAmbiguousSplits:
    """Two records sharing one effective date for the same pair."""

    def setup_method(self):
        self.history = SplitHistory([
            make_split(5, date(2024, 1, 1), ads="0.20"),
            make_split(9, date(2024, 1, 1), ads="0.25"),
        ])

    def test_higher_id_wins(self):
        assert self.history.resolve("show-1", "vendor-1", date(2024, 2, 1)).id == 9

    def test_tie_break_independent_of_order(self):
        reordered = SplitHistory(reversed(self.history.records))
        assert reordered.resolve("show-1", "vendor-1", date(2024, 2, 1)).id == 9

    def test_resolution_reports_issue(self):
        resolution = self.history.resolution("show-1", "vendor-1", date(2024, 2, 1))

        assert resolution.is_ambiguous
        assert resolution.integrity_issue.code == "AMBIGUOUS_SPLIT"
        assert resolution.integrity_issue.details["split_ids"] == (5, 9)

    def test_integrity_issues_on_snapshot(self):
        issues = self.history.integrity_issues
        assert len(issues) == 1
        assert issues[0].item_key == "show-1/vendor-1"

    def test_ambiguity_logged_as_warning(self, captured_logs):
        self.history.resolve("show-1", "vendor-1", date(2024, 2, 1))

        warnings = [r for r in captured_logs() if r["message"] == "split_resolution_ambiguous"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["chosen_split_id"] == 9
        assert warnings[0]["tied_split_ids"] == [5, 9]

    def test_clean_history_has_no_issues(self, history):
        assert history.integrity_issues == ()
        assert not history.resolution("show-1", "vendor-1", date(2024, 7, 1)).is_ambiguous


class TestAppend:
    """Append-only evolution."""

    def test_append_returns_new_snapshot(self, history):
        correction = make_split(3, date(2024, 9, 1), ads="0.50")
        updated = history.append(correction)

        assert len(history) == 2
        assert len(updated) == 3
        assert history.resolve("show-1", "vendor-1", date(2024, 10, 1)).id == 2
        assert updated.resolve("show-1", "vendor-1", date(2024, 10, 1)).id == 3

    def test_append_changes_version(self, history):
        updated = history.append(make_split(3, date(2024, 9, 1)))
        assert updated.version != history.version

    def test_same_content_same_version(self, history):
        assert SplitHistory(history.records).version == history.version

    def test_duplicate_id_rejected(self, history):
        with pytest.raises(SplitHistoryAppendError) as exc_info:
            history.append(make_split(2, date(2025, 1, 1)))
        assert exc_info.value.split_id == 2

    def test_duplicate_effective_date_rejected(self, history):
        with pytest.raises(SplitHistoryAppendError, match="already has a split"):
            history.append(make_split(3, date(2024, 6, 1)))

    def test_same_date_other_pair_allowed(self, history):
        updated = history.append(make_split(3, date(2024, 6, 1), vendor_id="vendor-2"))
        assert updated.resolve("show-1", "vendor-2", date(2024, 6, 1)).id == 3

    def test_non_record_rejected(self, history):
        with pytest.raises(MalformedRecordError):
            history.append({"id": 3})


class TestSnapshot:
    """Snapshot accessors."""

    def test_records_for_is_ordered(self):
        history = SplitHistory([
            make_split(2, date(2024, 6, 1)),
            make_split(1, date(2024, 1, 1)),
        ])
        assert [r.id for r in history.records_for("show-1", "vendor-1")] == [1, 2]
        assert history.records_for("show-x", "vendor-1") == ()

    def test_pairs(self, history):
        assert history.pairs() == (("show-1", "vendor-1"),)

    def test_non_record_in_snapshot_rejected(self):
        with pytest.raises(MalformedRecordError):
            SplitHistory([make_split(1, date(2024, 1, 1)), "not a split"])

    def test_empty_history(self):
        history = SplitHistory()
        assert len(history) == 0
        with pytest.raises(NoApplicableSplitError):
            history.resolve("show-1", "vendor-1", date(2024, 1, 1))
