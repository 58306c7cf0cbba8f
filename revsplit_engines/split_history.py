"""
revsplit_engines.split_history -- Effective-dated split resolution.

Responsibility:
    Hold an immutable, append-only snapshot of SplitRecords per
    (show, vendor) pair and answer "which split applied on date D".

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports only revsplit_kernel domain values, records and exceptions.

Invariants enforced:
    - Resolution picks the record with the greatest effective_date that is
      on or before the as-of date; a later qualifying record always wins.
    - Two records sharing that date is a data-integrity violation: the
      higher id wins and the ambiguity is logged and reported, never
      resolved arbitrarily.
    - Snapshots are immutable. ``append`` returns a new snapshot with a new
      ``version``; resolutions are never cached across snapshots.

Failure modes:
    - NoApplicableSplitError when the date predates every record of the pair.
    - SplitHistoryAppendError when an append would duplicate an id or a
      (show, vendor, effective_date) slot.
    - MalformedRecordError when the snapshot holds something other than
      SplitRecords.

Usage:
    history = SplitHistory(records)
    split = history.resolve("show-1", "vendor-9", date(2024, 3, 1))
"""

from __future__ import annotations

import hashlib
from bisect import bisect_right
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date

from revsplit_engines.tracer import traced_engine
from revsplit_kernel.domain.dtos import FlaggedItem
from revsplit_kernel.domain.records import SplitRecord
from revsplit_kernel.exceptions import (
    AmbiguousSplitError,
    MalformedRecordError,
    NoApplicableSplitError,
    SplitHistoryAppendError,
)
from revsplit_kernel.logging_config import get_logger

logger = get_logger("engines.split_history")

Pair = tuple[str, str]


@dataclass(frozen=True)
class SplitResolution:
    """
    Audit view of one resolution.

    ``integrity_issue`` is set when the chosen record shared its
    effective_date with another record of the same pair.
    """

    record: SplitRecord
    as_of_date: date
    snapshot_version: str
    integrity_issue: FlaggedItem | None = None

    @property
    def is_ambiguous(self) -> bool:
        return self.integrity_issue is not None


def _fingerprint(records: Iterable[SplitRecord]) -> str:
    """Deterministic content hash of a snapshot, independent of input order."""
    lines = sorted(
        "|".join((
            str(r.id),
            r.show_id,
            r.vendor_id,
            str(r.partner_pct_ads.value),
            str(r.partner_pct_programmatic.value),
            r.effective_date.isoformat(),
        ))
        for r in records
    )
    return hashlib.sha256("\n".join(lines).encode("utf-8")).hexdigest()[:16]


class SplitHistory:
    """
    Immutable snapshot of split configurations, indexed per pair.

    Contract:
        Built once from externally supplied records. Reads are pure and
        thread-safe; there is no mutable state after construction.
    Guarantees:
        - ``resolve`` is monotone in effective_date.
        - ``version`` changes whenever the record set changes.
    Non-goals:
        - Does not persist or fetch records.
        - Does not pick a fallback split when none applies.
    """

    def __init__(self, records: Iterable[SplitRecord] = ()) -> None:
        records = tuple(records)
        for position, record in enumerate(records):
            if not isinstance(record, SplitRecord):
                raise MalformedRecordError(
                    f"split[{position}]",
                    f"expected SplitRecord, got {type(record).__name__}",
                )

        by_pair: dict[Pair, list[SplitRecord]] = defaultdict(list)
        for record in records:
            by_pair[record.pair].append(record)

        self._records = records
        self._by_pair: dict[Pair, tuple[SplitRecord, ...]] = {}
        self._dates: dict[Pair, tuple[date, ...]] = {}
        for pair, pair_records in by_pair.items():
            ordered = tuple(sorted(pair_records, key=lambda r: (r.effective_date, r.id)))
            self._by_pair[pair] = ordered
            self._dates[pair] = tuple(r.effective_date for r in ordered)

        self._version = _fingerprint(records)
        self._integrity_issues = self._find_duplicate_dates()

        if self._integrity_issues:
            logger.warning("split_history_integrity_violations", extra={
                "snapshot_version": self._version,
                "violation_count": len(self._integrity_issues),
            })

    # ------------------------------------------------------------------
    # Snapshot properties
    # ------------------------------------------------------------------

    @property
    def version(self) -> str:
        """Content fingerprint identifying this snapshot."""
        return self._version

    @property
    def records(self) -> tuple[SplitRecord, ...]:
        return self._records

    @property
    def integrity_issues(self) -> tuple[FlaggedItem, ...]:
        """AMBIGUOUS_SPLIT issues for every duplicated (pair, effective_date)."""
        return self._integrity_issues

    def pairs(self) -> tuple[Pair, ...]:
        return tuple(sorted(self._by_pair))

    def records_for(self, show_id: str, vendor_id: str) -> tuple[SplitRecord, ...]:
        """History of one pair ordered by (effective_date, id)."""
        return self._by_pair.get((show_id, vendor_id), ())

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SplitRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"SplitHistory(records={len(self._records)}, version={self._version!r})"

    # ------------------------------------------------------------------
    # Append-only evolution
    # ------------------------------------------------------------------

    def append(self, record: SplitRecord) -> SplitHistory:
        """
        Return a new snapshot that also contains ``record``.

        The current snapshot is left untouched so resolutions made against
        it stay reproducible.

        Raises:
            SplitHistoryAppendError: duplicate id, or a record already
                occupies the pair's effective_date.
            MalformedRecordError: ``record`` is not a SplitRecord.
        """
        if not isinstance(record, SplitRecord):
            raise MalformedRecordError(
                "split[append]", f"expected SplitRecord, got {type(record).__name__}"
            )
        if any(existing.id == record.id for existing in self._records):
            raise SplitHistoryAppendError(record.id, "split id already exists")
        if record.effective_date in self._dates.get(record.pair, ()):
            raise SplitHistoryAppendError(
                record.id,
                f"show {record.show_id!r} / vendor {record.vendor_id!r} already has a "
                f"split effective {record.effective_date.isoformat()}",
            )

        appended = SplitHistory(self._records + (record,))
        logger.info("split_history_appended", extra={
            "split_id": record.id,
            "show_id": record.show_id,
            "vendor_id": record.vendor_id,
            "effective_date": record.effective_date,
            "previous_version": self._version,
            "snapshot_version": appended.version,
        })
        return appended

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    @traced_engine(
        "split_history", "1.0",
        fingerprint_fields=("show_id", "vendor_id", "as_of_date"),
    )
    def resolution(
        self,
        show_id: str,
        vendor_id: str,
        as_of_date: date,
    ) -> SplitResolution:
        """
        Resolve the split effective on ``as_of_date`` with audit details.

        Raises:
            NoApplicableSplitError: no record of the pair is effective on or
                before ``as_of_date``.
        """
        pair = (show_id, vendor_id)
        dates = self._dates.get(pair, ())
        idx = bisect_right(dates, as_of_date)
        if idx == 0:
            logger.info("split_resolution_failed", extra={
                "show_id": show_id,
                "vendor_id": vendor_id,
                "as_of_date": as_of_date,
                "snapshot_version": self._version,
            })
            raise NoApplicableSplitError(show_id, vendor_id, as_of_date)

        ordered = self._by_pair[pair]
        # Sorted by (effective_date, id): the last qualifying record has the
        # latest date and, among ties, the highest id.
        chosen = ordered[idx - 1]

        issue: FlaggedItem | None = None
        tied = tuple(r.id for r in ordered[:idx] if r.effective_date == chosen.effective_date)
        if len(tied) > 1:
            error = AmbiguousSplitError(show_id, vendor_id, chosen.effective_date, tied)
            issue = FlaggedItem.from_error(f"{show_id}/{vendor_id}", error)
            logger.warning("split_resolution_ambiguous", extra={
                "show_id": show_id,
                "vendor_id": vendor_id,
                "as_of_date": as_of_date,
                "effective_date": chosen.effective_date,
                "tied_split_ids": list(tied),
                "chosen_split_id": chosen.id,
                "snapshot_version": self._version,
            })

        logger.debug("split_resolved", extra={
            "show_id": show_id,
            "vendor_id": vendor_id,
            "as_of_date": as_of_date,
            "split_id": chosen.id,
            "effective_date": chosen.effective_date,
        })

        return SplitResolution(
            record=chosen,
            as_of_date=as_of_date,
            snapshot_version=self._version,
            integrity_issue=issue,
        )

    def resolve(self, show_id: str, vendor_id: str, as_of_date: date) -> SplitRecord:
        """Return the SplitRecord effective on ``as_of_date``.

        Raises:
            NoApplicableSplitError: see ``resolution``.
        """
        return self.resolution(show_id, vendor_id, as_of_date).record

    def _find_duplicate_dates(self) -> tuple[FlaggedItem, ...]:
        issues: list[FlaggedItem] = []
        for pair in sorted(self._by_pair):
            by_date: dict[date, list[int]] = defaultdict(list)
            for record in self._by_pair[pair]:
                by_date[record.effective_date].append(record.id)
            for effective_date, ids in sorted(by_date.items()):
                if len(ids) > 1:
                    error = AmbiguousSplitError(pair[0], pair[1], effective_date, tuple(ids))
                    issues.append(FlaggedItem.from_error(f"{pair[0]}/{pair[1]}", error))
        return tuple(issues)
