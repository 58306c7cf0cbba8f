"""
Mapping engine: pure transformation from raw REST-shaped dicts to typed records.

The accounting backend returns loosely typed JSON: percentages written
either as fractions (0.30) or percent points (30), amounts as numbers or
strings, payment ids that are sometimes a JSON object listing several
transactions.  Everything is normalised here, once, so the engines only
ever see SplitRecord, LedgerEntry and PartnerPayout values.  ZERO I/O.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from revsplit_config.schema import EngineSettings, PercentScale
from revsplit_kernel.domain.dtos import FlaggedItem
from revsplit_kernel.domain.records import (
    LedgerEntry,
    PartnerPayout,
    RevenueCategory,
    SplitRecord,
)
from revsplit_kernel.domain.values import Money, Percentage
from revsplit_kernel.exceptions import MalformedRecordError
from revsplit_kernel.logging_config import get_logger

logger = get_logger("ingestion.mapping")

_ONE = Decimal("1")


class RecordKind(str, Enum):
    """Which record type a batch of raw rows maps to."""

    SPLIT = "split"
    LEDGER = "ledger"
    PAYOUT = "payout"


@dataclass(frozen=True)
class MappingBatch:
    """Typed records plus MALFORMED_RECORD items, keyed by row index."""

    kind: RecordKind
    records: tuple[Any, ...]
    flagged: tuple[FlaggedItem, ...] = ()

    @property
    def success(self) -> bool:
        return not self.flagged


# -----------------------------------------------------------------------------
# Field parsers (pure)
# -----------------------------------------------------------------------------


def _first(raw: Mapping[str, Any], *names: str) -> Any:
    """Value of the first present, non-None key among ``names``."""
    for name in names:
        value = raw.get(name)
        if value is not None:
            return value
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise MalformedRecordError(field, f"expected a number, got {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # JSON numbers arrive as floats; their shortest repr is the literal
        # the backend sent.
        value = repr(value)
    s = str(value).strip().replace(",", "")
    try:
        result = Decimal(s)
    except (InvalidOperation, ValueError) as e:
        raise MalformedRecordError(field, f"cannot parse number from {value!r}") from e
    if not result.is_finite():
        raise MalformedRecordError(field, f"number must be finite, got {value!r}")
    return result


def parse_money(
    value: Any,
    currency: str,
    field: str = "amount",
    required: bool = False,
) -> Money | None:
    """
    Parse an amount into Money.

    Blank values are None (unknown), or MALFORMED_RECORD when ``required``.
    """
    if _is_blank(value):
        if required:
            raise MalformedRecordError(field, "required amount is missing")
        return None
    return Money(amount=_to_decimal(value, field), currency=currency)


def parse_percentage(
    value: Any,
    scale: PercentScale = PercentScale.AUTO,
    field: str = "percentage",
) -> Percentage:
    """
    Normalise a raw percentage to a canonical fraction.

    ``AUTO`` reads values above 1 as percent points and everything else as
    a fraction, so 1 means 100% and 30 means 30%.
    """
    if _is_blank(value):
        raise MalformedRecordError(field, "percentage is missing")
    number = _to_decimal(value, field)
    points = scale is PercentScale.POINTS or (scale is PercentScale.AUTO and number > _ONE)
    try:
        return Percentage.from_points(number) if points else Percentage.of(number)
    except ValueError as e:
        raise MalformedRecordError(field, str(e)) from e


def _parse_one_date(value: Any, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise MalformedRecordError(field, f"cannot parse date from {value!r}")
    s = value.strip()
    try:
        if len(s) > 10:
            return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
        return date.fromisoformat(s)
    except ValueError as e:
        raise MalformedRecordError(field, f"cannot parse date from {value!r}") from e


def parse_date(value: Any, field: str = "date", required: bool = True) -> date | None:
    """
    Parse an ISO date (``YYYY-MM-DD``, optionally with a time part).

    A JSON array of dates, as sent for payments made in several instalments,
    resolves to the latest of them.
    """
    if _is_blank(value):
        if required:
            raise MalformedRecordError(field, "required date is missing")
        return None
    if isinstance(value, str) and value.strip().startswith("["):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise MalformedRecordError(field, f"cannot parse dates from {value!r}") from e
    if isinstance(value, (list, tuple)):
        dates = [_parse_one_date(v, field) for v in value if not _is_blank(v)]
        if not dates:
            if required:
                raise MalformedRecordError(field, "required date is missing")
            return None
        return max(dates)
    return _parse_one_date(value, field)


def canonical_payment_id(value: Any) -> str | None:
    """
    Canonical payment identity used for deduplication.

    ``{"TxnId": ["42", "7"]}`` (object or JSON text) becomes ``"42,7"``
    sorted as text, so the same set of transactions always maps to the same
    id.  Blank ids are None.  Other text is kept as-is after trimming.
    """
    if _is_blank(value):
        return None
    parsed = value
    if isinstance(value, str):
        text = value.strip()
        if not text.startswith("{"):
            return text
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return text
    if isinstance(parsed, Mapping):
        txn_ids = parsed.get("TxnId")
        if isinstance(txn_ids, (list, tuple)):
            ids = sorted({str(t).strip() for t in txn_ids if not _is_blank(t)})
            return ",".join(ids) or None
        if isinstance(txn_ids, (str, int)) and not _is_blank(txn_ids):
            return str(txn_ids).strip()
        return json.dumps(parsed, sort_keys=True)
    return str(parsed).strip()


def _text(raw: Mapping[str, Any], field: str, *names: str) -> str:
    value = _first(raw, *names)
    if _is_blank(value):
        raise MalformedRecordError(field, "required field is missing")
    return str(value).strip()


def _parse_category(value: Any) -> RevenueCategory:
    if _is_blank(value):
        return RevenueCategory.ADS
    if isinstance(value, RevenueCategory):
        return value
    try:
        return RevenueCategory(str(value).strip().lower())
    except ValueError as e:
        raise MalformedRecordError("category", f"unknown revenue category {value!r}") from e


# -----------------------------------------------------------------------------
# Record mappers (pure)
# -----------------------------------------------------------------------------


def map_split_record(
    raw: Mapping[str, Any],
    settings: EngineSettings | None = None,
) -> SplitRecord:
    """Map one split-history row (``split_id``, ``show_qbo_id``, ... accepted)."""
    settings = settings or EngineSettings()
    raw_id = _first(raw, "id", "split_id")
    if isinstance(raw_id, bool) or _is_blank(raw_id):
        raise MalformedRecordError("id", "split id is missing")
    try:
        split_id = int(raw_id)
    except (TypeError, ValueError) as e:
        raise MalformedRecordError("id", f"split id must be an integer, got {raw_id!r}") from e

    return SplitRecord(
        id=split_id,
        show_id=_text(raw, "show_id", "show_id", "show_qbo_id"),
        vendor_id=_text(raw, "vendor_id", "vendor_id", "vendor_qbo_id"),
        partner_pct_ads=parse_percentage(
            raw.get("partner_pct_ads"), settings.percent_scale, "partner_pct_ads"
        ),
        partner_pct_programmatic=parse_percentage(
            raw.get("partner_pct_programmatic"), settings.percent_scale,
            "partner_pct_programmatic",
        ),
        effective_date=parse_date(raw.get("effective_date"), "effective_date"),
    )


def map_ledger_entry(
    raw: Mapping[str, Any],
    settings: EngineSettings | None = None,
) -> LedgerEntry:
    """Map one revenue-ledger row; a blank received amount stays unknown."""
    settings = settings or EngineSettings()
    return LedgerEntry(
        entry_id=_text(raw, "entry_id", "entry_id", "id"),
        show_id=_text(raw, "show_id", "show_id", "show_qbo_id"),
        vendor_id=_text(raw, "vendor_id", "vendor_id", "vendor_qbo_id"),
        customer=str(raw.get("customer") or "").strip(),
        invoice_date=parse_date(raw.get("invoice_date"), "invoice_date"),
        invoice_amount=parse_money(
            raw.get("invoice_amount"), settings.currency, "invoice_amount", required=True
        ),
        effective_payment_received=parse_money(
            raw.get("effective_payment_received"), settings.currency,
            "effective_payment_received",
        ),
        category=_parse_category(raw.get("category")),
        invoice_description=str(raw.get("invoice_description") or "").strip(),
    )


def map_partner_payout(
    raw: Mapping[str, Any],
    settings: EngineSettings | None = None,
) -> PartnerPayout:
    """Map one partner bill row, canonicalising its payment id."""
    settings = settings or EngineSettings()
    return PartnerPayout(
        bill_number=_text(raw, "bill_number", "bill_number"),
        bill_date=parse_date(raw.get("bill_date"), "bill_date"),
        partner_id=_text(raw, "partner_id", "partner_id", "partner_name"),
        show_id=_text(raw, "show_id", "show_id", "show_name"),
        bill_amount=parse_money(raw.get("bill_amount"), settings.currency, "bill_amount"),
        payment_id=canonical_payment_id(raw.get("payment_id")),
        date_of_payment=parse_date(raw.get("date_of_payment"), "date_of_payment", required=False),
        effective_billed_amount_paid=parse_money(
            raw.get("effective_billed_amount_paid"), settings.currency,
            "effective_billed_amount_paid",
        ),
    )


_MAPPERS = {
    RecordKind.SPLIT: map_split_record,
    RecordKind.LEDGER: map_ledger_entry,
    RecordKind.PAYOUT: map_partner_payout,
}


def map_records(
    kind: RecordKind | str,
    rows: Iterable[Mapping[str, Any]],
    settings: EngineSettings | None = None,
) -> MappingBatch:
    """
    Map a whole list of raw rows. Pure function.

    Rows that cannot be mapped are reported as MALFORMED_RECORD items keyed
    ``"<kind>[<index>]"``; they never abort the batch.
    """
    kind = RecordKind(kind)
    mapper = _MAPPERS[kind]
    settings = settings or EngineSettings()

    records: list[Any] = []
    flagged: list[FlaggedItem] = []
    for index, raw in enumerate(rows):
        key = f"{kind.value}[{index}]"
        if not isinstance(raw, Mapping):
            error = MalformedRecordError(key, f"expected a mapping, got {type(raw).__name__}")
            flagged.append(FlaggedItem.from_error(key, error))
            continue
        try:
            records.append(mapper(raw, settings))
        except MalformedRecordError as e:
            flagged.append(FlaggedItem(
                item_key=key,
                code=e.code,
                message=str(e),
                details={"field": e.record_key, "reason": e.reason},
            ))
        except (TypeError, ValueError) as e:
            error = MalformedRecordError(key, str(e))
            flagged.append(FlaggedItem.from_error(key, error))

    if flagged:
        logger.warning("mapping_rows_rejected", extra={
            "record_kind": kind,
            "row_count": len(records) + len(flagged),
            "rejected_count": len(flagged),
        })
    logger.debug("mapping_completed", extra={
        "record_kind": kind,
        "mapped_count": len(records),
    })
    return MappingBatch(kind=kind, records=tuple(records), flagged=tuple(flagged))
