"""Mapping engine: raw backend rows to typed split, ledger and payout records."""

from revsplit_ingestion.mapping.engine import (
    MappingBatch,
    RecordKind,
    canonical_payment_id,
    map_ledger_entry,
    map_partner_payout,
    map_records,
    map_split_record,
    parse_date,
    parse_money,
    parse_percentage,
)

__all__ = [
    "canonical_payment_id",
    "map_ledger_entry",
    "map_partner_payout",
    "map_records",
    "map_split_record",
    "parse_date",
    "parse_money",
    "parse_percentage",
    "MappingBatch",
    "RecordKind",
]
