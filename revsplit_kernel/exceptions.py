"""
Typed Exception Hierarchy for the Revenue Split Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Split resolution and payout reconciliation fail in a handful of well-known
ways. Each has its own class and a machine-readable ``code`` so callers
catch by type, log structured data and surface the same code in batch
results (see ``revsplit_kernel.domain.dtos.FlaggedItem``).

    try:
        split = history.resolve(show_id, vendor_id, invoice_date)
    except NoApplicableSplitError as e:
        log.warning("no split for %s/%s on %s", e.show_id, e.vendor_id, e.as_of_date)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RevenueSplitError (base)
    |
    +-- SplitResolutionError
    |   +-- NoApplicableSplitError
    |   +-- AmbiguousSplitError
    |
    +-- SplitHistoryAppendError
    |
    +-- PaymentDataError
    |   +-- MissingPaymentAmountError
    |   +-- UnknownPaymentError
    |   +-- PaymentAmountConflictError
    |
    +-- MalformedRecordError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised / Flagged
-------------|-------------------------------|-----------------------------------------
Resolution   | NO_APPLICABLE_SPLIT           | Invoice predates every split for the pair
             | AMBIGUOUS_SPLIT               | Two splits share one effective_date
History      | SPLIT_HISTORY_APPEND_REJECTED | Append would duplicate an id or date
-------------|-------------------------------|-----------------------------------------
Payment      | MISSING_PAYMENT_AMOUNT        | payment_id set, paid amount missing
             | UNKNOWN_PAYMENT               | Ledger payment not yet known (null)
             | PAYMENT_AMOUNT_CONFLICT       | Rows of one payment disagree on amount
-------------|-------------------------------|-----------------------------------------
Input        | MALFORMED_RECORD              | Structurally invalid record
Config       | CONFIGURATION_ERROR           | Invalid engine settings

===============================================================================
"""


class RevenueSplitError(Exception):
    """
    Base exception for all revenue split errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "REVENUE_SPLIT_ERROR"


# Split resolution


class SplitResolutionError(RevenueSplitError):
    """Base exception for split resolution failures."""

    code: str = "SPLIT_RESOLUTION_ERROR"


class NoApplicableSplitError(SplitResolutionError):
    """No split record is effective on or before the requested date."""

    code: str = "NO_APPLICABLE_SPLIT"

    def __init__(self, show_id: str, vendor_id: str, as_of_date: object):
        self.show_id = show_id
        self.vendor_id = vendor_id
        self.as_of_date = str(as_of_date)
        super().__init__(
            f"No split applies to show {show_id!r} / vendor {vendor_id!r} "
            f"as of {as_of_date}"
        )


class AmbiguousSplitError(SplitResolutionError):
    """Several split records share one effective_date for the same pair."""

    code: str = "AMBIGUOUS_SPLIT"

    def __init__(
        self,
        show_id: str,
        vendor_id: str,
        effective_date: object,
        split_ids: tuple[int, ...],
    ):
        self.show_id = show_id
        self.vendor_id = vendor_id
        self.effective_date = str(effective_date)
        self.split_ids = tuple(split_ids)
        super().__init__(
            f"Splits {list(self.split_ids)} share effective_date {effective_date} "
            f"for show {show_id!r} / vendor {vendor_id!r}"
        )


class SplitHistoryAppendError(RevenueSplitError):
    """An appended split record would break the append-only invariants."""

    code: str = "SPLIT_HISTORY_APPEND_REJECTED"

    def __init__(self, split_id: int, reason: str):
        self.split_id = split_id
        self.reason = reason
        super().__init__(f"Cannot append split {split_id}: {reason}")


# Payment data


class PaymentDataError(RevenueSplitError):
    """Base exception for inconsistent payment facts."""

    code: str = "PAYMENT_DATA_ERROR"


class MissingPaymentAmountError(PaymentDataError):
    """A payout row references a payment but carries no paid amount."""

    code: str = "MISSING_PAYMENT_AMOUNT"

    def __init__(self, bill_number: str, payment_id: str):
        self.bill_number = bill_number
        self.payment_id = payment_id
        super().__init__(
            f"Bill {bill_number!r} references payment {payment_id!r} "
            f"without an amount paid"
        )


class UnknownPaymentError(PaymentDataError):
    """The collected amount of a ledger entry is not yet known."""

    code: str = "UNKNOWN_PAYMENT"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Payment received for entry {entry_id!r} is unknown")


class PaymentAmountConflictError(PaymentDataError):
    """Rows sharing one payment_id report different paid amounts."""

    code: str = "PAYMENT_AMOUNT_CONFLICT"

    def __init__(self, payment_id: str, amounts: tuple[str, ...], counted: str):
        self.payment_id = payment_id
        self.amounts = tuple(amounts)
        self.counted = counted
        super().__init__(
            f"Payment {payment_id!r} appears with amounts {list(self.amounts)}; "
            f"counted {counted}"
        )


# Input shape


class MalformedRecordError(RevenueSplitError):
    """A record is structurally invalid and cannot be processed."""

    code: str = "MALFORMED_RECORD"

    def __init__(self, record_key: str, reason: str):
        self.record_key = record_key
        self.reason = reason
        super().__init__(f"Malformed record {record_key!r}: {reason}")


class ConfigurationError(RevenueSplitError):
    """Engine settings failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, setting: str, value: object, reason: str):
        self.setting = setting
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid setting {setting}={value!r}: {reason}")
