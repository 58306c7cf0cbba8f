"""
DTOs -- Result carriers shared by the engines.

Batch engines report expected data gaps as values, not exceptions, so one
bad item never aborts the rest of a batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class FlaggedItem:
    """
    One input item the engine could not (fully) account for.

    Contract:
        Carries the item's business key, a machine-readable code matching
        the ``code`` of the corresponding exception class, a human-readable
        message and optional structured details.

    Non-goals:
        - Does NOT raise -- it IS the error representation.
    """

    item_key: str
    code: str
    message: str
    details: dict[str, Any] | None = None

    @classmethod
    def from_error(cls, item_key: str, error: Exception) -> FlaggedItem:
        """Build a flag from a typed RevenueSplitError (or any exception)."""
        code = getattr(error, "code", type(error).__name__.upper())
        details = {
            k: v for k, v in vars(error).items() if not k.startswith("_")
        } or None
        return cls(item_key=item_key, code=code, message=str(error), details=details)
