"""Currency -- ISO 4217 codes partners are billed and paid in, with display precision."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Exponent passed to ``Decimal.quantize`` when rounding for display."""
        return Decimal(1).scaleb(-self.decimal_places)


def _normalize(code: object) -> str | None:
    if not isinstance(code, str) or not code.strip():
        return None
    return code.strip().upper()


class CurrencyRegistry:
    """
    Known currencies and their minor-unit precision.

    Amounts are stored at full Decimal precision; ``decimal_places`` only
    matters when a caller asks ``Money.round`` for a display value.
    """

    _TABLE: ClassVar[dict[str, tuple[int, str]]] = {
        "USD": (2, "US Dollar"),
        "CAD": (2, "Canadian Dollar"),
        "EUR": (2, "Euro"),
        "GBP": (2, "Pound Sterling"),
        "AUD": (2, "Australian Dollar"),
        "NZD": (2, "New Zealand Dollar"),
        "CHF": (2, "Swiss Franc"),
        "SEK": (2, "Swedish Krona"),
        "NOK": (2, "Norwegian Krone"),
        "DKK": (2, "Danish Krone"),
        "MXN": (2, "Mexican Peso"),
        "BRL": (2, "Brazilian Real"),
        "INR": (2, "Indian Rupee"),
        "SGD": (2, "Singapore Dollar"),
        "ZAR": (2, "South African Rand"),
        "JPY": (0, "Japanese Yen"),
        "KRW": (0, "South Korean Won"),
        "KWD": (3, "Kuwaiti Dinar"),
        "BHD": (3, "Bahraini Dinar"),
    }

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return _normalize(code) in cls._TABLE

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        normalized = _normalize(code)
        if normalized not in cls._TABLE:
            return None
        places, name = cls._TABLE[normalized]
        return CurrencyInfo(normalized, places, name)

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def quantum(cls, code: str) -> Decimal:
        """Display quantum for ``code`` (0.01 for USD, 1 for JPY)."""
        return Decimal(1).scaleb(-cls.get_decimal_places(code))

    @classmethod
    def validate(cls, code: str) -> str:
        """Return the normalised code or raise ValueError."""
        normalized = _normalize(code)
        if normalized is None or len(normalized) != 3:
            raise ValueError(f"Currency code must be 3 letters: {code!r}")
        if normalized not in cls._TABLE:
            raise ValueError(f"Unknown ISO 4217 currency code: {code!r}")
        return normalized
