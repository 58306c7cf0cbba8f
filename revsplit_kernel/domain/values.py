"""
Values -- Currency, Percentage and Money.

Responsibility:
    Provides the value types every split computation is expressed in:
    Currency, Money and Percentage. These replace primitive types
    (Decimal, float, str) wherever financial data appears in engine logic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Depends only on revsplit_kernel.domain.currency.

Invariants enforced:
    - Money amounts are Decimal, never binary float; floats are rejected
      at construction rather than silently converted.
    - Arithmetic is exact: no operation quantizes. Rounding happens once,
      through Money.round(), at the presentation boundary.
    - Percentages are canonical fractions in [0, 1].

Failure modes:
    - TypeError on float input to Money or Percentage
    - ValueError on invalid amounts, currencies or out-of-range percentages
    - ValueError when arithmetic mixes different currencies
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation

from revsplit_kernel.domain.currency import CurrencyRegistry

SUPPORTED_ROUNDING = frozenset({ROUND_HALF_UP, ROUND_HALF_EVEN})

_ZERO = Decimal("0")
_ONE = Decimal("1")
_HUNDRED = Decimal("100")


def _to_decimal(value: object, label: str) -> Decimal:
    """Convert str/int/Decimal to Decimal, refusing binary floats."""
    if isinstance(value, bool):
        raise TypeError(f"{label} must not be a bool")
    if isinstance(value, float):
        raise TypeError(
            f"{label} must not be a float ({value!r}); pass a str or Decimal"
        )
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid {label}: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{label} must be finite, got {value!r}")
    return result


@dataclass(frozen=True, slots=True)
class Currency:
    """Upper-case ISO 4217 code known to CurrencyRegistry."""

    code: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", CurrencyRegistry.validate(self.code))

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Percentage:
    """
    A share expressed as a Decimal fraction in [0, 1].

    Contract:
        0.30 means thirty percent. Percent points (30) are converted
        explicitly through ``from_points``; the constructor never guesses
        which convention a caller meant.

    Guarantees:
        - Immutable and hashable
        - ``value`` is always a finite Decimal with 0 <= value <= 1
    """

    value: Decimal

    def __post_init__(self) -> None:
        value = _to_decimal(self.value, "percentage")
        if value < _ZERO or value > _ONE:
            raise ValueError(f"Percentage must be within [0, 1], got {value}")
        object.__setattr__(self, "value", value)

    @classmethod
    def of(cls, value: Decimal | str | int) -> Percentage:
        """Build from a fraction, e.g. ``Percentage.of("0.30")``."""
        return cls(value=_to_decimal(value, "percentage"))

    @classmethod
    def from_points(cls, points: Decimal | str | int) -> Percentage:
        """Build from percent points, e.g. ``Percentage.from_points(30)``."""
        return cls(value=_to_decimal(points, "percentage points") / _HUNDRED)

    @classmethod
    def zero(cls) -> Percentage:
        return cls(value=_ZERO)

    @classmethod
    def whole(cls) -> Percentage:
        return cls(value=_ONE)

    def complement(self) -> Percentage:
        """Return ``1 - self``: the network's share when self is the partner's."""
        return Percentage(value=_ONE - self.value)

    @property
    def points(self) -> Decimal:
        """The share in percent points (0.3 -> 30)."""
        return self.value * _HUNDRED

    def __str__(self) -> str:
        return f"{self.points.normalize():f}%"

    def __repr__(self) -> str:
        return f"Percentage({self.value!r})"


@functools.total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """
    A Decimal amount tagged with its Currency.

    Sums, differences and Percentage products stay at full precision;
    mixing currencies raises ValueError and nothing is ever converted.
    Display values come from an explicit ``round()``.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _to_decimal(self.amount, "amount"))

        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """``Money.of("12.50", "USD")``; floats raise TypeError."""
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls(amount=_ZERO, currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == _ZERO

    @property
    def is_negative(self) -> bool:
        return self.amount < _ZERO

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Quantize to the currency minor unit with HALF_UP or HALF_EVEN."""
        if rounding not in SUPPORTED_ROUNDING:
            raise ValueError(f"Unsupported rounding mode: {rounding}")
        rounded = self.amount.quantize(
            CurrencyRegistry.quantum(self.currency.code), rounding=rounding
        )
        return self._with(rounded)

    def _with(self, amount: Decimal) -> Money:
        return Money(amount=amount, currency=self.currency)

    def _other_amount(self, other: Money, operation: str) -> Decimal:
        if other.currency != self.currency:
            raise ValueError(
                f"Cannot {operation} amounts in different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return other.amount

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self._with(self.amount + self._other_amount(other, "add"))

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self._with(self.amount - self._other_amount(other, "subtract"))

    def __neg__(self) -> Money:
        return self._with(-self.amount)

    def __abs__(self) -> Money:
        return self._with(abs(self.amount))

    def __mul__(self, factor: Percentage | Decimal | int) -> Money:
        """Exact product with a Percentage, Decimal or int."""
        if isinstance(factor, Percentage):
            return self._with(self.amount * factor.value)
        if isinstance(factor, bool) or not isinstance(factor, (Decimal, int)):
            return NotImplemented
        return self._with(self.amount * factor)

    __rmul__ = __mul__

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < self._other_amount(other, "compare")

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
