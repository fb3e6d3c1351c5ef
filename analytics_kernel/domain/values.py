"""
Values -- Immutable, self-validating monetary value objects.

Responsibility:
    Provides Currency, Money and ExchangeRate, the value types every report
    computation uses in place of raw Decimal amounts.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine. No outward dependencies except
    analytics_kernel.domain.currency (CurrencyRegistry).

Invariants enforced:
    - Amounts are always Decimal; floats are rejected at construction.
    - Currency codes are validated ISO 4217 codes.
    - Arithmetic and comparison between two Money values require identical
      currencies; mixing raises CurrencyMismatchError.
    - Division rounds half-up at INTERNAL_DECIMAL_PLACES so repeating
      decimals (average costs, prorations) never accumulate drift across
      rows. Display rounding is explicit via ``round()``.

Failure modes:
    - InvalidCurrencyError on unknown currency codes.
    - CurrencyMismatchError when arithmetic mixes currencies.
    - ValueError on float or non-numeric amounts.
    - ZeroDivisionError propagates from ``divide`` by zero.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from analytics_kernel.domain.currency import CurrencyRegistry
from analytics_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError

# Precision for intermediate accumulation (matches the Numeric(38, 9) store)
INTERNAL_DECIMAL_PLACES = 9
INTERNAL_EXPONENT = Decimal(1).scaleb(-INTERNAL_DECIMAL_PLACES)

DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Convert an int/str/Decimal to Decimal, refusing floats.

    Raises:
        ValueError: if ``value`` is a float or not numeric.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise ValueError(f"Float amounts are not allowed: {value!r}")
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def quantize_internal(value: Decimal) -> Decimal:
    """Round half-up to the internal accumulation scale."""
    return value.quantize(INTERNAL_EXPONENT, rounding=DEFAULT_ROUNDING)


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Guarantees:
        - Immutable and hashable.
        - ``code`` is uppercase, stripped and registered.
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise InvalidCurrencyError(str(self.code))
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        """ISO 4217 minor-unit decimal places."""
        return CurrencyRegistry.get_decimal_places(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency -- they are NEVER separated.

    Guarantees:
        - Immutable and hashable.
        - ``amount`` is always a Decimal (never float).
        - Addition, subtraction and comparison enforce same currency.

    Non-goals:
        - Does NOT perform currency conversion (use ExchangeRate.convert).
        - Does NOT auto-round for display; call ``round()``.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """Factory method for creating Money (no floats at the call site)."""
        return cls(amount=to_decimal(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def sum(cls, values: Iterable[Money], currency: str | Currency) -> Money:
        """
        Sum Money values that must all be in ``currency``.

        The currency is mandatory so an empty sequence still yields a
        well-typed zero.

        Raises:
            CurrencyMismatchError: if any value is in another currency.
        """
        total = cls.zero(currency)
        for value in values:
            total = total + value
        return total

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = DEFAULT_ROUNDING) -> Money:
        """Round to the currency's ISO 4217 decimal places (half-up default)."""
        exponent = Decimal(1).scaleb(-self.currency.decimal_places)
        return Money(amount=self.amount.quantize(exponent, rounding=rounding), currency=self.currency)

    def _check_currency(self, other: Money, operation: str) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                expected=self.currency.code,
                received=other.currency.code,
                operation=operation,
            )

    def add(self, other: Money) -> Money:
        """Add two Money values. Must be same currency."""
        self._check_currency(other, "add")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def subtract(self, other: Money) -> Money:
        """Subtract two Money values. Must be same currency."""
        self._check_currency(other, "subtract")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def multiply(self, factor: Decimal | int | str) -> Money:
        """Multiply by a scalar (exact)."""
        return Money(amount=self.amount * to_decimal(factor), currency=self.currency)

    def divide(self, divisor: Decimal | int | str) -> Money:
        """Divide by a scalar, rounded half-up at the internal scale."""
        quotient = self.amount / to_decimal(divisor)
        return Money(amount=quantize_internal(quotient), currency=self.currency)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if not isinstance(factor, (Decimal, int, str)) or isinstance(factor, bool):
            return NotImplemented
        return self.multiply(factor)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        if not isinstance(divisor, (Decimal, int, str)) or isinstance(divisor, bool):
            return NotImplemented
        return self.divide(divisor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """
    Exchange rate between two currencies: 1 from_currency = rate to_currency.

    The only sanctioned way to bring amounts of different currencies into
    one report; the engine never applies an implicit rate.
    """

    from_currency: Currency
    to_currency: Currency
    rate: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.from_currency, str):
            object.__setattr__(self, "from_currency", Currency(self.from_currency))
        if isinstance(self.to_currency, str):
            object.__setattr__(self, "to_currency", Currency(self.to_currency))
        object.__setattr__(self, "rate", to_decimal(self.rate))
        if self.rate <= 0:
            raise ValueError(f"Exchange rate must be positive: {self.rate}")

    @classmethod
    def of(
        cls,
        from_currency: str | Currency,
        to_currency: str | Currency,
        rate: Decimal | str | int,
    ) -> ExchangeRate:
        """Factory method for creating ExchangeRate."""
        return cls(from_currency=from_currency, to_currency=to_currency, rate=to_decimal(rate))

    def convert(self, money: Money) -> Money:
        """
        Convert money from ``from_currency`` to ``to_currency``.

        Raises:
            CurrencyMismatchError: if money is not in from_currency.
        """
        if money.currency != self.from_currency:
            raise CurrencyMismatchError(
                expected=self.from_currency.code,
                received=money.currency.code,
                operation="convert",
            )
        return Money(amount=quantize_internal(money.amount * self.rate), currency=self.to_currency)

    def __str__(self) -> str:
        return f"{self.from_currency}/{self.to_currency} = {self.rate}"
