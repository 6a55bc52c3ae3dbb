"""
Values -- Decimal conversion and rounding helpers.

Responsibility:
    Central place for turning raw inputs into Decimal and for rounding euro
    amounts, percentages, kWh figures and prices to their fixed precision.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic: floats are rejected at the conversion boundary.
    - Rounding precision and mode come from a single Precision instance, so
      every line item of a settlement is rounded identically.

Failure modes:
    - TypeError when a float is passed to ``to_decimal``.
    - ValueError on strings that are not numbers.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
HUNDRED = Decimal("100")

SUPPORTED_ROUNDING_MODES = frozenset(
    {
        "ROUND_HALF_UP",
        "ROUND_HALF_EVEN",
        "ROUND_HALF_DOWN",
        "ROUND_UP",
        "ROUND_DOWN",
        "ROUND_CEILING",
        "ROUND_FLOOR",
    }
)


def to_decimal(value: Decimal | str | int) -> Decimal:
    """
    Convert a value to Decimal.

    Raises:
        TypeError: If value is a float (binary floats cannot carry euro cents).
        ValueError: If value is not a valid number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError(f"float is not allowed for energy or money values: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e


def quantize(value: Decimal, places: int, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round ``value`` to ``places`` decimal places."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=rounding)


def plain(value: Decimal) -> str:
    """Shortest fixed-point form: Decimal("0.500") and Decimal("0.5") both give "0.5"."""
    return format(value.normalize(), "f")


@dataclass(frozen=True, slots=True)
class Precision:
    """
    Rounding rules for one deployment.

    Contract:
        Money is rounded per row to ``money_places`` with ``rounding``;
        audit figures (percentages, kWh, price per kWh) are rounded to their
        own places with the same mode.

    Guarantees:
        - Immutable and hashable.
        - ``rounding`` is one of the decimal module's rounding constants.
    """

    money_places: int = 2
    percent_places: int = 6
    kwh_places: int = 3
    price_places: int = 9
    rounding: str = ROUND_HALF_UP

    def __post_init__(self) -> None:
        if self.rounding not in SUPPORTED_ROUNDING_MODES:
            raise ValueError(f"Unsupported rounding mode: {self.rounding}")
        for name in ("money_places", "percent_places", "kwh_places", "price_places"):
            places = getattr(self, name)
            if not isinstance(places, int) or places < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {places!r}")

    def money(self, value: Decimal) -> Decimal:
        return quantize(value, self.money_places, self.rounding)

    def percent(self, value: Decimal) -> Decimal:
        return quantize(value, self.percent_places, self.rounding)

    def kwh(self, value: Decimal) -> Decimal:
        return quantize(value, self.kwh_places, self.rounding)

    def price(self, value: Decimal) -> Decimal:
        return quantize(value, self.price_places, self.rounding)

    @property
    def money_unit(self) -> Decimal:
        """Smallest representable money amount (0.01 for cents)."""
        return Decimal(1).scaleb(-self.money_places)


DEFAULT_PRECISION = Precision()
