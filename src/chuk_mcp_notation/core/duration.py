"""
DurationValue - exact rational durations.

A DurationValue is a fraction of a whole note (1/4 is a quarter note).
Uses Fraction for exact, arbitrary-precision arithmetic so repeated
tuplet scaling never drifts and the sum invariant never trips on
rounding.
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import ClassVar

from chuk_mcp_notation.errors import InvalidDuration

Ratio = Fraction | int


def exact_fraction(value: Ratio | float | str) -> Fraction:
    """
    Convert a number or 'n/d' text to an exact Fraction.

    Floats go through their shortest decimal text, so 0.1 becomes 1/10
    and never its binary approximation.

    Raises:
        InvalidDuration: If the value is not a finite rational number
    """
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    try:
        return Fraction(str(value).strip())
    except (ValueError, ZeroDivisionError) as e:
        raise InvalidDuration(f"Not an exact duration: {value!r}") from e


@dataclass(frozen=True, order=True)
class DurationValue:
    """
    An exact, strictly positive duration in whole notes.

    Equality and ordering are defined on the reduced fraction, so
    DurationValue(Fraction(2, 4)) == DurationValue(Fraction(1, 2)).

    Immutable and hashable.
    """

    value: Fraction

    # Common durations (defined after class)
    WHOLE: ClassVar[DurationValue]
    HALF: ClassVar[DurationValue]
    QUARTER: ClassVar[DurationValue]
    EIGHTH: ClassVar[DurationValue]
    SIXTEENTH: ClassVar[DurationValue]
    THIRTY_SECOND: ClassVar[DurationValue]

    def __post_init__(self) -> None:
        if not isinstance(self.value, Fraction):
            object.__setattr__(self, "value", exact_fraction(self.value))
        if self.value <= 0:
            raise InvalidDuration(f"Duration must be positive, got {self.value}")

    @classmethod
    def of(cls, numerator: int, denominator: int = 1) -> DurationValue:
        """Create from a numerator/denominator pair."""
        if denominator <= 0:
            raise InvalidDuration(f"Denominator must be positive, got {denominator}")
        return cls(Fraction(numerator, denominator))

    @classmethod
    def parse(cls, text: str | int | Fraction | DurationValue) -> DurationValue:
        """
        Parse a duration from '1/4', '3/8', '2' or a number.

        Raises:
            InvalidDuration: If the text is malformed or not positive
        """
        if isinstance(text, DurationValue):
            return text
        try:
            value = exact_fraction(text)
        except InvalidDuration as e:
            raise InvalidDuration(f"Invalid duration: {text!r}") from e
        return cls(value)

    @property
    def numerator(self) -> int:
        return self.value.numerator

    @property
    def denominator(self) -> int:
        return self.value.denominator

    def add(self, other: DurationValue) -> DurationValue:
        """Exact sum of two durations."""
        return DurationValue(self.value + other.value)

    def subtract(self, other: DurationValue) -> DurationValue:
        """
        Exact difference.

        Raises:
            InvalidDuration: If the result is not positive
        """
        result = self.value - other.value
        if result <= 0:
            raise InvalidDuration(f"Subtracting {other} from {self} leaves {result}")
        return DurationValue(result)

    def compare(self, other: DurationValue) -> int:
        """Three-way comparison: -1, 0 or 1."""
        if self.value < other.value:
            return -1
        if self.value > other.value:
            return 1
        return 0

    def scale(self, ratio: Ratio) -> DurationValue:
        """Multiply by an exact ratio (e.g. Fraction(2, 3) for a triplet)."""
        return DurationValue(self.value * exact_fraction(ratio))

    def to_text(self) -> str:
        """Render as 'n/d', or 'n' for whole-number durations."""
        if self.value.denominator == 1:
            return str(self.value.numerator)
        return f"{self.value.numerator}/{self.value.denominator}"

    def __add__(self, other: DurationValue) -> DurationValue:
        if not isinstance(other, DurationValue):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: DurationValue) -> DurationValue:
        if not isinstance(other, DurationValue):
            return NotImplemented
        return self.subtract(other)

    def __mul__(self, ratio: Ratio) -> DurationValue:
        if isinstance(ratio, (int, Fraction)):
            return self.scale(ratio)
        return NotImplemented

    def __rmul__(self, ratio: Ratio) -> DurationValue:
        return self.__mul__(ratio)

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"DurationValue({self.to_text()})"


# Define common durations
DurationValue.WHOLE = DurationValue(Fraction(1))
DurationValue.HALF = DurationValue(Fraction(1, 2))
DurationValue.QUARTER = DurationValue(Fraction(1, 4))
DurationValue.EIGHTH = DurationValue(Fraction(1, 8))
DurationValue.SIXTEENTH = DurationValue(Fraction(1, 16))
DurationValue.THIRTY_SECOND = DurationValue(Fraction(1, 32))


def total_duration(durations: list[DurationValue]) -> DurationValue:
    """
    Exact sum of a non-empty list of durations.

    Raises:
        InvalidDuration: If the list is empty (a zero-length total)
    """
    if not durations:
        raise InvalidDuration("Cannot sum an empty sequence of durations")
    return DurationValue(sum((d.value for d in durations), Fraction(0)))


@dataclass(frozen=True)
class TimeSignature:
    """
    A time signature: beats per bar over the beat unit's denominator.

    Examples:
        TimeSignature(4, 4) = 4/4, bar duration 1
        TimeSignature(6, 8) = 6/8, bar duration 3/4
    """

    numerator: int
    denominator: int

    # Common time signatures (defined after class)
    COMMON_TIME: ClassVar[TimeSignature]
    WALTZ: ClassVar[TimeSignature]

    def __post_init__(self) -> None:
        if self.numerator <= 0:
            raise InvalidDuration(f"Beats per bar must be positive, got {self.numerator}")
        if not _is_power_of_two(self.denominator):
            raise InvalidDuration(
                f"Time signature denominator must be a power of two, got {self.denominator}"
            )

    @property
    def beat_unit(self) -> DurationValue:
        """Duration of one beat unit (1/4 for x/4)."""
        return DurationValue.of(1, self.denominator)

    @property
    def bar_duration(self) -> DurationValue:
        """Total duration of one bar."""
        return DurationValue.of(self.numerator, self.denominator)

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"

    @classmethod
    def parse(cls, notation: str) -> TimeSignature:
        """
        Parse a time signature from notation like '4/4', '3/4', '6/8'.

        Raises:
            InvalidDuration: If the notation is malformed
        """
        parts = notation.split("/")
        if len(parts) != 2:
            raise InvalidDuration(f"Invalid time signature format: {notation}")
        try:
            return cls(int(parts[0]), int(parts[1]))
        except ValueError as e:
            raise InvalidDuration(f"Invalid time signature format: {notation}") from e


def _is_power_of_two(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0


def notation_token(value: DurationValue) -> str | None:
    """
    Map a duration to a single note-value token, if one exists.

    Handles plain and dotted values down to 1/128:
    1/4 -> '4', 3/8 -> '4.', 7/16 -> '4..', 2 -> '\\breve'.

    Returns:
        The token, or None if the duration needs a tie or a multiplier
    """
    num, den = value.numerator, value.denominator
    if not _is_power_of_two(den):
        return None
    if num == 2 and den == 1:
        return "\\breve"
    if num == 3 and den == 1:
        return "\\breve."
    # num must be 2**(k+1) - 1 for k dots
    dots = (num + 1).bit_length() - 2
    if num != (1 << (dots + 1)) - 1:
        return None
    base = den >> dots
    if base < 1 or den > 128:
        return None
    return str(base) + "." * dots


# Define common time signatures
TimeSignature.COMMON_TIME = TimeSignature(4, 4)
TimeSignature.WALTZ = TimeSignature(3, 4)
