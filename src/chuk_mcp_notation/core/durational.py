"""
Durational - the capability contract for anything with a duration.

A Durational can report its DurationValue, produce a scaled copy of
itself, and describe itself as a notation duration token. Three
concrete variants form a closed set:

- PlainDuration: a bare fraction (1/4 -> '4')
- TupletDuration: a written base value times a ratio (1/4 x 2/3)
- TiedDuration: a base value plus an extension (dotted or tied)

AnyDuration is the type-erasing handle used by heterogeneous trees. It
wraps any variant, forwards the capability set, and compares by
duration value instead of by variant.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from fractions import Fraction

from chuk_mcp_notation.core.duration import DurationValue, Ratio, exact_fraction, notation_token


class Durational(ABC):
    """Abstract duration representation."""

    @abstractmethod
    def duration(self) -> DurationValue:
        """The exact sounding duration."""

    @abstractmethod
    def scaled(self, ratio: Ratio) -> Durational:
        """A copy of the same variant scaled by an exact ratio."""

    @abstractmethod
    def describe(self) -> str:
        """The duration token, e.g. '4', '8.', '4~16'."""


def describe_value(value: DurationValue) -> str:
    """
    Describe an arbitrary duration as a token.

    Single note values and dotted values map directly. Anything else is
    written as a whole note with a multiplier ('1*5/16'), which is exact
    but carries no beaming information.
    """
    token = notation_token(value)
    if token is not None:
        return token
    return f"1*{value.to_text()}"


@dataclass(frozen=True)
class PlainDuration(Durational):
    """A duration that is exactly its fraction."""

    value: DurationValue

    @classmethod
    def of(cls, numerator: int, denominator: int = 1) -> PlainDuration:
        return cls(DurationValue.of(numerator, denominator))

    def duration(self) -> DurationValue:
        return self.value

    def scaled(self, ratio: Ratio) -> PlainDuration:
        return PlainDuration(self.value.scale(ratio))

    def describe(self) -> str:
        return describe_value(self.value)


@dataclass(frozen=True)
class TupletDuration(Durational):
    """
    A written value played at a ratio of its length.

    A triplet eighth is TupletDuration(1/8, 2/3): written '8', sounding 1/12.
    The ratio is normal notes over actual notes (2/3 means three in the
    time of two). A ratio of 1 behaves like a plain value.
    """

    base: DurationValue
    ratio: Fraction = Fraction(1)

    def __post_init__(self) -> None:
        if not isinstance(self.ratio, Fraction):
            object.__setattr__(self, "ratio", exact_fraction(self.ratio))
        # Validates positivity of the product
        self.base.scale(self.ratio)

    @classmethod
    def of(cls, numerator: int, denominator: int, ratio: Ratio = 1) -> TupletDuration:
        return cls(DurationValue.of(numerator, denominator), exact_fraction(ratio))

    @property
    def is_tuplet(self) -> bool:
        return self.ratio != 1

    def duration(self) -> DurationValue:
        return self.base.scale(self.ratio)

    def scaled(self, ratio: Ratio) -> TupletDuration:
        return TupletDuration(self.base.scale(ratio), self.ratio)

    def describe(self) -> str:
        # The written value; the ratio is expressed by the enclosing bracket
        return describe_value(self.base)


@dataclass(frozen=True)
class TiedDuration(Durational):
    """
    A base value extended by a further fraction.

    When the total is expressible with dots (1/4 + 1/8 = '4.') it is
    described as a single token, otherwise as tied tokens ('4~16').
    """

    base: DurationValue
    extension: DurationValue

    @classmethod
    def of(cls, base: DurationValue | str, extension: DurationValue | str) -> TiedDuration:
        return cls(DurationValue.parse(base), DurationValue.parse(extension))

    @classmethod
    def dotted(cls, base: DurationValue, dots: int = 1) -> TiedDuration:
        """A dotted value: each dot adds half of the previous addition."""
        extension = sum(
            (base.value / (2**i) for i in range(1, dots + 1)),
            Fraction(0),
        )
        return cls(base, DurationValue(extension))

    def duration(self) -> DurationValue:
        return self.base + self.extension

    def scaled(self, ratio: Ratio) -> TiedDuration:
        return TiedDuration(self.base.scale(ratio), self.extension.scale(ratio))

    def describe(self) -> str:
        token = notation_token(self.duration())
        if token is not None:
            return token
        return f"{describe_value(self.base)}~{describe_value(self.extension)}"


class AnyDuration(Durational):
    """
    Type-erased handle over any Durational.

    Dispatch happens per call through the wrapped object. Two handles are
    equal when their durations are equal, whatever the wrapped variants.
    """

    __slots__ = ("_inner",)

    def __init__(self, inner: Durational):
        # Never nest handles
        while isinstance(inner, AnyDuration):
            inner = inner._inner
        self._inner = inner

    @property
    def inner(self) -> Durational:
        return self._inner

    def duration(self) -> DurationValue:
        return self._inner.duration()

    def scaled(self, ratio: Ratio) -> AnyDuration:
        return AnyDuration(self._inner.scaled(ratio))

    def describe(self) -> str:
        return self._inner.describe()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnyDuration):
            return NotImplemented
        return self.duration() == other.duration()

    def __hash__(self) -> int:
        return hash(self.duration())

    def __repr__(self) -> str:
        return f"AnyDuration({self._inner!r})"


def erase(durational: Durational) -> AnyDuration:
    """Wrap a durational in the type-erasing handle."""
    return AnyDuration(durational)


def unwrap(durational: Durational) -> Durational:
    """The concrete variant behind a handle (or the durational itself)."""
    if isinstance(durational, AnyDuration):
        return durational.inner
    return durational
