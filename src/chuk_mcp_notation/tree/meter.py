"""
Meter fitting - lay a flat event stream into measures and beats.

Transcribed material often arrives as a plain sequence of events with
durations and no grouping. fit_to_meter() pours that stream into a
meter: each measure becomes a group of beat groups, and any event that
crosses a beat or bar line is split into tied fragments. Fragments are
further split so every leaf has a single (possibly dotted) note value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from fractions import Fraction

from chuk_mcp_notation.constants import GroupKind
from chuk_mcp_notation.core.duration import DurationValue, TimeSignature, notation_token
from chuk_mcp_notation.core.durational import Durational, PlainDuration
from chuk_mcp_notation.errors import DurationMismatch, NotationError
from chuk_mcp_notation.tree.events import Event, Rest, with_tie
from chuk_mcp_notation.tree.grouping import Grouping, GroupingTree, NodeId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Meter:
    """
    A time signature plus its beat grouping.

    When beats is omitted, compound meters (6/8, 9/8, 12/8...) group
    three beat units per beat; every other meter uses one beat unit.
    """

    time_signature: TimeSignature
    beats: tuple[DurationValue, ...] | None = None

    def __post_init__(self) -> None:
        if self.beats is not None:
            total = sum((b.value for b in self.beats), Fraction(0))
            if total != self.time_signature.bar_duration.value:
                raise DurationMismatch(
                    [],
                    self.time_signature.bar_duration,
                    DurationValue(total) if total > 0 else None,
                )

    @classmethod
    def parse(cls, notation: str) -> Meter:
        return cls(TimeSignature.parse(notation))

    def beat_durations(self) -> list[DurationValue]:
        if self.beats is not None:
            return list(self.beats)
        ts = self.time_signature
        if ts.numerator > 3 and ts.numerator % 3 == 0 and ts.denominator >= 8:
            return [ts.beat_unit.scale(3)] * (ts.numerator // 3)
        return [ts.beat_unit] * ts.numerator


@dataclass
class FitResult:
    """Measures built by fit_to_meter and where each event landed."""

    measures: list[Grouping] = field(default_factory=list)
    # Identity of the first fragment of each input event
    first_leaves: list[NodeId] = field(default_factory=list)


def split_into_note_values(value: DurationValue) -> list[DurationValue]:
    """
    Split a duration into pieces that each have a single note-value token.

    5/16 -> [1/4, 1/16]. Durations with non power-of-two denominators
    (tuplet remainders) are returned whole.
    """
    if notation_token(value) is not None:
        return [value]
    den = value.denominator
    if den & (den - 1):
        return [value]

    pieces: list[DurationValue] = []
    remaining = value.value
    while remaining > 0:
        piece = Fraction(1, 1)
        while piece > remaining:
            piece /= 2
        # Prefer the dotted form when it still fits
        if notation_token(DurationValue(piece * Fraction(3, 2))) and piece * Fraction(3, 2) <= remaining:
            piece *= Fraction(3, 2)
        pieces.append(DurationValue(piece))
        remaining -= piece
    return pieces


class _MeterCursor:
    """Tracks the beat and measure currently being filled."""

    def __init__(self, tree: GroupingTree, meter: Meter):
        self.tree = tree
        self.meter = meter
        self.beat_plan = meter.beat_durations()
        self.measures: list[Grouping] = []
        self.beats: list[Grouping] = []
        self.leaves: list[Grouping] = []
        self.beat_left = self.beat_plan[0].value

    def space(self) -> Fraction:
        return self.beat_left

    def add(self, leaf: Grouping, length: Fraction) -> None:
        self.leaves.append(leaf)
        self.beat_left -= length
        if self.beat_left == 0:
            self._close_beat()

    def _close_beat(self) -> None:
        self.beats.append(self.tree.group(self.leaves, kind=GroupKind.BEAT))
        self.leaves = []
        if len(self.beats) == len(self.beat_plan):
            self.measures.append(self.tree.measure(self.beats, self.meter.time_signature))
            self.beats = []
        self.beat_left = self.beat_plan[len(self.beats)].value

    def finish(self) -> list[Grouping]:
        if self.leaves or self.beats:
            filled = sum((b.duration.value for b in self.beats), Fraction(0))
            filled += sum((leaf.duration.value for leaf in self.leaves), Fraction(0))
            raise DurationMismatch(
                [len(self.measures)],
                self.meter.time_signature.bar_duration,
                DurationValue(filled),
            )
        return self.measures


def fit_to_meter(
    tree: GroupingTree,
    events: Iterable[tuple[Event, DurationValue]],
    meter: Meter,
    leaf_durational: Callable[[DurationValue], Durational] = PlainDuration,
) -> FitResult:
    """
    Lay a stream of (event, duration) pairs into measures of beats.

    Events crossing a beat or bar line are split into tied fragments;
    rests are split without ties. The returned measures are not yet
    attached to a root, so the caller can group them as it sees fit.

    Args:
        tree: The tree that creates the nodes
        events: The event stream in playing order
        meter: The meter to fill
        leaf_durational: Builds each fragment's durational from its
            single note value (PlainDuration by default)

    Returns:
        FitResult with the measures and each event's first leaf identity

    Raises:
        DurationMismatch: If the stream does not end on a bar line; the
            path holds the index of the incomplete measure
    """
    cursor = _MeterCursor(tree, meter)
    first_leaves: list[NodeId] = []

    for event, duration in events:
        remaining = duration.value
        first: NodeId | None = None
        while remaining > 0:
            take = min(remaining, cursor.space())
            pieces = split_into_note_values(DurationValue(take))
            for i, piece in enumerate(pieces):
                more = remaining - take > 0 or i < len(pieces) - 1
                fragment = event if isinstance(event, Rest) else with_tie(event, more or event.tie)
                leaf = tree.leaf(leaf_durational(piece), fragment)
                if first is None:
                    first = leaf.id
                cursor.add(leaf, piece.value)
            remaining -= take
        if first is None:
            raise NotationError(f"Event {event} produced no leaves")
        first_leaves.append(first)

    measures = cursor.finish()
    logger.debug("Fitted %d events into %d measures of %s", len(first_leaves), len(measures), meter.time_signature)
    return FitResult(measures=measures, first_leaves=first_leaves)
