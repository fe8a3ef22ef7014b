"""
Tests for meter fitting.

Tests cover:
- Meter beat plans (simple, compound, custom)
- Splitting durations into note values
- fit_to_meter: ties across beats and bar lines, rests, incomplete streams
"""

from fractions import Fraction
from functools import partial
from types import SimpleNamespace

import pytest

from chuk_mcp_notation.constants import GroupKind
from chuk_mcp_notation.core import DurationValue, Pitch, TimeSignature, TupletDuration
from chuk_mcp_notation.errors import DurationMismatch, MixedDurationError, NotationError
from chuk_mcp_notation.tree import (
    GroupingTree,
    Meter,
    Note,
    Rest,
    TreeValidator,
    fit_to_meter,
    split_into_note_values,
)


def d(text: str) -> DurationValue:
    return DurationValue.parse(text)


class TestMeter:
    """Tests for beat plans."""

    def test_simple_meter(self) -> None:
        """Simple meters beat on the denominator."""
        assert Meter.parse("3/4").beat_durations() == [d("1/4")] * 3

    def test_compound_meter(self) -> None:
        """6/8 has two dotted-quarter beats."""
        assert Meter.parse("6/8").beat_durations() == [d("3/8"), d("3/8")]
        assert Meter.parse("12/8").beat_durations() == [d("3/8")] * 4

    def test_three_eight_is_simple(self) -> None:
        """3/8 beats on each eighth."""
        assert Meter.parse("3/8").beat_durations() == [d("1/8")] * 3

    def test_custom_beats(self) -> None:
        """Additive meters can name their grouping."""
        meter = Meter(TimeSignature(7, 8), (d("1/4"), d("1/4"), d("3/8")))
        assert meter.beat_durations() == [d("1/4"), d("1/4"), d("3/8")]

    def test_custom_beats_must_fill_bar(self) -> None:
        """A beat plan that does not sum to the bar is rejected."""
        with pytest.raises(DurationMismatch):
            Meter(TimeSignature(7, 8), (d("1/4"), d("1/4")))


class TestSplitIntoNoteValues:
    """Tests for split_into_note_values."""

    def test_single_token(self) -> None:
        """Plain and dotted values stay whole."""
        assert split_into_note_values(d("1/4")) == [d("1/4")]
        assert split_into_note_values(d("3/8")) == [d("3/8")]
        assert split_into_note_values(d("7/8")) == [d("7/8")]

    def test_split(self) -> None:
        """Values with no single token are split largest first."""
        assert split_into_note_values(d("5/16")) == [d("1/4"), d("1/16")]
        assert split_into_note_values(d("5/8")) == [d("1/2"), d("1/8")]

    def test_prefers_dotted(self) -> None:
        """A dotted piece is used when it fits."""
        assert split_into_note_values(d("11/16")) == [d("1/2"), d("3/16")]

    def test_tuplet_remainder_whole(self) -> None:
        """Non power-of-two durations are not split."""
        assert split_into_note_values(d("1/6")) == [d("1/6")]


class TestFitToMeter:
    """Tests for fit_to_meter."""

    def test_exact_measures(self, tree: GroupingTree) -> None:
        """Quarters fill 2/4 bars beat by beat."""
        events = [(Note(Pitch(60 + i)), d("1/4")) for i in range(4)]
        result = fit_to_meter(tree, events, Meter.parse("2/4"))
        assert len(result.measures) == 2
        for measure in result.measures:
            assert measure.kind == GroupKind.MEASURE
            assert [beat.kind for beat in measure.children] == [GroupKind.BEAT, GroupKind.BEAT]
            assert measure.duration == d("1/2")
        assert len(result.first_leaves) == 4

    def test_ties_across_beats_and_bars(self, tree: GroupingTree) -> None:
        """Events crossing a beat or bar line become tied fragments."""
        events = [
            (Note(Pitch(60)), d("3/8")),
            (Note(Pitch(62)), d("3/8")),
            (Rest(), d("1/4")),
        ]
        result = fit_to_meter(tree, events, Meter.parse("2/4"))
        first, second = result.measures

        beat1, beat2 = first.children
        assert [leaf.describe() for leaf in beat1.children] == ["4"]
        assert beat1.children[0].event == Note(Pitch(60), tie=True)
        assert [leaf.describe() for leaf in beat2.children] == ["8", "8"]
        assert beat2.children[0].event == Note(Pitch(60))
        assert beat2.children[1].event == Note(Pitch(62), tie=True)

        beat3, beat4 = second.children
        assert beat3.children[0].event == Note(Pitch(62))
        assert isinstance(beat4.children[0].event, Rest)

        assert result.first_leaves == [
            beat1.children[0].id,
            beat2.children[1].id,
            beat4.children[0].id,
        ]

    def test_rests_never_tied(self, tree: GroupingTree) -> None:
        """A long rest is split without ties."""
        result = fit_to_meter(tree, [(Rest(), d("1/2"))], Meter.parse("2/4"))
        leaves = [leaf for beat in result.measures[0].children for leaf in beat.children]
        assert len(leaves) == 2
        assert all(not leaf.event.tie for leaf in leaves)

    def test_tie_into_next_event_kept(self, tree: GroupingTree) -> None:
        """An event's own tie survives on its last fragment."""
        events = [(Note(Pitch(60), tie=True), d("1/4")), (Note(Pitch(60)), d("1/4"))]
        result = fit_to_meter(tree, events, Meter.parse("2/4"))
        first_leaf = result.measures[0].children[0].children[0]
        assert first_leaf.event.tie

    def test_incomplete_stream(self, tree: GroupingTree) -> None:
        """A stream that stops mid-bar reports the unfinished measure."""
        with pytest.raises(DurationMismatch) as exc_info:
            fit_to_meter(tree, [(Note(Pitch(60)), d("3/8"))], Meter.parse("2/4"))
        assert exc_info.value == DurationMismatch([0], d("1/2"), d("3/8"))

    def test_fitted_tree_validates(self, tree: GroupingTree) -> None:
        """Fitted measures satisfy the validator."""
        events = [(Note(Pitch(60)), d("5/8")), (Note(Pitch(64)), d("7/8"))]
        result = fit_to_meter(tree, events, Meter.parse("3/4"))
        tree.set_root(tree.group(result.measures, kind=GroupKind.SCORE))
        TreeValidator().validate(tree)
        assert tree.validated
        assert tree.duration == d("3/2")

    def test_leaf_durational_factory(self) -> None:
        """A tuplet-only tree is filled with ratio-1 tuplet leaves."""
        tree = GroupingTree.homogeneous(TupletDuration)
        events = [(Note(Pitch(60)), d("3/8")), (Note(Pitch(62)), d("1/8"))]
        result = fit_to_meter(tree, events, Meter.parse("2/4"), partial(TupletDuration, ratio=Fraction(1)))
        leaves = [leaf for beat in result.measures[0].children for leaf in beat.children]
        assert [leaf.describe() for leaf in leaves] == ["4", "8", "8"]
        assert all(type(leaf.durational) is TupletDuration for leaf in leaves)

    def test_default_leaves_rejected_by_tuplet_tree(self) -> None:
        """Without a factory, plain leaves do not fit a tuplet-only tree."""
        tree = GroupingTree.homogeneous(TupletDuration)
        with pytest.raises(MixedDurationError):
            fit_to_meter(tree, [(Note(Pitch(60)), d("1/2"))], Meter.parse("2/4"))

    def test_event_without_length(self, tree: GroupingTree) -> None:
        """An event that produces no leaves is an error, not a silent skip."""
        empty = SimpleNamespace(value=Fraction(0))
        with pytest.raises(NotationError):
            fit_to_meter(tree, [(Rest(), empty)], Meter.parse("2/4"))
