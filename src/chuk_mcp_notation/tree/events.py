"""
Leaf events - the atomic musical content of a leaf node.

An event carries no duration of its own; the leaf's Durational does.
The tie flag ties the event into the next leaf of the same pitch.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from chuk_mcp_notation.core.pitch import Pitch


@dataclass(frozen=True)
class Note:
    """A single pitched note."""

    pitch: Pitch
    tie: bool = False

    @property
    def kind(self) -> str:
        return "note"


@dataclass(frozen=True)
class Rest:
    """A rest. Rests cannot be tied."""

    tie: bool = field(default=False, init=False)

    @property
    def kind(self) -> str:
        return "rest"


@dataclass(frozen=True)
class Chord:
    """Several pitches sounding together."""

    pitches: tuple[Pitch, ...]
    tie: bool = False

    def __post_init__(self) -> None:
        if not self.pitches:
            raise ValueError("Chord must contain at least one pitch")
        if not isinstance(self.pitches, tuple):
            object.__setattr__(self, "pitches", tuple(self.pitches))

    @property
    def kind(self) -> str:
        return "chord"


Event = Note | Rest | Chord


def with_tie(event: Event, tie: bool) -> Event:
    """Return the event with its tie flag set (rests are returned unchanged)."""
    if isinstance(event, Note):
        return Note(event.pitch, tie=tie)
    if isinstance(event, Chord):
        return Chord(event.pitches, tie=tie)
    return event
