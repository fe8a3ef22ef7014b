"""
Pitch primitives - PitchClass and Pitch.

PitchClass represents the 12 chromatic pitches (octave-independent).
Pitch is a concrete MIDI pitch that knows how to spell itself as a
LilyPond note name with octave marks (c' is middle C). A parsed pitch
keeps its written letter when the default spelling would lose it, so
"ces'" stays ces' and is not re-spelled as b.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum

# Display name mappings (module level to avoid IntEnum member issues)
_SHARP_NAMES: list[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
_FLAT_NAMES: list[str] = ["C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B"]

# Dutch note names, as the LilyPond default input language spells them
_LILY_SHARP_NAMES: list[str] = [
    "c",
    "cis",
    "d",
    "dis",
    "e",
    "f",
    "fis",
    "g",
    "gis",
    "a",
    "ais",
    "b",
]
_LILY_FLAT_NAMES: list[str] = [
    "c",
    "des",
    "d",
    "ees",
    "e",
    "f",
    "ges",
    "g",
    "aes",
    "a",
    "bes",
    "b",
]

_NATURALS: dict[str, int] = {"c": 0, "d": 2, "e": 4, "f": 5, "g": 7, "a": 9, "b": 11}

# Alteration in semitones -> LilyPond suffix and scientific accidental
_LILY_ACCIDENTALS: dict[int, str] = {-2: "eses", -1: "es", 0: "", 1: "is", 2: "isis"}
_ACCIDENTALS: dict[int, str] = {-2: "bb", -1: "b", 0: "", 1: "#", 2: "##"}

# The unmarked LilyPond octave (c) starts at MIDI 48
_LILY_BASE_OCTAVE = 3

_LILY_PITCH_RE = re.compile(r"^([a-g])((?:isis|eses|is|es|s)?)([',]*)$")
_SCIENTIFIC_PITCH_RE = re.compile(r"^([A-Ga-g])(##|bb|#|b)?(-?\d+)$")


class PitchClass(IntEnum):
    """
    The 12 chromatic pitch classes (0-11).

    Octave-independent - C4 and C5 are both PitchClass.C.
    Enharmonic equivalents share the same value (C# == Db == 1).
    """

    C = 0
    Cs = 1  # C# / Db
    D = 2
    Ds = 3  # D# / Eb
    E = 4
    F = 5
    Fs = 6  # F# / Gb
    G = 7
    Gs = 8  # G# / Ab
    A = 9
    As = 10  # A# / Bb
    B = 11

    def transpose(self, semitones: int) -> PitchClass:
        """Transpose by a number of semitones (positive or negative)."""
        return PitchClass((self.value + semitones) % 12)

    def spell(self, prefer_flats: bool = False) -> str:
        """Get human-readable name."""
        names = _FLAT_NAMES if prefer_flats else _SHARP_NAMES
        return names[self.value]

    def lily_name(self, prefer_flats: bool = False) -> str:
        """Get the LilyPond (Dutch) note name without octave marks."""
        names = _LILY_FLAT_NAMES if prefer_flats else _LILY_SHARP_NAMES
        return names[self.value]

    @classmethod
    def from_midi(cls, midi_note: int) -> PitchClass:
        """Extract pitch class from MIDI note number."""
        return cls(midi_note % 12)

    @classmethod
    def parse(cls, name: str) -> PitchClass:
        """Parse a pitch class from a string like 'C', 'C#', 'Db'."""
        name = name.strip()
        if name in _SHARP_NAMES:
            return cls(_SHARP_NAMES.index(name))
        if name in _FLAT_NAMES:
            return cls(_FLAT_NAMES.index(name))
        raise ValueError(f"Unknown pitch class: {name}")


@dataclass(frozen=True)
class Pitch:
    """
    A concrete pitch, stored as a MIDI note number.

    Spelling is a display concern: prefer_flats selects 'bes' over 'ais'.
    letter pins the written note letter for enharmonic spellings the
    default cannot produce (Pitch(59, letter="c") is ces', not b). A letter
    that matches the default spelling is dropped, so equal spellings
    compare equal.
    """

    midi: int
    prefer_flats: bool = False
    letter: str | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.midi <= 127:
            raise ValueError(f"Pitch must be 0-127, got {self.midi}")
        if self.letter is None:
            return
        if self.letter not in _NATURALS:
            raise ValueError(f"Unknown note letter: {self.letter!r}")
        alteration = self._alteration(self.letter)
        if alteration not in _LILY_ACCIDENTALS:
            raise ValueError(f"Letter {self.letter!r} cannot spell MIDI {self.midi}")
        if self.letter + _LILY_ACCIDENTALS[alteration] == self.pitch_class.lily_name(self.prefer_flats):
            object.__setattr__(self, "letter", None)

    def _alteration(self, letter: str) -> int:
        """Semitones from the natural letter to this pitch, in -6..5."""
        return (self.midi - _NATURALS[letter] + 6) % 12 - 6

    @property
    def pitch_class(self) -> PitchClass:
        return PitchClass.from_midi(self.midi)

    @property
    def octave(self) -> int:
        """Scientific octave number (middle C is octave 4)."""
        return self.midi // 12 - 1

    @property
    def written_octave(self) -> int:
        """Octave of the written letter; differs from octave for ces and bis."""
        if self.letter is None:
            return self.octave
        return (self.midi - self._alteration(self.letter)) // 12 - 1

    def to_lily(self) -> str:
        """
        LilyPond absolute pitch: note name plus octave marks.

        60 -> "c'", 48 -> "c", 36 -> "c,", 70 -> "ais'" (or "bes'").
        """
        marks = self.written_octave - _LILY_BASE_OCTAVE
        suffix = "'" * marks if marks > 0 else "," * -marks
        if self.letter is None:
            name = self.pitch_class.lily_name(self.prefer_flats)
        else:
            name = self.letter + _LILY_ACCIDENTALS[self._alteration(self.letter)]
        return name + suffix

    def __str__(self) -> str:
        if self.letter is None:
            return f"{self.pitch_class.spell(self.prefer_flats)}{self.octave}"
        accidental = _ACCIDENTALS[self._alteration(self.letter)]
        return f"{self.letter.upper()}{accidental}{self.written_octave}"

    @classmethod
    def parse(cls, text: str | int) -> Pitch:
        """
        Parse a pitch from a MIDI number, scientific notation or LilyPond name.

        Accepted forms: 60, "60", "C#4", "Bb3", "c'", "bes,", "fis''".
        Enharmonic spellings such as "Cb4", "ces'" or "bis" are kept.

        Raises:
            ValueError: If the text is not a recognised pitch
        """
        if isinstance(text, int):
            return cls(text)
        text = text.strip()
        if text.lstrip("-").isdigit():
            return cls(int(text))

        match = _SCIENTIFIC_PITCH_RE.match(text)
        if match and match.group(1).isupper():
            letter, accidental, octave = match.groups()
            alteration = {None: 0, "#": 1, "##": 2, "b": -1, "bb": -2}[accidental]
            midi = _NATURALS[letter.lower()] + alteration + (int(octave) + 1) * 12
            return cls(midi, prefer_flats=alteration < 0, letter=letter.lower())

        match = _LILY_PITCH_RE.match(text)
        if match:
            letter, accidental, marks = match.groups()
            alteration = {"": 0, "is": 1, "isis": 2, "es": -1, "s": -1, "eses": -2}[accidental]
            octave = _LILY_BASE_OCTAVE + marks.count("'") - marks.count(",")
            midi = _NATURALS[letter] + alteration + (octave + 1) * 12
            return cls(midi, prefer_flats=alteration < 0, letter=letter)

        raise ValueError(f"Unknown pitch: {text!r}")
