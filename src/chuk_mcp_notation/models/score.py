"""
Score document - the declarative transcription source.

A score document is YAML describing the music either measure by measure
or as a flat event stream that is fitted to the meter:

    schema: score/v1
    title: Ode
    time_signature: 4/4
    measures:
      - annotations: [{kind: rehearsal, value: A}]
        events:
          - {pitch: "e'", duration: 1/4, annotations: [{kind: dynamic, value: mf}]}
          - {pitch: "e'", duration: 1/4}
          - {rest: true, duration: 1/4}
          - ratio: 2/3
            tuplet:
              - {pitch: "g'", duration: 1/8}
              - {pitch: "f'", duration: 1/8}
              - {pitch: "e'", duration: 1/8}

Durations are exact fractions of a whole note ("1/4", "3/8", 2).
"""

from __future__ import annotations

from fractions import Fraction
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from chuk_mcp_notation.annotations.models import Annotation
from chuk_mcp_notation.constants import DurationMode, Placement, SchemaVersion
from chuk_mcp_notation.core.duration import DurationValue, TimeSignature
from chuk_mcp_notation.core.pitch import Pitch
from chuk_mcp_notation.errors import MixedDurationError
from chuk_mcp_notation.tree.events import Chord, Event, Note, Rest

DurationalName = Literal["plain", "tuplet", "tied"]


def _check_duration(v: Any) -> str:
    """Validate a duration field and normalise it to text."""
    return DurationValue.parse(v).to_text()


def _check_ratio(v: Any) -> str:
    """Validate a tuplet ratio and normalise it to text."""
    try:
        ratio = Fraction(str(v))
    except (ValueError, ZeroDivisionError) as e:
        raise ValueError(f"Invalid tuplet ratio: {v!r}") from e
    if ratio <= 0:
        raise ValueError(f"Tuplet ratio must be positive: {v}")
    return str(ratio)


class AnnotationSpec(BaseModel):
    """An annotation as written in a score document."""

    kind: str = Field(..., description="Annotation kind (see the annotation catalog)")
    value: str = Field("", description="Kind-specific value (e.g. 'mf', lyric syllable)")
    placement: Placement | None = Field(None, description="Placement override")
    offset: float = Field(0.0, description="Backend-specific placement offset")

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> str:
        """YAML may read values like 1 or 'p' as non-strings."""
        return "" if v is None else str(v)

    def to_annotation(self) -> Annotation:
        return Annotation(self.kind, self.value, self.placement, self.offset)


class EventSpec(BaseModel):
    """
    One leaf: a note, rest or chord with its duration.

    extension makes the leaf a tied/dotted value (duration + extension);
    ratio makes it a tuplet-scaled value (duration x ratio).
    """

    pitch: str | int | None = Field(None, description="Pitch ('c'', 'C#4' or MIDI number)")
    chord: list[str | int] | None = Field(None, description="Chord pitches")
    rest: bool = Field(False, description="True for a rest")
    duration: str = Field(..., description="Written duration as a fraction of a whole note")
    extension: str | None = Field(None, description="Tied extension added to the duration")
    ratio: str | None = Field(None, description="Tuplet ratio (normal/actual, e.g. 2/3)")
    tie: bool = Field(False, description="Tie into the next leaf")
    annotations: list[AnnotationSpec] = Field(default_factory=list, description="Annotations")

    model_config = {"extra": "forbid"}

    @field_validator("duration", "extension", mode="before")
    @classmethod
    def validate_duration(cls, v: Any) -> str | None:
        """Durations must be positive exact fractions."""
        return None if v is None else _check_duration(v)

    @field_validator("ratio", mode="before")
    @classmethod
    def validate_ratio(cls, v: Any) -> str | None:
        """Ratios must be positive fractions."""
        return None if v is None else _check_ratio(v)

    @model_validator(mode="after")
    def check_content(self) -> EventSpec:
        """Exactly one of pitch, chord or rest."""
        given = sum([self.pitch is not None, self.chord is not None, self.rest])
        if given != 1:
            raise ValueError("An event needs exactly one of 'pitch', 'chord' or 'rest'")
        if self.chord is not None and not self.chord:
            raise ValueError("A chord needs at least one pitch")
        if self.rest and self.tie:
            raise ValueError("Rests cannot be tied")
        if self.extension is not None and self.ratio is not None:
            raise ValueError("An event cannot have both 'extension' and 'ratio'")
        # Pitch names must parse
        self.to_event()
        return self

    def get_duration(self) -> DurationValue:
        return DurationValue.parse(self.duration)

    def get_ratio(self) -> Fraction | None:
        return Fraction(self.ratio) if self.ratio is not None else None

    def total_duration(self) -> DurationValue:
        """Sounding duration of the leaf."""
        total = self.get_duration()
        if self.extension is not None:
            total = total + DurationValue.parse(self.extension)
        ratio = self.get_ratio()
        if ratio is not None:
            total = total.scale(ratio)
        return total

    def to_event(self) -> Event:
        """Build the leaf content."""
        if self.rest:
            return Rest()
        if self.chord is not None:
            return Chord(tuple(Pitch.parse(p) for p in self.chord), tie=self.tie)
        return Note(Pitch.parse(self.pitch), tie=self.tie)  # type: ignore[arg-type]


class TupletSpec(BaseModel):
    """A bracketed run of events sharing one tuplet ratio."""

    ratio: str = Field(..., description="Tuplet ratio (normal/actual, e.g. 2/3)")
    tuplet: list[EventSpec] = Field(..., min_length=1, description="Events inside the bracket")
    annotations: list[AnnotationSpec] = Field(default_factory=list, description="Group annotations")

    model_config = {"extra": "forbid"}

    @field_validator("ratio", mode="before")
    @classmethod
    def validate_ratio(cls, v: Any) -> str:
        """Ratios must be positive fractions."""
        return _check_ratio(v)

    @model_validator(mode="after")
    def check_events(self) -> TupletSpec:
        """Events inside a bracket take the bracket's ratio."""
        for event in self.tuplet:
            if event.ratio is not None and event.ratio != self.ratio:
                raise ValueError(f"Event ratio {event.ratio} conflicts with bracket ratio {self.ratio}")
            if event.extension is not None:
                raise ValueError("Tied extensions are not supported inside a tuplet bracket")
        return self

    def get_ratio(self) -> Fraction:
        return Fraction(self.ratio)


class MeasureSpec(BaseModel):
    """One bar of music."""

    time_signature: str | None = Field(None, description="Meter change from this measure on")
    events: list[EventSpec | TupletSpec] = Field(..., min_length=1, description="Measure content")
    annotations: list[AnnotationSpec] = Field(default_factory=list, description="Measure annotations")

    model_config = {"extra": "forbid"}

    @field_validator("time_signature")
    @classmethod
    def validate_time_signature(cls, v: str | None) -> str | None:
        """Validate time signature format."""
        if v is not None:
            TimeSignature.parse(v)
        return v


class ScoreDocument(BaseModel):
    """
    A complete score document.

    Exactly one of measures (explicit bars) or events (a flat stream to
    be fitted to the meter) must be given.
    """

    schema_version: SchemaVersion = Field("score/v1", alias="schema", description="Schema version")
    title: str = Field("Untitled", description="Score title")
    composer: str | None = Field(None, description="Composer credit")
    time_signature: str = Field("4/4", description="Initial time signature")
    mode: DurationMode = Field(DurationMode.HETEROGENEOUS, description="Leaf duration representation")
    durational: DurationalName = Field(
        "plain", description="Durational variant of a homogeneous tree"
    )
    measures: list[MeasureSpec] = Field(default_factory=list, description="Explicit measures")
    events: list[EventSpec] = Field(default_factory=list, description="Flat event stream")
    annotations: list[AnnotationSpec] = Field(default_factory=list, description="Score-level annotations")

    model_config = {"populate_by_name": True, "extra": "forbid"}

    @field_validator("time_signature")
    @classmethod
    def validate_time_signature(cls, v: str) -> str:
        """Validate time signature format."""
        TimeSignature.parse(v)
        return v

    @model_validator(mode="after")
    def check_body(self) -> ScoreDocument:
        """Measures and a flat stream are mutually exclusive."""
        if bool(self.measures) == bool(self.events):
            raise ValueError("A score needs exactly one of 'measures' or 'events'")
        return self

    @model_validator(mode="after")
    def check_mode(self) -> ScoreDocument:
        """
        A tied-only tree cannot hold a fitted stream.

        Fitting splits events into single note values, which have no
        extension to tie.
        """
        if self.mode == DurationMode.HOMOGENEOUS and self.durational == "tied" and self.events:
            raise MixedDurationError(
                "A tied-only score must be written in explicit measures; "
                "a flat event stream is split into plain note values"
            )
        return self

    def get_time_signature(self) -> TimeSignature:
        """Get parsed TimeSignature object."""
        return TimeSignature.parse(self.time_signature)

    @classmethod
    def from_yaml(cls, text: str) -> ScoreDocument:
        """
        Parse a score document from YAML text.

        Raises:
            pydantic.ValidationError: If the document does not match the schema
            yaml.YAMLError: If the text is not valid YAML
        """
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError("A score document must be a YAML mapping")
        return cls.model_validate(data)

    def to_yaml(self) -> str:
        """Serialize back to canonical YAML."""
        data = self.model_dump(mode="json", by_alias=True, exclude_defaults=True)
        data = {"schema": self.schema_version, **data}
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
