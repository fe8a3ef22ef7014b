"""
Core notation primitives - the Radix layer.

These are the exact invariants that everything else composes on:
- DurationValue: Exact rational duration in whole notes
- TimeSignature: Beats per bar and beat unit
- Durational: Capability contract (duration, scaled, describe)
- PlainDuration / TupletDuration / TiedDuration: The closed variant set
- AnyDuration: Type-erased handle for heterogeneous trees
- PitchClass / Pitch: Pitch spelling for leaf events
"""

from chuk_mcp_notation.core.duration import (
    DurationValue,
    TimeSignature,
    exact_fraction,
    notation_token,
    total_duration,
)
from chuk_mcp_notation.core.durational import (
    AnyDuration,
    Durational,
    PlainDuration,
    TiedDuration,
    TupletDuration,
    describe_value,
    erase,
    unwrap,
)
from chuk_mcp_notation.core.pitch import Pitch, PitchClass

__all__ = [
    # Duration
    "DurationValue",
    "TimeSignature",
    "exact_fraction",
    "notation_token",
    "total_duration",
    # Durational
    "Durational",
    "PlainDuration",
    "TupletDuration",
    "TiedDuration",
    "AnyDuration",
    "describe_value",
    "erase",
    "unwrap",
    # Pitch
    "Pitch",
    "PitchClass",
]
