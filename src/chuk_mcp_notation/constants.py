"""
Constants and enums for the notation system.

No magic strings - use enums and Literal types for constrained values.
"""

from enum import Enum
from typing import Literal


class GroupKind(str, Enum):
    """Structural role of a group node."""

    SCORE = "score"  # Whole piece or movement
    MEASURE = "measure"  # One bar
    BEAT = "beat"  # Beat subdivision
    GROUP = "group"  # Any other grouping


class DurationMode(str, Enum):
    """How a tree represents its leaf durations."""

    HOMOGENEOUS = "homogeneous"  # One concrete Durational class throughout
    HETEROGENEOUS = "heterogeneous"  # Type-erased AnyDuration handles


class Placement(str, Enum):
    """Where an annotation sits relative to the staff."""

    ABOVE = "above"
    BELOW = "below"
    NEUTRAL = "neutral"


class AttachPoint(str, Enum):
    """Node types an annotation kind may target."""

    LEAF = "leaf"
    GROUP = "group"


# Schema versions - frozen for v1
SchemaVersion = Literal[
    "score/v1",
    "annotation-catalog/v1",
    "settings/v1",
]

OutputFormat = Literal["pdf", "png", "svg", "ps"]

# Pinned language level for generated documents
DEFAULT_LILYPOND_VERSION = "2.24.0"

# Compile timeout in seconds
DEFAULT_COMPILE_TIMEOUT = 120.0


class ErrorMessages:
    """Standardized error messages."""

    UNKNOWN_BACKEND = "Unknown backend '{backend}'. Available: {available}."
    UNKNOWN_ANNOTATION_KIND = "Unknown annotation kind '{kind}'."
    NO_TEMPLATE = "Annotation kind '{kind}' has no template for backend '{backend}'."
    BAD_ATTACH_POINT = "Annotation kind '{kind}' cannot attach to a {point} node."
    BAD_ANNOTATION_VALUE = "Invalid value '{value}' for annotation kind '{kind}'."
    NOT_VALIDATED = "Tree must be validated before rendering."
    NO_ROOT = "Tree has no root node."
    INVALID_SCORE = "Invalid score document: {error}"


class SuccessMessages:
    """Standardized success messages."""

    SCORE_VALID = "Score '{title}' is valid ({measures} measures)."
    SCORE_RENDERED = "Rendered score '{title}' with backend '{backend}'."
    SCORE_COMPILED = "Compiled score '{title}' to {path}."
