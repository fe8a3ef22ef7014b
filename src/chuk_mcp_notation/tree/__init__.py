"""
Grouping tree - the rhythmic hierarchy and its checks.

This module provides:
- GroupingTree / Grouping: Node factory and nodes (measure, beat, leaf)
- Note / Rest / Chord: Leaf event content
- TreeValidator: Duration-sum invariant checks
- fit_to_meter: Pour a flat event stream into measures and beats
"""

from chuk_mcp_notation.tree.events import Chord, Event, Note, Rest, with_tie
from chuk_mcp_notation.tree.grouping import Grouping, GroupingTree, NodeId
from chuk_mcp_notation.tree.meter import FitResult, Meter, fit_to_meter, split_into_note_values
from chuk_mcp_notation.tree.validator import (
    TreeValidator,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
    validate_tree,
)

__all__ = [
    # Events
    "Chord",
    "Event",
    "Note",
    "Rest",
    "with_tie",
    # Tree
    "Grouping",
    "GroupingTree",
    "NodeId",
    # Meter
    "FitResult",
    "Meter",
    "fit_to_meter",
    "split_into_note_values",
    # Validation
    "TreeValidator",
    "ValidationIssue",
    "ValidationResult",
    "ValidationSeverity",
    "validate_tree",
]
