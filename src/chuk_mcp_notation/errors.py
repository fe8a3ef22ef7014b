"""
Notation errors.

Every failure the engine surfaces derives from NotationError, so callers
can catch the whole family at a pipeline boundary. Construction and
validation errors abort before rendering; render errors are reported per
render job.
"""

from __future__ import annotations

from typing import Any


class NotationError(Exception):
    """Base class for all notation engine errors."""


class InvalidDuration(NotationError, ValueError):
    """A duration of zero or negative length (or an empty group)."""


class MixedDurationError(NotationError, TypeError):
    """A homogeneous tree was handed a different Durational variant."""


class DurationMismatch(NotationError):
    """
    A group's expected duration differs from the sum of its children.

    Attributes:
        path: Child indices from the root to the offending group
        expected: The declared duration (e.g. from a time signature)
        actual: The sum of the group's children
    """

    def __init__(self, path: list[int], expected: Any, actual: Any):
        self.path = list(path)
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Duration mismatch at {self.path}: expected {expected}, got {actual}"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DurationMismatch):
            return NotImplemented
        return (self.path, self.expected, self.actual) == (
            other.path,
            other.expected,
            other.actual,
        )

    __hash__ = Exception.__hash__


class AnnotationTargetMissing(NotationError, LookupError):
    """An annotation references a node identity that is not live in the tree."""

    def __init__(self, target_id: int):
        self.target_id = target_id
        super().__init__(f"Annotation target {target_id} is not a live node")


class UnvalidatedTreeError(NotationError):
    """Rendering was requested for a tree that has not passed validation."""


class RenderBackendError(NotationError):
    """
    Traversal or external compilation failed.

    Attributes:
        diagnostics: Backend diagnostic text (compiler stderr, template error)
    """

    def __init__(self, message: str, diagnostics: str = ""):
        self.diagnostics = diagnostics
        super().__init__(message)


class ParallelRenderError(RenderBackendError):
    """
    One or more subtrees failed during a parallel render.

    Every failure is collected, keyed by subtree position, so the caller
    sees the complete set instead of the first one.
    """

    def __init__(self, failures: dict[int, RenderBackendError]):
        self.failures = dict(sorted(failures.items()))
        summary = "; ".join(f"subtree {i}: {err}" for i, err in self.failures.items())
        diagnostics = "\n".join(err.diagnostics for err in self.failures.values() if err.diagnostics)
        super().__init__(f"{len(self.failures)} subtree(s) failed to render: {summary}", diagnostics)

