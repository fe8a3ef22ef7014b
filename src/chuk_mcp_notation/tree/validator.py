"""
Tree Validator - enforces the duration-sum invariant.

Validates:
- Every group's stored duration equals the sum of its children
- Every group with an expected duration (e.g. a measure) is filled exactly
- Every annotation targets a live node (when a registry is supplied)

Leaves whose duration has no note value (a whole note with a multiplier)
are reported as warnings; they still render.

The validator is a read-only pass. On success it marks the tree as
validated, which is what unlocks rendering.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from chuk_mcp_notation.errors import (
    AnnotationTargetMissing,
    DurationMismatch,
    NotationError,
)
from chuk_mcp_notation.tree.grouping import Grouping, GroupingTree

if TYPE_CHECKING:
    from chuk_mcp_notation.annotations.registry import AnnotationRegistry

logger = logging.getLogger(__name__)


class ValidationSeverity(str, Enum):
    """Severity level for validation issues."""

    ERROR = "error"  # Prevents rendering
    WARNING = "warning"  # Renderable but suspicious


@dataclass
class ValidationIssue:
    """A single validation issue."""

    severity: ValidationSeverity
    code: str
    message: str
    path: list[int] = field(default_factory=list)
    error: NotationError | None = None

    def __str__(self) -> str:
        prefix = f"[{self.severity.value.upper()}]"
        return f"{prefix} {self.code}: {self.message} at {self.path}"


class ValidationResult:
    """Result of checking a tree; issues are in traversal order."""

    def __init__(self) -> None:
        self.issues: list[ValidationIssue] = []

    def add_error(self, code: str, message: str, path: list[int], error: NotationError) -> None:
        """Add an error issue."""
        self.issues.append(ValidationIssue(ValidationSeverity.ERROR, code, message, path, error))

    def add_warning(self, code: str, message: str, path: list[int]) -> None:
        """Add a warning issue."""
        self.issues.append(ValidationIssue(ValidationSeverity.WARNING, code, message, path))

    @property
    def is_valid(self) -> bool:
        """Return True if no errors (warnings are OK)."""
        return not any(i.severity == ValidationSeverity.ERROR for i in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        """Get all error issues."""
        return [i for i in self.issues if i.severity == ValidationSeverity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        """Get all warning issues."""
        return [i for i in self.issues if i.severity == ValidationSeverity.WARNING]

    def first_error(self) -> NotationError | None:
        """The error of the first failing check, in traversal order."""
        errors = self.errors
        return errors[0].error if errors else None

    def __bool__(self) -> bool:
        """Boolean conversion returns is_valid."""
        return self.is_valid

    def __str__(self) -> str:
        if not self.issues:
            return "Validation passed: no issues found"
        return "\n".join(str(issue) for issue in self.issues)


class TreeValidator:
    """
    Checks a grouping tree against the duration-sum invariant.

    Traversal is depth-first and left-to-right. A group's expected
    duration is compared before its descendants are visited, so the first
    reported mismatch is never nested inside another offending group.
    """

    def check(
        self,
        tree: GroupingTree,
        annotations: AnnotationRegistry | None = None,
    ) -> ValidationResult:
        """
        Collect every issue without raising.

        Args:
            tree: The tree to check
            annotations: Optional registry whose targets must be live

        Returns:
            ValidationResult with issues in traversal order
        """
        result = ValidationResult()
        if tree.root is None:
            result.add_error("NO_ROOT", "Tree has no root node", [], NotationError("Tree has no root node"))
            return result

        self._check_node(tree.root, [], result)
        if annotations is not None:
            self._check_annotations(tree, annotations, result)
        return result

    def validate(
        self,
        tree: GroupingTree,
        annotations: AnnotationRegistry | None = None,
    ) -> GroupingTree:
        """
        Validate a tree, raising the first failure.

        On success the tree's validated flag is set.

        Raises:
            DurationMismatch: If a group's expected duration is not met
            AnnotationTargetMissing: If an annotation targets a dead node
            NotationError: For internal consistency failures
        """
        result = self.check(tree, annotations)
        error = result.first_error()
        if error is not None:
            logger.debug("Validation failed: %s", error)
            raise error
        tree.validated = True
        logger.debug("Validated tree of duration %s", tree.root.duration if tree.root else None)
        return tree

    def _check_node(self, root: Grouping, path: list[int], result: ValidationResult) -> None:
        stack: list[tuple[Grouping, list[int]]] = [(root, path)]
        while stack:
            node, path = stack.pop()
            if node.is_leaf:
                token = node.describe()
                if "*" in token:
                    result.add_warning(
                        "UNNOTATED_DURATION",
                        f"Leaf duration {node.duration} has no note value; written as {token}",
                        path,
                    )
                continue

            actual = node.children_sum()
            if actual != node.duration:
                message = f"Stored duration {node.duration} differs from child sum {actual}"
                result.add_error(
                    "INCONSISTENT_DURATION",
                    message,
                    path,
                    NotationError(f"{message} at {path}"),
                )
            if node.expected is not None and node.expected != actual:
                result.add_error(
                    "DURATION_MISMATCH",
                    f"Expected {node.expected}, children sum to {actual}",
                    path,
                    DurationMismatch(path, node.expected, actual),
                )

            for i in range(len(node.children) - 1, -1, -1):
                stack.append((node.children[i], path + [i]))

    def _check_annotations(
        self,
        tree: GroupingTree,
        annotations: AnnotationRegistry,
        result: ValidationResult,
    ) -> None:
        for target_id in annotations.dangling():
            result.add_error(
                "ANNOTATION_TARGET_MISSING",
                f"Annotations target node {target_id}, which is not in the tree",
                [],
                AnnotationTargetMissing(target_id),
            )


def validate_tree(
    tree: GroupingTree,
    annotations: AnnotationRegistry | None = None,
) -> GroupingTree:
    """
    Convenience function to validate a tree.

    Args:
        tree: The tree to validate
        annotations: Optional annotation registry to check

    Returns:
        The same tree, now marked as validated
    """
    validator = TreeValidator()
    return validator.validate(tree, annotations)
