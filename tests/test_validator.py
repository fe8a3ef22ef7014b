"""
Tests for the tree validator.

Tests cover:
- Duration-sum checks against expected durations
- Traversal order of reported failures
- Annotation target checks
- The validated flag that gates rendering
"""

import pytest

from chuk_mcp_notation.annotations import Annotation, AnnotationRegistry
from chuk_mcp_notation.core import DurationValue, PlainDuration, Pitch, TimeSignature
from chuk_mcp_notation.errors import AnnotationTargetMissing, DurationMismatch, NotationError
from chuk_mcp_notation.tree import (
    GroupingTree,
    Note,
    TreeValidator,
    ValidationSeverity,
    validate_tree,
)


def quarter(tree: GroupingTree):
    return tree.leaf(PlainDuration.of(1, 4), Note(Pitch(60)))


@pytest.fixture
def validator() -> TreeValidator:
    return TreeValidator()


class TestDurationChecks:
    """Tests for the duration-sum invariant."""

    def test_exact_fill_passes(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """1/4 + 1/4 under an expected 1/2 is valid."""
        tree.set_root(tree.group([quarter(tree), quarter(tree)], expected=DurationValue.HALF))
        result = validator.check(tree)
        assert result.is_valid
        assert result
        assert str(result) == "Validation passed: no issues found"

    def test_overfull_group(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """Three quarters under an expected 1/2 fail at the root."""
        tree.set_root(tree.group([quarter(tree) for _ in range(3)], expected=DurationValue.HALF))
        with pytest.raises(DurationMismatch) as exc_info:
            validator.validate(tree)
        assert exc_info.value == DurationMismatch([], DurationValue.HALF, DurationValue.of(3, 4))
        assert not tree.validated

    def test_underfull_measure(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """A measure short of its bar is reported with its path."""
        full = tree.measure([quarter(tree) for _ in range(3)], TimeSignature(3, 4))
        short = tree.measure([quarter(tree) for _ in range(2)], TimeSignature(3, 4))
        tree.set_root(tree.group([full, short]))
        result = validator.check(tree)
        assert not result.is_valid
        assert len(result.errors) == 1
        issue = result.errors[0]
        assert issue.code == "DURATION_MISMATCH"
        assert issue.path == [1]
        assert issue.severity == ValidationSeverity.ERROR

    def test_shallowest_mismatch_first(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """An outer failure is reported before the inner one it contains."""
        inner = tree.measure([quarter(tree) for _ in range(3)], TimeSignature(2, 4))
        tree.set_root(tree.group([inner], expected=DurationValue.HALF))
        result = validator.check(tree)
        assert [issue.path for issue in result.errors] == [[], [0]]
        with pytest.raises(DurationMismatch) as exc_info:
            validator.validate(tree)
        assert exc_info.value.path == []

    def test_left_to_right(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """Siblings are checked in order."""
        measures = [
            tree.measure([quarter(tree)], TimeSignature(2, 4)),
            tree.measure([quarter(tree)], TimeSignature(2, 4)),
        ]
        tree.set_root(tree.group(measures))
        with pytest.raises(DurationMismatch) as exc_info:
            validator.validate(tree)
        assert exc_info.value.path == [0]

    def test_no_root(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """An empty tree cannot be validated."""
        result = validator.check(tree)
        assert result.errors[0].code == "NO_ROOT"
        with pytest.raises(NotationError):
            validator.validate(tree)

    def test_unnotated_duration_warns(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """A 5/16 leaf is valid but flagged, and still validates."""
        odd = tree.leaf(PlainDuration.of(5, 16), Note(Pitch(60)))
        rest = tree.leaf(PlainDuration.of(3, 16), Note(Pitch(62)))
        tree.set_root(tree.group([odd, rest], expected=DurationValue.HALF))

        result = validator.check(tree)
        assert result.is_valid
        assert result.errors == []
        assert [(w.code, w.path) for w in result.warnings] == [("UNNOTATED_DURATION", [0])]
        assert result.warnings[0].severity == ValidationSeverity.WARNING
        assert "1*5/16" in result.warnings[0].message

        validator.validate(tree)
        assert tree.validated


class TestValidatedFlag:
    """Tests for the validated flag."""

    def test_validate_sets_flag(self, tree: GroupingTree) -> None:
        """Validation marks the tree."""
        tree.set_root(tree.group([quarter(tree)]))
        assert validate_tree(tree) is tree
        assert tree.validated

    def test_check_does_not_set_flag(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """check() is read-only."""
        tree.set_root(tree.group([quarter(tree)]))
        validator.check(tree)
        assert not tree.validated

    def test_edit_after_validation(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """Edits require validating again."""
        a = quarter(tree)
        tree.set_root(tree.group([a, quarter(tree)]))
        validator.validate(tree)
        tree.replace(a.id, quarter(tree))
        assert not tree.validated


class TestAnnotationChecks:
    """Tests for annotation target checks."""

    def test_live_targets_pass(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """Annotations on live nodes are fine."""
        leaf = quarter(tree)
        tree.set_root(tree.group([leaf]))
        registry = AnnotationRegistry(tree)
        registry.attach(leaf.id, Annotation("staccato"))
        validator.validate(tree, registry)
        assert tree.validated

    def test_dangling_target(self, tree: GroupingTree, validator: TreeValidator) -> None:
        """A replaced node's annotations are reported."""
        leaf = quarter(tree)
        tree.set_root(tree.group([leaf, quarter(tree)]))
        registry = AnnotationRegistry(tree)
        registry.attach(leaf.id, Annotation("dynamic", "p"))
        tree.replace(leaf.id, quarter(tree))

        result = validator.check(tree, registry)
        assert [issue.code for issue in result.errors] == ["ANNOTATION_TARGET_MISSING"]
        with pytest.raises(AnnotationTargetMissing) as exc_info:
            validator.validate(tree, registry)
        assert exc_info.value.target_id == leaf.id

    def test_attach_to_replaced_node(self, tree: GroupingTree) -> None:
        """A retired identity cannot be annotated."""
        leaf = quarter(tree)
        tree.set_root(tree.group([leaf, quarter(tree)]))
        tree.replace(leaf.id, quarter(tree))
        registry = AnnotationRegistry(tree)
        with pytest.raises(AnnotationTargetMissing):
            registry.attach(leaf.id, Annotation("staccato"))

    def test_duration_errors_before_annotation_errors(
        self, tree: GroupingTree, validator: TreeValidator
    ) -> None:
        """Structural failures come first."""
        leaf = quarter(tree)
        tree.set_root(tree.group([leaf, quarter(tree)], expected=DurationValue.WHOLE))
        registry = AnnotationRegistry(tree)
        registry.attach(leaf.id, Annotation("staccato"))
        tree.remove(leaf.id)
        result = validator.check(tree, registry)
        assert [issue.code for issue in result.errors] == [
            "DURATION_MISMATCH",
            "ANNOTATION_TARGET_MISSING",
        ]
        with pytest.raises(DurationMismatch):
            validator.validate(tree, registry)
