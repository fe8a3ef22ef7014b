"""
Renderer abstraction - turns a validated tree into backend text.

The traversal is fixed and backend-agnostic:

    visit_enter(group)  ->  children in order  ->  visit_exit(group)
    visit_leaf(leaf)

Each visit returns a list of text fragments; the driver concatenates
fragments in call order. Every visit receives a VisitContext with the
node's path, parent and sibling index and a frozen snapshot of the
annotations, so a backend can make all of its decisions from the
context alone. That is what lets independent subtrees be rendered in
parallel and still concatenate to the sequential output.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import ClassVar

from chuk_mcp_notation.annotations.catalog import AnnotationCatalog
from chuk_mcp_notation.annotations.models import Annotation
from chuk_mcp_notation.annotations.registry import (
    EMPTY_SNAPSHOT,
    AnnotationRegistry,
    AnnotationSnapshot,
)
from chuk_mcp_notation.constants import ErrorMessages
from chuk_mcp_notation.errors import (
    NotationError,
    ParallelRenderError,
    RenderBackendError,
    UnvalidatedTreeError,
)
from chuk_mcp_notation.tree.grouping import Grouping, GroupingTree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisitContext:
    """Where a node sits, computed during traversal."""

    path: tuple[int, ...]
    parent: Grouping | None
    index: int | None
    annotations: AnnotationSnapshot

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def depth(self) -> int:
        return len(self.path)

    def annotations_on(self, node: Grouping) -> tuple[Annotation, ...]:
        """Annotations attached to a node, in attach order."""
        return self.annotations.for_node(node.id)

    def sibling(self, offset: int) -> Grouping | None:
        """The sibling offset positions away, or None past either end."""
        if self.parent is None or self.index is None:
            return None
        position = self.index + offset
        children = self.parent.children
        if 0 <= position < len(children):
            return children[position]
        return None

    def child(self, node: Grouping, index: int) -> VisitContext:
        """Context for one of node's children."""
        return VisitContext(self.path + (index,), node, index, self.annotations)


class Renderer(ABC):
    """
    A notation backend.

    Subclasses set name (used to pick annotation templates) and implement
    the three visits. Implementations should derive everything from the
    node and its context so one subtree's output never depends on
    another's.
    """

    name: ClassVar[str] = "base"

    def __init__(self, catalog: AnnotationCatalog | None = None):
        """
        Initialize the renderer.

        Args:
            catalog: Annotation kinds and their templates (built-in library
                when omitted)
        """
        self.catalog = catalog or AnnotationCatalog()

    @abstractmethod
    def visit_enter(self, node: Grouping, ctx: VisitContext) -> list[str]:
        """Fragments emitted before a group's children."""

    @abstractmethod
    def visit_leaf(self, node: Grouping, ctx: VisitContext) -> list[str]:
        """Fragments for one leaf."""

    @abstractmethod
    def visit_exit(self, node: Grouping, ctx: VisitContext) -> list[str]:
        """Fragments emitted after a group's children."""

    def render_annotation(self, annotation: Annotation) -> str:
        """Render one annotation with this backend's template."""
        return self.catalog.render(annotation, self.name)


def _snapshot(annotations: AnnotationRegistry | AnnotationSnapshot | None) -> AnnotationSnapshot:
    if annotations is None:
        return EMPTY_SNAPSHOT
    if isinstance(annotations, AnnotationRegistry):
        return annotations.snapshot()
    return annotations


def _require_validated(tree: GroupingTree) -> Grouping:
    if not tree.validated:
        raise UnvalidatedTreeError(ErrorMessages.NOT_VALIDATED)
    if tree.root is None:
        raise NotationError(ErrorMessages.NO_ROOT)
    return tree.root


def render_node(node: Grouping, ctx: VisitContext, renderer: Renderer) -> list[str]:
    """
    Render one subtree, returning its fragments in call order.

    Traversal uses an explicit stack, so deep trees do not hit the
    recursion limit.
    """
    fragments: list[str] = []
    stack: list[tuple[Grouping, VisitContext, bool]] = [(node, ctx, False)]
    while stack:
        current, current_ctx, exiting = stack.pop()
        if current.is_leaf:
            fragments.extend(renderer.visit_leaf(current, current_ctx))
        elif exiting:
            fragments.extend(renderer.visit_exit(current, current_ctx))
        else:
            fragments.extend(renderer.visit_enter(current, current_ctx))
            stack.append((current, current_ctx, True))
            for i in range(len(current.children) - 1, -1, -1):
                stack.append((current.children[i], current_ctx.child(current, i), False))
    return fragments


def render_tree(
    tree: GroupingTree,
    renderer: Renderer,
    annotations: AnnotationRegistry | AnnotationSnapshot | None = None,
) -> str:
    """
    Render a validated tree with one backend.

    Args:
        tree: A tree that has passed validation
        renderer: The backend
        annotations: Registry (snapshotted here) or an existing snapshot

    Returns:
        The concatenated output text

    Raises:
        UnvalidatedTreeError: If the tree has not been validated since its
            last edit
        RenderBackendError: If the backend fails
    """
    root = _require_validated(tree)
    ctx = VisitContext((), None, None, _snapshot(annotations))
    output = "".join(render_node(root, ctx, renderer))
    logger.debug("Rendered tree with %s backend (%d chars)", renderer.name, len(output))
    return output


def render_subtrees(
    tree: GroupingTree,
    renderer_factory: Callable[[], Renderer],
    annotations: AnnotationRegistry | AnnotationSnapshot | None = None,
    max_workers: int | None = None,
) -> str:
    """
    Render the root's children concurrently and concatenate in order.

    Each child subtree gets a fresh renderer on a worker thread. The
    root's own enter/exit fragments are rendered on the calling thread.
    The result equals render_tree() for the same tree.

    Args:
        tree: A tree that has passed validation
        renderer_factory: Builds one renderer per job
        annotations: Registry (snapshotted once, shared read-only) or snapshot
        max_workers: Thread pool size (executor default when None)

    Returns:
        The concatenated output text

    Raises:
        UnvalidatedTreeError: If the tree has not been validated
        ParallelRenderError: If any subtree fails; carries every failure
    """
    root = _require_validated(tree)
    snapshot = _snapshot(annotations)
    root_ctx = VisitContext((), None, None, snapshot)
    driver = renderer_factory()
    if root.is_leaf:
        return "".join(render_node(root, root_ctx, driver))

    def job(index: int) -> list[str]:
        child = root.children[index]
        return render_node(child, root_ctx.child(root, index), renderer_factory())

    head = driver.visit_enter(root, root_ctx)
    parts: dict[int, list[str]] = {}
    failures: dict[int, RenderBackendError] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(job, i) for i in range(len(root.children))]
        for i, future in enumerate(futures):
            try:
                parts[i] = future.result()
            except RenderBackendError as e:
                failures[i] = e

    if failures:
        logger.debug("Parallel render failed in %d of %d subtrees", len(failures), len(futures))
        raise ParallelRenderError(failures)

    tail = driver.visit_exit(root, root_ctx)
    body = [fragment for i in range(len(root.children)) for fragment in parts[i]]
    output = "".join(head + body + tail)
    logger.debug("Rendered %d subtrees in parallel with %s backend", len(futures), driver.name)
    return output
