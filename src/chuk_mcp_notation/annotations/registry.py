"""
Annotation Registry - metadata attached to nodes by identity.

Annotations point at node identities, not tree positions, so they
survive edits elsewhere in the tree. A replaced or removed node's
annotations become dangling; they are reported by dangling() and must
be re-pointed or dropped explicitly.

Per node, annotations are kept in an insertion-ordered dict keyed by
sequence number: iteration gives attach order and detach is a single
dict removal.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator, Mapping
from dataclasses import replace
from types import MappingProxyType

from chuk_mcp_notation.annotations.models import Annotation, AnnotationRef
from chuk_mcp_notation.errors import AnnotationTargetMissing, NotationError
from chuk_mcp_notation.tree.grouping import GroupingTree, NodeId

logger = logging.getLogger(__name__)


class AnnotationSnapshot:
    """
    Frozen view of a registry at one moment.

    Renderers read from a snapshot so later attaches cannot change what a
    render pass sees.
    """

    def __init__(self, entries: Mapping[NodeId, tuple[Annotation, ...]]):
        self._entries = MappingProxyType(dict(entries))

    def for_node(self, node_id: NodeId) -> tuple[Annotation, ...]:
        return self._entries.get(node_id, ())

    def targets(self) -> list[NodeId]:
        return sorted(self._entries)

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnnotationSnapshot):
            return NotImplemented
        return dict(self._entries) == dict(other._entries)

    __hash__ = None  # type: ignore[assignment]


EMPTY_SNAPSHOT = AnnotationSnapshot({})


class AnnotationRegistry:
    """
    Attaches annotations to the live nodes of one tree.

    The registry never interprets an annotation's kind; it only checks
    that the target exists and keeps insertion order.
    """

    def __init__(self, tree: GroupingTree):
        """
        Initialize an empty registry for a tree.

        Args:
            tree: The tree whose node identities are annotated
        """
        self.tree = tree
        self._by_node: dict[NodeId, dict[int, Annotation]] = {}
        self._seq = itertools.count()

    def attach(self, target_id: NodeId, annotation: Annotation) -> AnnotationRef:
        """
        Attach an annotation to a live node.

        Args:
            target_id: Identity of the node to annotate
            annotation: The annotation (its target and seq are assigned here)

        Returns:
            A reference for detaching later

        Raises:
            AnnotationTargetMissing: If target_id is not a live node
        """
        if not self.tree.contains(target_id):
            raise AnnotationTargetMissing(target_id)
        seq = next(self._seq)
        self._by_node.setdefault(target_id, {})[seq] = replace(annotation, target=target_id, seq=seq)
        logger.debug("Attached %s annotation #%d to node %d", annotation.kind, seq, target_id)
        return AnnotationRef(target_id, seq)

    def annotations_for(self, node_id: NodeId) -> tuple[Annotation, ...]:
        """All annotations on a node, in attach order."""
        return tuple(self._by_node.get(node_id, {}).values())

    def detach(self, target_id: NodeId, ref: AnnotationRef) -> Annotation:
        """
        Remove one annotation from a node.

        Raises:
            NotationError: If the reference does not name an annotation on target_id
        """
        entries = self._by_node.get(target_id)
        if ref.target != target_id or entries is None or ref.seq not in entries:
            raise NotationError(f"No annotation #{ref.seq} on node {target_id}")
        annotation = entries.pop(ref.seq)
        if not entries:
            del self._by_node[target_id]
        return annotation

    def targets(self) -> list[NodeId]:
        """Node identities that carry at least one annotation."""
        return sorted(self._by_node)

    def dangling(self) -> list[NodeId]:
        """Annotated identities that are no longer live in the tree."""
        return [node_id for node_id in self.targets() if not self.tree.contains(node_id)]

    def drop_dangling(self) -> int:
        """
        Remove every annotation whose target is no longer live.

        Returns:
            Number of annotations dropped
        """
        dropped = 0
        for node_id in self.dangling():
            dropped += len(self._by_node.pop(node_id))
        if dropped:
            logger.debug("Dropped %d dangling annotations", dropped)
        return dropped

    def repoint(self, old_id: NodeId, new_id: NodeId) -> int:
        """
        Move all annotations from one identity to another.

        Moved annotations keep their relative order and follow any already
        on the new target.

        Returns:
            Number of annotations moved

        Raises:
            AnnotationTargetMissing: If new_id is not a live node
        """
        if not self.tree.contains(new_id):
            raise AnnotationTargetMissing(new_id)
        moved = self._by_node.pop(old_id, {})
        if not moved:
            return 0
        destination = self._by_node.setdefault(new_id, {})
        for seq, annotation in moved.items():
            destination[seq] = replace(annotation, target=new_id)
        logger.debug("Repointed %d annotations from node %d to %d", len(moved), old_id, new_id)
        return len(moved)

    def snapshot(self) -> AnnotationSnapshot:
        """Freeze the current annotation set for a render pass."""
        return AnnotationSnapshot(
            {node_id: tuple(entries.values()) for node_id, entries in self._by_node.items()}
        )

    def __iter__(self) -> Iterator[Annotation]:
        for node_id in self.targets():
            yield from self._by_node[node_id].values()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._by_node.values())
