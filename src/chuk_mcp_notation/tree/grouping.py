"""
Grouping tree - the recursive rhythmic structure.

A tree is built bottom-up from leaves (atomic events with a Durational)
and groups (ordered children whose duration is always derived). The
tree hands out node identities; an identity is never reused, even after
the node is replaced or removed, so stale annotations can be detected
instead of silently pointing at a newcomer.

A tree is either homogeneous (every leaf uses one concrete Durational
class) or heterogeneous (every leaf is wrapped in an AnyDuration
handle). The choice is made when the tree is created.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

from chuk_mcp_notation.constants import DurationMode, ErrorMessages, GroupKind
from chuk_mcp_notation.core.duration import DurationValue, TimeSignature, total_duration
from chuk_mcp_notation.core.durational import AnyDuration, Durational, erase
from chuk_mcp_notation.errors import InvalidDuration, MixedDurationError, NotationError
from chuk_mcp_notation.tree.events import Event

logger = logging.getLogger(__name__)

D = TypeVar("D", bound=Durational)

NodeId = int


class Grouping:
    """
    A node in the rhythmic tree: a leaf event or a group of children.

    Nodes are created through a GroupingTree, which assigns the identity.
    A group owns its children; a child keeps no reference to its parent.
    """

    __slots__ = (
        "_id",
        "_durational",
        "_event",
        "_children",
        "_expected",
        "_kind",
        "_time_signature",
        "_duration",
    )

    def __init__(
        self,
        node_id: NodeId,
        *,
        durational: Durational | None = None,
        event: Event | None = None,
        children: list[Grouping] | None = None,
        expected: DurationValue | None = None,
        kind: GroupKind = GroupKind.GROUP,
        time_signature: TimeSignature | None = None,
    ):
        self._id = node_id
        self._durational = durational
        self._event = event
        self._children = children if children is not None else []
        self._expected = expected
        self._kind = kind
        self._time_signature = time_signature
        self._duration = self._compute_duration()

    @property
    def id(self) -> NodeId:
        return self._id

    @property
    def is_leaf(self) -> bool:
        return self._durational is not None

    @property
    def durational(self) -> Durational | None:
        return self._durational

    @property
    def event(self) -> Event | None:
        return self._event

    @property
    def children(self) -> tuple[Grouping, ...]:
        return tuple(self._children)

    @property
    def expected(self) -> DurationValue | None:
        """Declared duration used only by the validator."""
        return self._expected

    @property
    def kind(self) -> GroupKind:
        return self._kind

    @property
    def time_signature(self) -> TimeSignature | None:
        return self._time_signature

    @property
    def duration(self) -> DurationValue:
        """Intrinsic for leaves, the exact sum of the children for groups."""
        return self._duration

    def children_sum(self) -> DurationValue:
        """Recompute the sum of the children's stored durations."""
        return total_duration([child.duration for child in self._children])

    def describe(self) -> str:
        """Duration token for a leaf; the summed value for a group."""
        if self._durational is not None:
            return self._durational.describe()
        return self._duration.to_text()

    def _compute_duration(self) -> DurationValue:
        if self._durational is not None:
            return self._durational.duration()
        return self.children_sum()

    def _refresh(self) -> None:
        self._duration = self._compute_duration()

    def __repr__(self) -> str:
        if self.is_leaf:
            return f"Grouping(id={self._id}, leaf={self.describe()!r})"
        return (
            f"Grouping(id={self._id}, {self._kind.value}, "
            f"children={len(self._children)}, duration={self._duration})"
        )


class GroupingTree(Generic[D]):
    """
    Factory and owner of a grouping hierarchy.

    Builds leaves and groups, assigns identities, tracks which nodes are
    live (reachable from the root), and applies structural edits. Any edit
    clears the validated flag.
    """

    def __init__(
        self,
        durational_type: type[D] | None = None,
        mode: DurationMode = DurationMode.HOMOGENEOUS,
    ):
        """
        Initialize an empty tree.

        Args:
            durational_type: The single Durational class allowed in a
                homogeneous tree (ignored for heterogeneous trees)
            mode: Homogeneous or heterogeneous duration representation

        Raises:
            TypeError: If a homogeneous tree is created without a type
        """
        if mode == DurationMode.HOMOGENEOUS:
            if durational_type is None:
                raise TypeError("A homogeneous tree needs a durational_type")
            if durational_type is AnyDuration:
                raise TypeError("Use DurationMode.HETEROGENEOUS for AnyDuration trees")
        self.mode = mode
        self.durational_type: type[Durational] = (
            AnyDuration if mode == DurationMode.HETEROGENEOUS else durational_type  # type: ignore[assignment]
        )
        self.root: Grouping | None = None
        self.validated = False

        self._ids = itertools.count(1)
        self._nodes: dict[NodeId, Grouping] = {}
        self._owned: set[NodeId] = set()
        self._retired: set[NodeId] = set()
        self._paths: dict[NodeId, tuple[int, ...]] | None = None

    @classmethod
    def homogeneous(cls, durational_type: type[D]) -> GroupingTree[D]:
        """Create a tree restricted to one Durational class."""
        return cls(durational_type, DurationMode.HOMOGENEOUS)

    @classmethod
    def heterogeneous(cls) -> GroupingTree[AnyDuration]:
        """Create a tree whose leaves are type-erased handles."""
        return GroupingTree(None, DurationMode.HETEROGENEOUS)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def leaf(self, durational: Durational, event: Event | None = None) -> Grouping:
        """
        Create a leaf node.

        In a heterogeneous tree the durational is wrapped in an AnyDuration
        handle; in a homogeneous tree it must be exactly durational_type.

        Raises:
            MixedDurationError: If a homogeneous tree gets another variant
        """
        if self.mode == DurationMode.HETEROGENEOUS:
            durational = erase(durational)
        elif type(durational) is not self.durational_type:
            raise MixedDurationError(
                f"Homogeneous tree of {self.durational_type.__name__} "
                f"cannot hold {type(durational).__name__}"
            )
        node = Grouping(next(self._ids), durational=durational, event=event)
        self._nodes[node.id] = node
        return node

    def group(
        self,
        children: Iterable[Grouping],
        expected: DurationValue | None = None,
        kind: GroupKind = GroupKind.GROUP,
        time_signature: TimeSignature | None = None,
    ) -> Grouping:
        """
        Create a group whose duration is the exact sum of its children.

        Args:
            children: Ordered child nodes, none of them already owned
            expected: Optional declared duration, checked by the validator
            kind: Structural role of the group
            time_signature: Meter in force from this group on (measures)

        Raises:
            InvalidDuration: If there are no children
            NotationError: If a child is foreign, retired or already owned
        """
        children = list(children)
        if not children:
            raise InvalidDuration("A group must contain at least one child")
        seen: set[NodeId] = set()
        for child in children:
            self._check_adoptable(child)
            if child.id in seen:
                raise NotationError(f"Node {child.id} appears twice in one group")
            seen.add(child.id)

        node = Grouping(
            next(self._ids),
            children=children,
            expected=expected,
            kind=kind,
            time_signature=time_signature,
        )
        self._owned.update(seen)
        self._nodes[node.id] = node
        return node

    def measure(self, children: Iterable[Grouping], time_signature: TimeSignature) -> Grouping:
        """Create a measure group expected to fill one bar of the given meter."""
        return self.group(
            children,
            expected=time_signature.bar_duration,
            kind=GroupKind.MEASURE,
            time_signature=time_signature,
        )

    def set_root(self, node: Grouping) -> Grouping:
        """
        Make a node the root of the tree.

        The previous root (if any) and its subtree are retired.
        """
        if self.root is node:
            return node
        self._check_adoptable(node)
        if self.root is not None and self.root is not node:
            self._retire(self.root)
        self.root = node
        self._invalidate()
        return node

    def _check_adoptable(self, node: Grouping) -> None:
        if node.id in self._retired:
            raise NotationError(f"Node {node.id} was removed from the tree and cannot be reused")
        if self._nodes.get(node.id) is not node:
            raise NotationError(f"Node {node.id} was not created by this tree")
        if node.id in self._owned:
            raise NotationError(f"Node {node.id} already belongs to a group")
        if self.root is node:
            raise NotationError(f"Node {node.id} is the root of the tree")

    # ------------------------------------------------------------------
    # Lookup and traversal
    # ------------------------------------------------------------------

    @property
    def duration(self) -> DurationValue:
        """Duration of the whole tree."""
        return self._require_root().duration

    def contains(self, node_id: NodeId) -> bool:
        """Whether node_id is a live node (reachable from the root)."""
        return node_id in self._index()

    def find(self, node_id: NodeId) -> Grouping | None:
        """Get a live node by identity."""
        if not self.contains(node_id):
            return None
        return self._nodes[node_id]

    def get(self, node_id: NodeId) -> Grouping | None:
        """Get any node built by this tree that has not been retired, live or not."""
        return self._nodes.get(node_id)

    def path_of(self, node_id: NodeId) -> list[int] | None:
        """Child indices from the root to a live node."""
        path = self._index().get(node_id)
        return list(path) if path is not None else None

    def node_at(self, path: list[int]) -> Grouping:
        """Resolve a child-index path from the root."""
        node = self._require_root()
        for index in path:
            node = node.children[index]
        return node

    def walk(self) -> Iterator[tuple[list[int], Grouping]]:
        """Pre-order traversal yielding (path, node) pairs."""
        if self.root is None:
            return
        stack: list[tuple[list[int], Grouping]] = [([], self.root)]
        while stack:
            path, node = stack.pop()
            yield path, node
            for i in range(len(node.children) - 1, -1, -1):
                stack.append((path + [i], node.children[i]))

    def leaves(self) -> list[Grouping]:
        """All live leaves in left-to-right order."""
        return [node for _, node in self.walk() if node.is_leaf]

    def live_ids(self) -> set[NodeId]:
        return set(self._index())

    def _index(self) -> dict[NodeId, tuple[int, ...]]:
        if self._paths is None:
            self._paths = {node.id: tuple(path) for path, node in self.walk()}
        return self._paths

    def _require_root(self) -> Grouping:
        if self.root is None:
            raise NotationError(ErrorMessages.NO_ROOT)
        return self.root

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def replace(self, node_id: NodeId, new_node: Grouping) -> Grouping:
        """
        Swap a live subtree for a freshly built node.

        Every identity in the old subtree is retired. Ancestors keep their
        identities and their durations are recomputed.

        Raises:
            NotationError: If node_id is not live or new_node is not adoptable
        """
        path = self.path_of(node_id)
        if path is None:
            raise NotationError(f"Node {node_id} is not in the tree")
        self._check_adoptable(new_node)

        old = self._nodes[node_id]
        if not path:
            self.root = new_node
        else:
            parent = self.node_at(path[:-1])
            parent._children[path[-1]] = new_node
            self._owned.add(new_node.id)
            self._refresh_path(path[:-1])
        self._retire(old)
        self._invalidate()
        logger.debug("Replaced node %d with node %d at %s", node_id, new_node.id, path)
        return new_node

    def remove(self, node_id: NodeId) -> None:
        """
        Detach a live, non-root subtree and retire its identities.

        Raises:
            NotationError: If node_id is the root or not live
            InvalidDuration: If the parent would be left without children
        """
        path = self.path_of(node_id)
        if path is None:
            raise NotationError(f"Node {node_id} is not in the tree")
        if not path:
            raise NotationError("Cannot remove the root node; use set_root or replace")

        parent = self.node_at(path[:-1])
        if len(parent._children) == 1:
            raise InvalidDuration(f"Removing node {node_id} would leave group {parent.id} empty")
        old = parent._children.pop(path[-1])
        self._refresh_path(path[:-1])
        self._retire(old)
        self._invalidate()
        logger.debug("Removed node %d at %s", node_id, path)

    def _refresh_path(self, path: list[int]) -> None:
        """Recompute durations from the node at path up to the root."""
        nodes = [self._require_root()]
        for index in path:
            nodes.append(nodes[-1].children[index])
        for node in reversed(nodes):
            node._refresh()

    def _retire(self, node: Grouping) -> None:
        stack = [node]
        while stack:
            current = stack.pop()
            self._nodes.pop(current.id, None)
            self._owned.discard(current.id)
            self._retired.add(current.id)
            stack.extend(current.children)

    def _invalidate(self) -> None:
        self._paths = None
        self.validated = False
