"""
Score transcriber - maps a ScoreDocument onto tree and registry calls.

The transcriber owns no musical logic of its own: every node comes from
GroupingTree.leaf/group/measure, every annotation from
AnnotationRegistry.attach, and flat event streams go through
fit_to_meter. The result is an unvalidated tree plus its annotations.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from fractions import Fraction
from functools import partial

from chuk_mcp_notation.annotations.catalog import AnnotationCatalog
from chuk_mcp_notation.annotations.registry import AnnotationRegistry
from chuk_mcp_notation.constants import AttachPoint, DurationMode, GroupKind
from chuk_mcp_notation.core.duration import DurationValue, TimeSignature
from chuk_mcp_notation.core.durational import (
    Durational,
    PlainDuration,
    TiedDuration,
    TupletDuration,
)
from chuk_mcp_notation.errors import MixedDurationError
from chuk_mcp_notation.models.score import (
    AnnotationSpec,
    DurationalName,
    EventSpec,
    MeasureSpec,
    ScoreDocument,
    TupletSpec,
)
from chuk_mcp_notation.tree.grouping import Grouping, GroupingTree
from chuk_mcp_notation.tree.meter import Meter, fit_to_meter

logger = logging.getLogger(__name__)

DURATIONAL_TYPES: dict[DurationalName, type[Durational]] = {
    "plain": PlainDuration,
    "tuplet": TupletDuration,
    "tied": TiedDuration,
}


@dataclass
class Transcription:
    """A transcribed score: the tree, its annotations and its metadata."""

    tree: GroupingTree
    annotations: AnnotationRegistry
    title: str
    composer: str | None = None

    @property
    def measure_count(self) -> int:
        if self.tree.root is None:
            return 0
        return sum(1 for _, node in self.tree.walk() if node.kind == GroupKind.MEASURE)


class ScoreTranscriber:
    """
    Builds a grouping tree and annotation registry from a score document.

    When a catalog is supplied, every annotation is checked against its
    declared kind (known kind, allowed node type, allowed value) before
    it is attached.
    """

    def __init__(self, catalog: AnnotationCatalog | None = None):
        """
        Initialize the transcriber.

        Args:
            catalog: Optional catalog used to check annotations
        """
        self.catalog = catalog

    def transcribe(self, document: ScoreDocument) -> Transcription:
        """
        Transcribe a document.

        Args:
            document: A parsed score document

        Returns:
            Transcription with an unvalidated tree

        Raises:
            MixedDurationError: If a homogeneous document uses another variant
            DurationMismatch: If a flat event stream does not fill whole bars
            NotationError: If an annotation is rejected by the catalog
        """
        tree = self._new_tree(document)
        registry = AnnotationRegistry(tree)
        pending: list[tuple[Grouping, list[AnnotationSpec], AttachPoint]] = []

        if document.measures:
            measures = self._build_measures(tree, document, pending)
        else:
            measures = self._fit_events(tree, document, pending)

        root = tree.set_root(tree.group(measures, kind=GroupKind.SCORE))
        pending.insert(0, (root, document.annotations, AttachPoint.GROUP))

        for node, specs, point in pending:
            for spec in specs:
                annotation = spec.to_annotation()
                if self.catalog is not None:
                    self.catalog.check(annotation, point)
                registry.attach(node.id, annotation)

        logger.debug(
            "Transcribed '%s': %d measures, %d annotations",
            document.title,
            len(measures),
            len(registry),
        )
        return Transcription(tree, registry, document.title, document.composer)

    def _new_tree(self, document: ScoreDocument) -> GroupingTree:
        if document.mode == DurationMode.HETEROGENEOUS:
            return GroupingTree.heterogeneous()
        return GroupingTree.homogeneous(DURATIONAL_TYPES[document.durational])

    def _build_measures(
        self,
        tree: GroupingTree,
        document: ScoreDocument,
        pending: list[tuple[Grouping, list[AnnotationSpec], AttachPoint]],
    ) -> list[Grouping]:
        time_signature = document.get_time_signature()
        measures = []
        for spec in document.measures:
            if spec.time_signature is not None:
                time_signature = TimeSignature.parse(spec.time_signature)
            measure = self._build_measure(tree, spec, time_signature, pending)
            pending.append((measure, spec.annotations, AttachPoint.GROUP))
            measures.append(measure)
        return measures

    def _build_measure(
        self,
        tree: GroupingTree,
        spec: MeasureSpec,
        time_signature: TimeSignature,
        pending: list[tuple[Grouping, list[AnnotationSpec], AttachPoint]],
    ) -> Grouping:
        children = []
        for item in spec.events:
            if isinstance(item, TupletSpec):
                leaves = []
                for event in item.tuplet:
                    leaf = self._leaf(tree, event, item.get_ratio())
                    pending.append((leaf, event.annotations, AttachPoint.LEAF))
                    leaves.append(leaf)
                bracket = tree.group(leaves)
                pending.append((bracket, item.annotations, AttachPoint.GROUP))
                children.append(bracket)
            else:
                leaf = self._leaf(tree, item, item.get_ratio())
                pending.append((leaf, item.annotations, AttachPoint.LEAF))
                children.append(leaf)
        return tree.measure(children, time_signature)

    def _leaf(self, tree: GroupingTree, event: EventSpec, ratio: Fraction | None) -> Grouping:
        return tree.leaf(self._durational(tree, event, ratio), event.to_event())

    def _durational(self, tree: GroupingTree, event: EventSpec, ratio: Fraction | None) -> Durational:
        """
        Pick the Durational variant for one event.

        Heterogeneous trees take whichever variant the event needs. A
        homogeneous tree expresses every event with its single variant
        where possible (a plain value is a tuplet of ratio 1).
        """
        base = event.get_duration()
        extension = DurationValue.parse(event.extension) if event.extension is not None else None

        if tree.mode == DurationMode.HOMOGENEOUS and tree.durational_type is TupletDuration:
            if extension is not None:
                raise MixedDurationError("A tuplet-only score cannot hold tied extensions")
            return TupletDuration(base, ratio if ratio is not None else Fraction(1))
        if tree.mode == DurationMode.HOMOGENEOUS and tree.durational_type is TiedDuration:
            if extension is None:
                raise MixedDurationError("A tied-only score needs an extension on every event")
            if ratio is not None:
                raise MixedDurationError("A tied-only score cannot hold tuplets")
            return TiedDuration(base, extension)

        if ratio is not None:
            return TupletDuration(base, ratio)
        if extension is not None:
            return TiedDuration(base, extension)
        return PlainDuration(base)

    def _fit_events(
        self,
        tree: GroupingTree,
        document: ScoreDocument,
        pending: list[tuple[Grouping, list[AnnotationSpec], AttachPoint]],
    ) -> list[Grouping]:
        for event in document.events:
            if event.ratio is not None:
                raise MixedDurationError("Tuplets must be written in explicit measures")
        stream = [(event.to_event(), event.total_duration()) for event in document.events]
        leaf_durational: Callable[[DurationValue], Durational] = PlainDuration
        if tree.mode == DurationMode.HOMOGENEOUS and tree.durational_type is TupletDuration:
            leaf_durational = partial(TupletDuration, ratio=Fraction(1))
        result = fit_to_meter(tree, stream, Meter(document.get_time_signature()), leaf_durational)
        # Annotations land on the first fragment of each event only
        for event, leaf_id in zip(document.events, result.first_leaves, strict=True):
            pending.append((tree.get(leaf_id), event.annotations, AttachPoint.LEAF))
        return result.measures


def transcribe_yaml(text: str, catalog: AnnotationCatalog | None = None) -> Transcription:
    """
    Convenience function to parse and transcribe YAML score text.

    Args:
        text: Score document YAML
        catalog: Optional catalog used to check annotations

    Returns:
        Transcription with an unvalidated tree
    """
    document = ScoreDocument.from_yaml(text)
    return ScoreTranscriber(catalog).transcribe(document)
