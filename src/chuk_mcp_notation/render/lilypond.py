"""
LilyPond backend.

Token grammar:
- The root group opens and closes a sequential block: { ... }
- Plain groups are braced; measure and beat groups are transparent
- A measure emits \\time n/d when its meter differs from the previous
  measure at the same level, and a | bar check on exit
- Leaves render as pitch + duration token: c'4, r8., <c' e' g'>2
- Tied descriptions ('4~16') expand to tied notes: c'4~ c'16
- Runs of sibling tuplet leaves with one ratio are bracketed:
  \\tuplet 3/2 { c'8 d'8 e'8 }
- Inline annotations follow the leaf's first duration token, or the
  group's opening tokens; lyric annotations are gathered into an
  \\addlyrics block emitted when the root closes
"""

from __future__ import annotations

import logging
from fractions import Fraction

from chuk_mcp_notation.annotations.catalog import AnnotationCatalog, lily_string
from chuk_mcp_notation.annotations.models import Annotation
from chuk_mcp_notation.constants import DEFAULT_LILYPOND_VERSION, GroupKind
from chuk_mcp_notation.core.durational import TupletDuration, unwrap
from chuk_mcp_notation.render.base import Renderer, VisitContext
from chuk_mcp_notation.tree.events import Chord, Note, Rest
from chuk_mcp_notation.tree.grouping import Grouping

logger = logging.getLogger(__name__)

# Lyric placeholder for a sung note without a syllable
LYRIC_SKIP = "\\skip 1"


def tuplet_ratio(node: Grouping | None) -> Fraction | None:
    """The tuplet ratio of a leaf, or None if it is not tuplet-scaled."""
    if node is None or not node.is_leaf:
        return None
    durational = unwrap(node.durational)  # type: ignore[arg-type]
    if isinstance(durational, TupletDuration) and durational.is_tuplet:
        return durational.ratio
    return None


def pitch_token(node: Grouping) -> str:
    """Pitch part of a leaf: note name, chord, rest or spacer."""
    event = node.event
    if isinstance(event, Note):
        return event.pitch.to_lily()
    if isinstance(event, Chord):
        return "<" + " ".join(p.to_lily() for p in event.pitches) + ">"
    if isinstance(event, Rest):
        return "r"
    # A leaf without content holds time only
    return "s"


class LilypondRenderer(Renderer):
    """Renders a grouping tree as LilyPond music."""

    name = "lilypond"

    def __init__(
        self,
        catalog: AnnotationCatalog | None = None,
        version: str = DEFAULT_LILYPOND_VERSION,
    ):
        """
        Initialize the renderer.

        Args:
            catalog: Annotation kinds and their templates
            version: Language level written by document()
        """
        super().__init__(catalog)
        self.version = version

    # ------------------------------------------------------------------
    # Visits
    # ------------------------------------------------------------------

    def visit_enter(self, node: Grouping, ctx: VisitContext) -> list[str]:
        fragments: list[str] = []
        if ctx.is_root:
            fragments.append("{\n")
        elif node.kind in (GroupKind.GROUP, GroupKind.SCORE):
            fragments.append("{ ")

        if node.kind == GroupKind.MEASURE and self._meter_changes(node, ctx):
            fragments.append(f"\\time {node.time_signature} ")

        for annotation in self._inline(ctx.annotations_on(node)):
            fragments.append(self.render_annotation(annotation) + " ")
        return fragments

    def visit_leaf(self, node: Grouping, ctx: VisitContext) -> list[str]:
        fragments: list[str] = []
        ratio = tuplet_ratio(node)
        if ratio is not None and tuplet_ratio(ctx.sibling(-1)) != ratio:
            fragments.append(f"\\tuplet {ratio.denominator}/{ratio.numerator} {{ ")

        pitch = pitch_token(node)
        event = node.event
        tied = event is not None and event.tie
        pieces = node.describe().split("~")
        post_events = "".join(
            self.render_annotation(a) for a in self._inline(ctx.annotations_on(node))
        )

        for i, piece in enumerate(pieces):
            token = pitch + piece
            if i == 0:
                token += post_events
            last = i == len(pieces) - 1
            # Rests and spacers are never tied
            if pitch not in ("r", "s") and (not last or tied):
                token += "~"
            fragments.append(token + " ")

        if ratio is not None and tuplet_ratio(ctx.sibling(1)) != ratio:
            fragments.append("} ")
        if ctx.is_root:
            fragments.extend(self._lyrics(node, ctx))
        return fragments

    def visit_exit(self, node: Grouping, ctx: VisitContext) -> list[str]:
        fragments: list[str] = []
        if node.kind == GroupKind.MEASURE:
            fragments.append("|\n")
        if ctx.is_root:
            fragments.append("}\n")
            fragments.extend(self._lyrics(node, ctx))
        elif node.kind in (GroupKind.GROUP, GroupKind.SCORE):
            fragments.append("} ")
        return fragments

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    def document(
        self,
        music: str,
        title: str | None = None,
        composer: str | None = None,
    ) -> str:
        """
        Wrap rendered music in a complete LilyPond file.

        Args:
            music: Output of render_tree() with this backend
            title: Optional header title
            composer: Optional header composer

        Returns:
            File text with version, header and score blocks
        """
        lines = [f'\\version "{self.version}"', ""]
        header = []
        if title:
            header.append(f"  title = {lily_string(title)}")
        if composer:
            header.append(f"  composer = {lily_string(composer)}")
        if header:
            lines.extend(["\\header {", *header, "}", ""])

        lines.append("\\score {")
        lines.extend("  " + line for line in music.strip().splitlines())
        lines.extend(["  \\layout { }", "}", ""])
        logger.debug("Wrapped music in a LilyPond %s document", self.version)
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _inline(self, annotations: tuple[Annotation, ...]) -> list[Annotation]:
        inline = []
        for annotation in annotations:
            kind = self.catalog.get_kind(annotation.kind)
            if kind is None or kind.inline:
                # Unknown kinds fall through so render_annotation reports them
                inline.append(annotation)
        return inline

    def _meter_changes(self, node: Grouping, ctx: VisitContext) -> bool:
        if ctx.parent is None or ctx.index is None:
            return True
        for previous in reversed(ctx.parent.children[: ctx.index]):
            if previous.kind == GroupKind.MEASURE:
                return previous.time_signature != node.time_signature
        return True

    def _lyrics(self, root: Grouping, ctx: VisitContext) -> list[str]:
        """Collect lyric syllables from every sung leaf under the root."""
        syllables: list[str] = []
        found = False
        continuing = False

        stack = [root]
        while stack:
            node = stack.pop()
            if not node.is_leaf:
                stack.extend(reversed(node.children))
                continue
            event = node.event
            if not isinstance(event, (Note, Chord)):
                continuing = False
                continue
            if not continuing:
                lyrics = [
                    a for a in ctx.annotations_on(node)
                    if (kind := self.catalog.get_kind(a.kind)) is not None and not kind.inline
                ]
                if lyrics:
                    found = True
                    syllables.append(" ".join(self.render_annotation(a) for a in lyrics))
                else:
                    syllables.append(LYRIC_SKIP)
            # A tied note's continuation carries no new syllable
            continuing = event.tie

        if not found:
            return []
        while syllables and syllables[-1] == LYRIC_SKIP:
            syllables.pop()
        return ["\\addlyrics { " + " ".join(syllables) + " }\n"]
