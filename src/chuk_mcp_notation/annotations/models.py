"""
Annotation models.

AnnotationKind is a catalog entry loaded from declarative YAML: it names
a kind of marking and says how each backend spells it. Annotation is an
instance attached to one node. Kinds are an open set; nothing in the
engine hard-codes a particular kind.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field

from chuk_mcp_notation.constants import AttachPoint, Placement

# Backend direction prefixes for post-events
PLACEMENT_DIRECTIONS: dict[Placement, str] = {
    Placement.ABOVE: "^",
    Placement.BELOW: "_",
    Placement.NEUTRAL: "-",
}


class AnnotationKind(BaseModel):
    """
    A declared annotation kind.

    Templates are Jinja2 strings keyed by backend name. They receive
    value, placement, direction and offset.
    """

    name: str = Field(..., description="Kind name used when attaching")
    category: str = Field("text", description="Grouping label (dynamic, articulation, lyric...)")
    description: str = Field("", description="Human-readable description")
    attaches_to: list[AttachPoint] = Field(
        default_factory=lambda: [AttachPoint.LEAF], description="Node types this kind may target"
    )
    values: list[str] | None = Field(None, description="Allowed values (None = free text)")
    default_placement: Placement = Field(Placement.NEUTRAL, description="Placement when unspecified")
    inline: bool = Field(True, description="False for kinds a backend collects elsewhere (lyrics)")
    templates: dict[str, str] = Field(default_factory=dict, description="Template per backend")

    model_config = {"frozen": True}

    def accepts(self, value: str) -> bool:
        """Check a value against the whitelist, if any."""
        return self.values is None or value in self.values

    def can_attach(self, point: AttachPoint) -> bool:
        return point in self.attaches_to

    def template_for(self, backend: str) -> str | None:
        return self.templates.get(backend)


class AnnotationCatalogFile(BaseModel):
    """Schema of one catalog YAML file."""

    schema_version: str = Field("annotation-catalog/v1", alias="schema", description="Schema version")
    category: str | None = Field(None, description="Default category for kinds in this file")
    kinds: list[AnnotationKind] = Field(default_factory=list, description="Declared kinds")

    model_config = {"populate_by_name": True}


@dataclass(frozen=True)
class Annotation:
    """
    A piece of metadata attached to a node by identity.

    target and seq are filled in by the registry on attach; seq is the
    insertion order used as the tie-break for deterministic emission.
    """

    kind: str
    value: str = ""
    placement: Placement | None = None
    offset: float = 0.0
    target: int | None = None
    seq: int | None = None

    def placement_or(self, default: Placement) -> Placement:
        return self.placement if self.placement is not None else default


@dataclass(frozen=True)
class AnnotationRef:
    """Handle returned by attach, used to detach in constant time."""

    target: int
    seq: int
