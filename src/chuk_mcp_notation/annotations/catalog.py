"""
Annotation catalog - discovers annotation kinds and renders their tokens.

Kinds can come from:
1. Built-in library (shipped with package)
2. Project catalog (user's project/annotations directory)

Each YAML file declares one or more kinds with per-backend Jinja2
templates. Project kinds override library kinds with the same name.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from jinja2 import Environment, StrictUndefined, Template, TemplateError
from pydantic import ValidationError

from chuk_mcp_notation.annotations.models import (
    PLACEMENT_DIRECTIONS,
    Annotation,
    AnnotationCatalogFile,
    AnnotationKind,
)
from chuk_mcp_notation.constants import AttachPoint, ErrorMessages
from chuk_mcp_notation.errors import NotationError, RenderBackendError

logger = logging.getLogger(__name__)

LIBRARY_PATH = Path(__file__).parent / "library"


def lily_string(value: object) -> str:
    """Quote a value as a LilyPond string literal."""
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


class AnnotationCatalog:
    """
    Discovers and loads annotation kind definitions.

    Kinds are loaded from YAML files in the library and project
    directories on first use and cached by name.
    """

    def __init__(
        self,
        library_path: Path | None = None,
        project_path: Path | None = None,
    ):
        """
        Initialize the catalog.

        Args:
            library_path: Path to built-in annotation library
            project_path: Path to project annotation directory
        """
        self.library_path = library_path or LIBRARY_PATH
        self.project_path = project_path
        self._cache: dict[str, AnnotationKind] | None = None
        self._templates: dict[tuple[str, str], Template] = {}
        self._env = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=False,
        )
        self._env.filters["lily_string"] = lily_string

    def list_kinds(self, category: str | None = None) -> list[AnnotationKind]:
        """
        List all available kinds, optionally filtered by category.

        Project kinds take precedence over library kinds.
        """
        kinds = list(self._kinds().values())
        if category is not None:
            kinds = [k for k in kinds if k.category == category]
        return sorted(kinds, key=lambda k: (k.category, k.name))

    def get_kind(self, name: str) -> AnnotationKind | None:
        """
        Get a kind by name.

        Args:
            name: Kind name

        Returns:
            AnnotationKind if found, None otherwise
        """
        return self._kinds().get(name)

    def require_kind(self, name: str) -> AnnotationKind:
        """
        Get a kind by name or fail.

        Raises:
            NotationError: If no such kind is declared
        """
        kind = self.get_kind(name)
        if kind is None:
            raise NotationError(ErrorMessages.UNKNOWN_ANNOTATION_KIND.format(kind=name))
        return kind

    def check(self, annotation: Annotation, point: AttachPoint) -> AnnotationKind:
        """
        Check that an annotation is acceptable for a node type.

        Raises:
            NotationError: For an unknown kind, a disallowed attach point
                or a value outside the kind's whitelist
        """
        kind = self.require_kind(annotation.kind)
        if not kind.can_attach(point):
            raise NotationError(
                ErrorMessages.BAD_ATTACH_POINT.format(kind=kind.name, point=point.value)
            )
        if not kind.accepts(annotation.value):
            raise NotationError(
                ErrorMessages.BAD_ANNOTATION_VALUE.format(value=annotation.value, kind=kind.name)
            )
        return kind

    def render(self, annotation: Annotation, backend: str) -> str:
        """
        Render one annotation as a backend token.

        Args:
            annotation: The annotation to render
            backend: Backend name whose template is used

        Returns:
            The rendered token text

        Raises:
            RenderBackendError: If the kind is unknown, has no template for
                the backend, or the template fails
        """
        kind = self.get_kind(annotation.kind)
        if kind is None:
            raise RenderBackendError(ErrorMessages.UNKNOWN_ANNOTATION_KIND.format(kind=annotation.kind))
        if not kind.accepts(annotation.value):
            raise RenderBackendError(
                ErrorMessages.BAD_ANNOTATION_VALUE.format(value=annotation.value, kind=kind.name)
            )

        template = self._template(kind, backend)
        placement = annotation.placement_or(kind.default_placement)
        try:
            return template.render(
                value=annotation.value,
                placement=placement.value,
                direction=PLACEMENT_DIRECTIONS[placement],
                offset=annotation.offset,
            ).strip()
        except TemplateError as e:
            raise RenderBackendError(
                f"Template for '{kind.name}' failed on backend '{backend}'", str(e)
            ) from e

    def clear_cache(self) -> None:
        """Clear loaded kinds and compiled templates."""
        self._cache = None
        self._templates.clear()

    def _template(self, kind: AnnotationKind, backend: str) -> Template:
        key = (kind.name, backend)
        if key not in self._templates:
            source = kind.template_for(backend)
            if source is None:
                raise RenderBackendError(ErrorMessages.NO_TEMPLATE.format(kind=kind.name, backend=backend))
            try:
                self._templates[key] = self._env.from_string(source)
            except TemplateError as e:
                raise RenderBackendError(
                    f"Template for '{kind.name}' on backend '{backend}' does not compile", str(e)
                ) from e
        return self._templates[key]

    def _kinds(self) -> dict[str, AnnotationKind]:
        if self._cache is None:
            kinds: dict[str, AnnotationKind] = {}

            # Load library kinds
            if self.library_path.exists():
                for path in sorted(self.library_path.glob("*.yaml")):
                    for kind in self._load_catalog_file(path):
                        kinds[kind.name] = kind

            # Load project kinds (override library)
            if self.project_path and self.project_path.exists():
                for path in sorted(self.project_path.glob("*.yaml")):
                    for kind in self._load_catalog_file(path):
                        if kind.name in kinds:
                            logger.debug("Project kind '%s' overrides library kind", kind.name)
                        kinds[kind.name] = kind

            self._cache = kinds
            logger.debug("Loaded %d annotation kinds", len(kinds))
        return self._cache

    def _load_catalog_file(self, path: Path) -> list[AnnotationKind]:
        """Load the kinds declared in one YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # A file-level category applies to kinds that do not set their own
        default_category = data.get("category")
        if default_category:
            for entry in data.get("kinds", []):
                entry.setdefault("category", default_category)

        try:
            catalog_file = AnnotationCatalogFile.model_validate(data)
        except ValidationError as e:
            raise NotationError(f"Invalid annotation catalog {path.name}: {e}") from e
        return catalog_file.kinds
