"""
Rendering - notation backends and the external compile step.

This module provides:
- Renderer / VisitContext: Backend contract and traversal context
- render_tree / render_subtrees: Sequential and parallel drivers
- LilypondRenderer: LilyPond text backend
- LilypondCompiler: Async lilypond subprocess job
- get_renderer: Backend lookup by name
"""

from __future__ import annotations

from chuk_mcp_notation.annotations.catalog import AnnotationCatalog
from chuk_mcp_notation.constants import ErrorMessages
from chuk_mcp_notation.errors import NotationError
from chuk_mcp_notation.render.base import (
    Renderer,
    VisitContext,
    render_node,
    render_subtrees,
    render_tree,
)
from chuk_mcp_notation.render.compiler import CompileResult, LilypondCompiler, find_lilypond
from chuk_mcp_notation.render.lilypond import LilypondRenderer

BACKENDS: dict[str, type[Renderer]] = {
    LilypondRenderer.name: LilypondRenderer,
}


def get_renderer(name: str, catalog: AnnotationCatalog | None = None) -> Renderer:
    """
    Build a renderer by backend name.

    Raises:
        NotationError: If no backend has that name
    """
    backend = BACKENDS.get(name)
    if backend is None:
        raise NotationError(
            ErrorMessages.UNKNOWN_BACKEND.format(backend=name, available=", ".join(sorted(BACKENDS)))
        )
    return backend(catalog)


__all__ = [
    # Contract
    "Renderer",
    "VisitContext",
    # Drivers
    "render_node",
    "render_subtrees",
    "render_tree",
    # Backends
    "BACKENDS",
    "LilypondRenderer",
    "get_renderer",
    # Compiler
    "CompileResult",
    "LilypondCompiler",
    "find_lilypond",
]
