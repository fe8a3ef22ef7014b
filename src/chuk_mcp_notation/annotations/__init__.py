"""
Annotations - metadata attached to tree nodes by identity.

This module provides:
- Annotation / AnnotationKind: Instances and declared kinds
- AnnotationRegistry: Attach, detach and look up annotations per node
- AnnotationCatalog: YAML-declared kinds with per-backend templates
"""

from chuk_mcp_notation.annotations.catalog import LIBRARY_PATH, AnnotationCatalog, lily_string
from chuk_mcp_notation.annotations.models import (
    PLACEMENT_DIRECTIONS,
    Annotation,
    AnnotationCatalogFile,
    AnnotationKind,
    AnnotationRef,
)
from chuk_mcp_notation.annotations.registry import (
    EMPTY_SNAPSHOT,
    AnnotationRegistry,
    AnnotationSnapshot,
)

__all__ = [
    # Models
    "Annotation",
    "AnnotationCatalogFile",
    "AnnotationKind",
    "AnnotationRef",
    "PLACEMENT_DIRECTIONS",
    # Registry
    "AnnotationRegistry",
    "AnnotationSnapshot",
    "EMPTY_SNAPSHOT",
    # Catalog
    "AnnotationCatalog",
    "LIBRARY_PATH",
    "lily_string",
]
