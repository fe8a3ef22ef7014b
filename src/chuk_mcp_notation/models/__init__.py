"""
Pydantic models for score documents.

This module provides:
- ScoreDocument: Complete transcription source (YAML schema score/v1)
- MeasureSpec: One bar of events
- EventSpec / TupletSpec: Leaves and tuplet brackets
- AnnotationSpec: Annotations as written in a document
"""

from chuk_mcp_notation.models.score import (
    AnnotationSpec,
    DurationalName,
    EventSpec,
    MeasureSpec,
    ScoreDocument,
    TupletSpec,
)

__all__ = [
    "AnnotationSpec",
    "DurationalName",
    "EventSpec",
    "MeasureSpec",
    "ScoreDocument",
    "TupletSpec",
]
