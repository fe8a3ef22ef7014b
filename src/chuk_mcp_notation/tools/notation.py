"""
Notation tools - MCP tools for validating, rendering and compiling scores.

Scores are passed as score/v1 YAML text. Every tool transcribes the
score, validates the tree and then performs its action.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any, get_args

import yaml
from pydantic import ValidationError

from chuk_mcp_notation.annotations import AnnotationCatalog
from chuk_mcp_notation.config import NotationSettings
from chuk_mcp_notation.constants import ErrorMessages, OutputFormat, SuccessMessages
from chuk_mcp_notation.errors import NotationError, RenderBackendError
from chuk_mcp_notation.models import ScoreDocument
from chuk_mcp_notation.render import (
    LilypondCompiler,
    LilypondRenderer,
    Renderer,
    get_renderer,
    render_subtrees,
    render_tree,
)
from chuk_mcp_notation.transcribe import ScoreTranscriber, Transcription
from chuk_mcp_notation.tree import TreeValidator

if TYPE_CHECKING:
    from chuk_mcp_server import ChukMCPServer

logger = logging.getLogger(__name__)


def _safe_stem(name: str) -> str:
    """File-system safe output name."""
    return re.sub(r"[^A-Za-z0-9_-]+", "-", name).strip("-").lower() or "score"


def register_notation_tools(
    mcp: ChukMCPServer,
    settings: NotationSettings,
    catalog: AnnotationCatalog,
) -> dict[str, Any]:
    """
    Register notation tools with the MCP server.

    Args:
        mcp: The MCP server instance
        settings: Backend, output and compiler settings
        catalog: The annotation catalog

    Returns:
        Dictionary of registered tool functions
    """
    tools: dict[str, Any] = {}
    transcriber = ScoreTranscriber(catalog)
    validator = TreeValidator()
    compiler = LilypondCompiler(
        settings.output_dir,
        binary=settings.lilypond_binary,
        timeout=settings.compile_timeout,
    )

    def load(score: str) -> Transcription:
        try:
            document = ScoreDocument.from_yaml(score)
        except (ValidationError, yaml.YAMLError, ValueError) as e:
            raise NotationError(ErrorMessages.INVALID_SCORE.format(error=e)) from e
        return transcriber.transcribe(document)

    def make_renderer(backend: str) -> Renderer:
        renderer = get_renderer(backend, catalog)
        if isinstance(renderer, LilypondRenderer):
            renderer.version = settings.lilypond_version
        return renderer

    def render(transcription: Transcription, backend: str, parallel: bool) -> str:
        validator.validate(transcription.tree, transcription.annotations)
        if parallel:
            return render_subtrees(
                transcription.tree,
                lambda: make_renderer(backend),
                transcription.annotations,
                max_workers=settings.render_workers,
            )
        return render_tree(transcription.tree, make_renderer(backend), transcription.annotations)

    @mcp.tool  # type: ignore[arg-type]
    async def notation_validate(score: str) -> str:
        """
        Validate a score's rhythmic structure and annotations.

        Checks that every measure is filled exactly by its contents and
        that every annotation targets a node in the tree.

        Args:
            score: Score document as score/v1 YAML

        Returns:
            JSON string with validation results

        Example:
            notation_validate(score="schema: score/v1\\ntime_signature: 3/4\\nevents: [...]")
        """
        try:
            transcription = load(score)
            result = validator.check(transcription.tree, transcription.annotations)

            response: dict[str, Any] = {
                "status": "success",
                "valid": result.is_valid,
                "title": transcription.title,
                "measures": transcription.measure_count,
                "duration": transcription.tree.duration.to_text(),
                "errors": [
                    {"code": e.code, "message": e.message, "path": e.path} for e in result.errors
                ],
                "warnings": [
                    {"code": w.code, "message": w.message, "path": w.path} for w in result.warnings
                ],
            }
            if result.is_valid:
                response["message"] = SuccessMessages.SCORE_VALID.format(
                    title=transcription.title, measures=transcription.measure_count
                )
            return json.dumps(response)
        except NotationError as e:
            return json.dumps({"status": "error", "message": str(e)})
        except Exception as e:
            logger.exception("Failed to validate score")
            return json.dumps({"status": "error", "message": str(e)})

    tools["notation_validate"] = notation_validate

    @mcp.tool  # type: ignore[arg-type]
    async def notation_render(
        score: str,
        backend: str | None = None,
        standalone: bool = True,
        parallel: bool = False,
    ) -> str:
        """
        Render a score as backend notation text.

        The score is validated first; an invalid score is reported as an
        error and nothing is rendered.

        Args:
            score: Score document as score/v1 YAML
            backend: Backend name (default from settings, e.g. 'lilypond')
            standalone: Wrap the music in a complete document (LilyPond only)
            parallel: Render measures concurrently

        Returns:
            JSON string with the rendered source

        Example:
            notation_render(score=yaml_text)
            notation_render(score=yaml_text, standalone=False)
        """
        try:
            backend_name = backend or settings.backend
            transcription = load(score)
            source = render(transcription, backend_name, parallel)

            renderer = make_renderer(backend_name)
            if standalone and isinstance(renderer, LilypondRenderer):
                source = renderer.document(source, transcription.title, transcription.composer)

            return json.dumps(
                {
                    "status": "success",
                    "backend": backend_name,
                    "source": source,
                    "message": SuccessMessages.SCORE_RENDERED.format(
                        title=transcription.title, backend=backend_name
                    ),
                }
            )
        except NotationError as e:
            return json.dumps({"status": "error", "message": str(e)})
        except Exception as e:
            logger.exception("Failed to render score")
            return json.dumps({"status": "error", "message": str(e)})

    tools["notation_render"] = notation_render

    @mcp.tool  # type: ignore[arg-type]
    async def notation_compile(
        score: str,
        output_name: str | None = None,
        output_format: str | None = None,
        timeout: float | None = None,
    ) -> str:
        """
        Compile a score to PDF/PNG/SVG with the lilypond binary.

        Args:
            score: Score document as score/v1 YAML
            output_name: Output file stem (default: derived from the title)
            output_format: One of pdf, png, svg, ps (default from settings)
            timeout: Compile time limit in seconds (default from settings)

        Returns:
            JSON string with the output file paths

        Example:
            notation_compile(score=yaml_text, output_format="svg")
        """
        try:
            fmt = output_format or settings.output_format
            if fmt not in get_args(OutputFormat):
                return json.dumps({"status": "error", "message": f"Unknown output format: {fmt}"})

            transcription = load(score)
            renderer = LilypondRenderer(catalog, settings.lilypond_version)
            music = render(transcription, renderer.name, parallel=False)
            source = renderer.document(music, transcription.title, transcription.composer)

            stem = _safe_stem(output_name or transcription.title)
            result = await compiler.compile(source, stem, fmt, timeout=timeout)  # type: ignore[arg-type]

            return json.dumps(
                {
                    "status": "success",
                    "source_path": str(result.source_path),
                    "paths": [str(p) for p in result.output_paths],
                    "format": fmt,
                    "message": SuccessMessages.SCORE_COMPILED.format(
                        title=transcription.title, path=result.output_path
                    ),
                }
            )
        except RenderBackendError as e:
            return json.dumps(
                {"status": "error", "message": str(e), "diagnostics": e.diagnostics}
            )
        except NotationError as e:
            return json.dumps({"status": "error", "message": str(e)})
        except Exception as e:
            logger.exception("Failed to compile score")
            return json.dumps({"status": "error", "message": str(e)})

    tools["notation_compile"] = notation_compile

    @mcp.tool  # type: ignore[arg-type]
    async def notation_list_annotation_kinds(category: str | None = None) -> str:
        """
        List the annotation kinds scores can use.

        Args:
            category: Optional filter (dynamic, articulation, text, lyric)

        Returns:
            JSON string with kind names, allowed values and attach points

        Example:
            notation_list_annotation_kinds(category="dynamic")
        """
        try:
            kinds = catalog.list_kinds(category)
            return json.dumps(
                {
                    "status": "success",
                    "kinds": [
                        {
                            "name": k.name,
                            "category": k.category,
                            "description": k.description,
                            "attaches_to": [p.value for p in k.attaches_to],
                            "values": k.values,
                            "default_placement": k.default_placement.value,
                            "backends": sorted(k.templates),
                        }
                        for k in kinds
                    ],
                    "count": len(kinds),
                }
            )
        except Exception as e:
            logger.exception("Failed to list annotation kinds")
            return json.dumps({"status": "error", "message": str(e)})

    tools["notation_list_annotation_kinds"] = notation_list_annotation_kinds

    return tools
