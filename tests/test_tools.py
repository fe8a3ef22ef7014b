"""
Tests for MCP tools.

Tests the MCP tool implementations for validation, rendering,
compilation and annotation discovery.
"""

import json
from pathlib import Path

import pytest

from chuk_mcp_notation.annotations import AnnotationCatalog
from chuk_mcp_notation.config import NotationSettings
from chuk_mcp_notation.tools.notation import register_notation_tools

SCORE = """
schema: score/v1
title: Two Bars
composer: Anon
time_signature: 2/4
measures:
  - events:
      - {pitch: "c'", duration: 1/4, annotations: [{kind: dynamic, value: mf}, {kind: lyric, value: Hey}]}
      - {pitch: "d'", duration: 1/4, annotations: [{kind: lyric, value: ho}]}
  - events:
      - {pitch: "e'", duration: 1/2}
"""

SHORT_SCORE = """
time_signature: 3/4
measures:
  - events: [{pitch: "c'", duration: 1/4}]
"""

MUSIC = "{\n\\time 2/4 c'4\\mf d'4 |\ne'2 |\n}\n\\addlyrics { \"Hey\" \"ho\" }\n"


# Mock MCP server for testing tools
class MockMCPServer:
    """Mock MCP server that just stores registered tools."""

    def __init__(self, name: str):
        self.name = name
        self.tools: dict = {}

    def tool(self, func):
        """Decorator to register a tool."""
        self.tools[func.__name__] = func
        return func


@pytest.fixture
def settings(temp_dir: Path) -> NotationSettings:
    """Settings writing into the temp directory."""
    return NotationSettings(output_dir=temp_dir / "output")


@pytest.fixture
def tools(settings: NotationSettings, catalog: AnnotationCatalog) -> dict:
    """Registered notation tools."""
    mcp = MockMCPServer("test")
    registered = register_notation_tools(mcp, settings, catalog)
    assert set(mcp.tools) == set(registered)
    return registered


class TestValidateTool:
    """Tests for notation_validate."""

    @pytest.mark.asyncio
    async def test_valid_score(self, tools):
        """A well-formed score validates."""
        data = json.loads(await tools["notation_validate"](score=SCORE))
        assert data["status"] == "success"
        assert data["valid"] is True
        assert data["title"] == "Two Bars"
        assert data["measures"] == 2
        assert data["duration"] == "1"
        assert data["errors"] == []
        assert "message" in data

    @pytest.mark.asyncio
    async def test_mismatched_measure(self, tools):
        """An underfull measure is reported with its path."""
        data = json.loads(await tools["notation_validate"](score=SHORT_SCORE))
        assert data["status"] == "success"
        assert data["valid"] is False
        assert data["errors"][0]["code"] == "DURATION_MISMATCH"
        assert data["errors"][0]["path"] == [0]

    @pytest.mark.asyncio
    async def test_malformed_yaml(self, tools):
        """Unparseable input is an error, not an exception."""
        data = json.loads(await tools["notation_validate"](score="measures: [unclosed"))
        assert data["status"] == "error"
        assert "Invalid score document" in data["message"]

    @pytest.mark.asyncio
    async def test_schema_violation(self, tools):
        data = json.loads(await tools["notation_validate"](score="title: No Body\n"))
        assert data["status"] == "error"

    @pytest.mark.asyncio
    async def test_unknown_annotation_kind(self, tools):
        score = "measures:\n  - events: [{rest: true, duration: 1, annotations: [{kind: glissando}]}]\n"
        data = json.loads(await tools["notation_validate"](score=score))
        assert data["status"] == "error"
        assert "glissando" in data["message"]


class TestRenderTool:
    """Tests for notation_render."""

    @pytest.mark.asyncio
    async def test_render_fragment(self, tools):
        """Music only, without the document wrapper."""
        data = json.loads(await tools["notation_render"](score=SCORE, standalone=False))
        assert data["status"] == "success"
        assert data["backend"] == "lilypond"
        assert data["source"] == MUSIC

    @pytest.mark.asyncio
    async def test_render_document(self, tools):
        """Standalone output is a complete LilyPond file."""
        data = json.loads(await tools["notation_render"](score=SCORE))
        source = data["source"]
        assert source.startswith('\\version "2.24.0"\n')
        assert 'title = "Two Bars"' in source
        assert 'composer = "Anon"' in source
        assert "\\score {" in source

    @pytest.mark.asyncio
    async def test_parallel_matches_sequential(self, tools):
        sequential = json.loads(await tools["notation_render"](score=SCORE, standalone=False))
        parallel = json.loads(await tools["notation_render"](score=SCORE, standalone=False, parallel=True))
        assert parallel["source"] == sequential["source"]

    @pytest.mark.asyncio
    async def test_invalid_score_not_rendered(self, tools):
        data = json.loads(await tools["notation_render"](score=SHORT_SCORE))
        assert data["status"] == "error"
        assert "Duration mismatch" in data["message"]

    @pytest.mark.asyncio
    async def test_unknown_backend(self, tools):
        data = json.loads(await tools["notation_render"](score=SCORE, backend="musicxml"))
        assert data["status"] == "error"
        assert "musicxml" in data["message"]


class TestCompileTool:
    """Tests for notation_compile."""

    @pytest.mark.asyncio
    async def test_compile(self, temp_dir: Path, fake_lilypond: Path, catalog: AnnotationCatalog):
        """Compile writes the source and reports the output."""
        settings = NotationSettings(output_dir=temp_dir / "output", lilypond_binary=str(fake_lilypond))
        tools = register_notation_tools(MockMCPServer("test"), settings, catalog)

        data = json.loads(await tools["notation_compile"](score=SCORE, output_format="svg"))
        assert data["status"] == "success"
        assert data["format"] == "svg"
        assert data["source_path"] == str(temp_dir / "output" / "two-bars.ly")
        assert data["paths"] == [str(temp_dir / "output" / "two-bars.svg")]
        assert "\\addlyrics" in Path(data["source_path"]).read_text()

    @pytest.mark.asyncio
    async def test_compile_output_name(self, temp_dir: Path, fake_lilypond: Path, catalog: AnnotationCatalog):
        settings = NotationSettings(output_dir=temp_dir / "output", lilypond_binary=str(fake_lilypond))
        tools = register_notation_tools(MockMCPServer("test"), settings, catalog)

        data = json.loads(await tools["notation_compile"](score=SCORE, output_name="My Song!"))
        assert data["status"] == "success"
        assert data["paths"] == [str(temp_dir / "output" / "my-song.pdf")]

    @pytest.mark.asyncio
    async def test_compile_failure_diagnostics(self, temp_dir: Path, make_script, catalog: AnnotationCatalog):
        """Compiler stderr is returned as diagnostics."""
        binary = make_script("broken", '#!/bin/sh\necho "syntax error" >&2\nexit 1\n')
        settings = NotationSettings(output_dir=temp_dir / "output", lilypond_binary=str(binary))
        tools = register_notation_tools(MockMCPServer("test"), settings, catalog)

        data = json.loads(await tools["notation_compile"](score=SCORE))
        assert data["status"] == "error"
        assert "syntax error" in data["diagnostics"]

    @pytest.mark.asyncio
    async def test_unknown_format(self, tools):
        data = json.loads(await tools["notation_compile"](score=SCORE, output_format="gif"))
        assert data["status"] == "error"
        assert "gif" in data["message"]


class TestAnnotationKindTools:
    """Tests for notation_list_annotation_kinds."""

    @pytest.mark.asyncio
    async def test_list_all(self, tools):
        data = json.loads(await tools["notation_list_annotation_kinds"]())
        assert data["status"] == "success"
        names = [k["name"] for k in data["kinds"]]
        assert "staccato" in names
        assert "lyric" in names
        assert data["count"] == len(names)

    @pytest.mark.asyncio
    async def test_list_category(self, tools):
        data = json.loads(await tools["notation_list_annotation_kinds"](category="dynamic"))
        dynamic = data["kinds"][0]
        assert dynamic["name"] == "dynamic"
        assert "mf" in dynamic["values"]
        assert dynamic["default_placement"] == "below"
        assert dynamic["attaches_to"] == ["leaf"]
        assert dynamic["backends"] == ["lilypond"]
