#!/usr/bin/env python3
"""
Async Notation MCP Server using chuk-mcp-server

This server provides MCP tools for turning declarative scores into
engraved notation. Scores are grouped into a rhythmic tree whose
durations are checked exactly before anything is rendered.

The server provides tools for:
- Validating a score's measures, tuplets and annotations
- Rendering scores as LilyPond source
- Compiling LilyPond source to PDF/PNG/SVG
- Discovering the annotation kinds a score can use
"""

import logging
import os
from pathlib import Path

from chuk_mcp_server import ChukMCPServer

from chuk_mcp_notation.annotations import LIBRARY_PATH, AnnotationCatalog
from chuk_mcp_notation.config import load_settings
from chuk_mcp_notation.tools import register_notation_tools

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create the MCP server instance
mcp = ChukMCPServer("chuk-mcp-notation")

# Paths - use standard project structure
BASE_PATH = Path.cwd()
CONFIG_PATH = Path(os.environ["NOTATION_CONFIG"]) if os.environ.get("NOTATION_CONFIG") else None
ANNOTATIONS_DIR = BASE_PATH / "annotations"

# Load settings and the annotation catalog
settings = load_settings(CONFIG_PATH)
annotation_catalog = AnnotationCatalog(
    library_path=LIBRARY_PATH,
    project_path=settings.annotation_dir or ANNOTATIONS_DIR,
)

# Register all tools
notation_tools = register_notation_tools(mcp, settings, annotation_catalog)

# Export tool functions for direct access
notation_validate = notation_tools["notation_validate"]
notation_render = notation_tools["notation_render"]
notation_compile = notation_tools["notation_compile"]
notation_list_annotation_kinds = notation_tools["notation_list_annotation_kinds"]

logger.info("CHUK Notation MCP Server initialized")
logger.info(f"  Annotation library: {LIBRARY_PATH}")
logger.info(f"  Backend: {settings.backend}")
logger.info(f"  Output dir: {settings.output_dir}")
