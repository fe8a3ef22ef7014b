"""
Server configuration.

Settings are read from an optional YAML file:

    schema: settings/v1
    backend: lilypond
    output_dir: output
    lilypond_binary: /usr/local/bin/lilypond
    compile_timeout: 60
    output_format: pdf
    render_workers: 4
    annotation_dir: annotations

Relative paths are resolved against the current working directory,
like the server's other project directories.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from chuk_mcp_notation.constants import (
    DEFAULT_COMPILE_TIMEOUT,
    DEFAULT_LILYPOND_VERSION,
    OutputFormat,
    SchemaVersion,
)
from chuk_mcp_notation.errors import NotationError

logger = logging.getLogger(__name__)


class NotationSettings(BaseModel):
    """Runtime settings for rendering and compiling."""

    schema_version: SchemaVersion = Field("settings/v1", alias="schema", description="Schema version")
    backend: str = Field("lilypond", description="Notation backend name")
    output_dir: Path = Field(Path("output"), description="Directory for sources and compiled files")
    lilypond_binary: str = Field("lilypond", description="lilypond executable name or path")
    lilypond_version: str = Field(DEFAULT_LILYPOND_VERSION, description="\\version written into documents")
    compile_timeout: float = Field(DEFAULT_COMPILE_TIMEOUT, gt=0, description="Compile time limit (seconds)")
    output_format: OutputFormat = Field("pdf", description="Default compiled output format")
    render_workers: int | None = Field(None, ge=1, description="Parallel render threads (None = executor default)")
    annotation_dir: Path | None = Field(None, description="Project annotation catalog directory")

    model_config = {"populate_by_name": True, "extra": "forbid"}


def load_settings(path: Path | None = None) -> NotationSettings:
    """
    Load settings from a YAML file, or defaults when no path is given.

    Args:
        path: Settings file

    Returns:
        NotationSettings

    Raises:
        NotationError: If the file is missing or does not match the schema
    """
    if path is None:
        return NotationSettings()
    if not path.exists():
        raise NotationError(f"Settings file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    try:
        settings = NotationSettings.model_validate(data)
    except ValidationError as e:
        raise NotationError(f"Invalid settings file {path}: {e}") from e
    logger.debug("Loaded settings from %s", path)
    return settings
