"""
Pytest configuration and shared fixtures.
"""

import stat
import tempfile
from pathlib import Path

import pytest

from chuk_mcp_notation.annotations import AnnotationCatalog
from chuk_mcp_notation.tree import GroupingTree

FAKE_LILYPOND = """#!/bin/sh
# Fake lilypond: --<fmt> -o <stem> <file>
fmt=$(echo "$1" | sed 's/^--//')
touch "$3.$fmt"
echo "Processing $4"
"""


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def catalog() -> AnnotationCatalog:
    """The built-in annotation catalog."""
    return AnnotationCatalog()


@pytest.fixture
def tree() -> GroupingTree:
    """An empty heterogeneous tree."""
    return GroupingTree.heterogeneous()


def write_script(path: Path, body: str) -> Path:
    """Write an executable shell script."""
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_lilypond(temp_dir: Path) -> Path:
    """A stand-in lilypond binary that writes an empty output file."""
    return write_script(temp_dir / "lilypond", FAKE_LILYPOND)


@pytest.fixture
def make_script(temp_dir: Path):
    """Factory for executable shell scripts in the temp directory."""

    def make(name: str, body: str) -> Path:
        return write_script(temp_dir / name, body)

    return make
