#!/usr/bin/env python3
"""
Example: Render a score YAML to LilyPond (and PDF, if lilypond is installed).

This demonstrates the full pipeline from score document to engraving.

Usage:
    python examples/render_score.py
    # Creates: examples/output/little-tune.ly (+ .pdf with lilypond on PATH)

This is the "Hello World" for chuk-mcp-notation - proving that:
1. A YAML score can be transcribed into a grouping tree
2. Every measure sums exactly to its time signature
3. Annotations, tuplets, ties and lyrics reach the backend
4. Sequential and parallel rendering agree
"""

from pathlib import Path

from chuk_mcp_notation.annotations import AnnotationCatalog
from chuk_mcp_notation.render import (
    LilypondCompiler,
    LilypondRenderer,
    find_lilypond,
    render_subtrees,
    render_tree,
)
from chuk_mcp_notation.transcribe import transcribe_yaml
from chuk_mcp_notation.tree import TreeValidator

SCORE = """
schema: score/v1
title: Little Tune
composer: Anon
time_signature: 3/4
measures:
  - annotations: [{kind: rehearsal, value: A}, {kind: tempo, value: Andante}]
    events:
      - {pitch: "c'", duration: 1/4, annotations: [{kind: dynamic, value: p}, {kind: lyric, value: Twin}]}
      - {pitch: "d'", duration: 1/4, annotations: [{kind: staccato}, {kind: lyric, value: kle}]}
      - {pitch: "e'", duration: 1/4, annotations: [{kind: lyric, value: twin}]}
  - events:
      - ratio: 2/3
        tuplet:
          - {pitch: "f'", duration: 1/8, annotations: [{kind: lyric, value: kle}]}
          - {pitch: "g'", duration: 1/8, annotations: [{kind: lyric, value: lit}]}
          - {pitch: "a'", duration: 1/8, annotations: [{kind: lyric, value: tle}]}
      - {chord: ["c'", "e'", "g'"], duration: 1/4, extension: 1/4, annotations: [{kind: fermata}, {kind: lyric, value: star}]}
  - time_signature: 2/4
    events:
      - {pitch: "g'", duration: 3/8, annotations: [{kind: hairpin, value: ">"}]}
      - {pitch: "e'", duration: 1/8}
  - events:
      - {pitch: "c'", duration: 1/2, annotations: [{kind: dynamic, value: pp}]}
"""


async def main() -> None:
    """Render the demo score and compile it when possible."""
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    print("CHUK Notation Score Renderer")
    print("=" * 40)

    # Transcribe and validate
    catalog = AnnotationCatalog()
    transcription = transcribe_yaml(SCORE, catalog)
    TreeValidator().validate(transcription.tree, transcription.annotations)

    print(f"Title: {transcription.title}")
    print(f"  Measures: {transcription.measure_count}")
    print(f"  Duration: {transcription.tree.duration} whole notes")
    print(f"  Annotations: {len(transcription.annotations)}")
    print()

    # Show structure
    print("Structure:")
    for path, node in transcription.tree.walk():
        indent = "  " * (len(path) + 1)
        label = node.describe() if node.is_leaf else f"{node.kind.value} ({node.duration})"
        print(f"{indent}{label}")
    print()

    # Render
    renderer = LilypondRenderer(catalog)
    music = render_tree(transcription.tree, renderer, transcription.annotations)
    parallel = render_subtrees(
        transcription.tree,
        lambda: LilypondRenderer(catalog),
        transcription.annotations,
    )
    print(f"Parallel render matches: {parallel == music}")
    print()
    print(music)

    source = renderer.document(music, transcription.title, transcription.composer)
    source_path = output_dir / "little-tune.ly"
    source_path.write_text(source)
    print(f"Source: {source_path}")

    # Compile to PDF
    if find_lilypond() is None:
        print("lilypond not found on PATH; skipping PDF output.")
        return

    print("Compiling to PDF...")
    compiler = LilypondCompiler(output_dir)
    result = await compiler.compile(source, "little-tune", "pdf")
    print(f"Output: {result.output_path}")
    print()
    print("Done! Open the PDF to see the engraving.")


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
