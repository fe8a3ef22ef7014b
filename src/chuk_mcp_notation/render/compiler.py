"""
LilyPond compiler - turns rendered source into PDF/PNG/SVG via the
external lilypond binary.

The call is an asyncio subprocess job bounded by a timeout:

    lilypond --<fmt> -o <output_dir>/<stem> <output_dir>/<stem>.ly

A missing binary, a nonzero exit, a timeout or a run that produces no
output file all raise RenderBackendError carrying the compiler's
diagnostic text. A process still running when the job times out or is
cancelled is killed and reaped.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from chuk_mcp_notation.constants import DEFAULT_COMPILE_TIMEOUT, OutputFormat
from chuk_mcp_notation.errors import RenderBackendError

logger = logging.getLogger(__name__)


def find_lilypond(binary: str = "lilypond") -> str | None:
    """Resolve the lilypond binary on PATH (or check an explicit path)."""
    return shutil.which(binary)


@dataclass
class CompileResult:
    """Result of one compile job."""

    source_path: Path
    output_paths: list[Path] = field(default_factory=list)
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0

    @property
    def output_path(self) -> Path:
        """The first output file (PNG output may be split into pages)."""
        return self.output_paths[0]


class LilypondCompiler:
    """
    Runs the lilypond binary on rendered source.

    Each compile writes <stem>.ly into the output directory and asks
    lilypond to write <stem>.<fmt> next to it.
    """

    def __init__(
        self,
        output_dir: Path,
        binary: str = "lilypond",
        timeout: float = DEFAULT_COMPILE_TIMEOUT,
    ):
        """
        Initialize the compiler.

        Args:
            output_dir: Directory for the .ly source and compiled output
            binary: lilypond executable name or path
            timeout: Default time limit in seconds for one compile
        """
        self.output_dir = Path(output_dir)
        self.binary = binary
        self.timeout = timeout

    def build_args(self, source_path: Path, stem: str, fmt: OutputFormat) -> list[str]:
        """Command line for one compile."""
        return [self.binary, f"--{fmt}", "-o", str(self.output_dir / stem), str(source_path)]

    async def compile(
        self,
        source: str,
        stem: str,
        fmt: OutputFormat = "pdf",
        timeout: float | None = None,
    ) -> CompileResult:
        """
        Compile LilyPond source to a document.

        Args:
            source: Complete LilyPond file text
            stem: Base name for the .ly file and its output
            fmt: Output format
            timeout: Time limit in seconds (compiler default when None)

        Returns:
            CompileResult with the produced files and captured output

        Raises:
            RenderBackendError: On a missing binary, nonzero exit, timeout
                or missing output file
        """
        limit = self.timeout if timeout is None else timeout
        self.output_dir.mkdir(parents=True, exist_ok=True)
        source_path = self.output_dir / f"{stem}.ly"
        source_path.write_text(source)

        args = self.build_args(source_path, stem, fmt)
        logger.debug("Calling lilypond subprocess: %s", args)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise RenderBackendError(f"lilypond binary not found: {self.binary}", str(e)) from e
        except PermissionError as e:
            raise RenderBackendError(f"lilypond binary is not executable: {self.binary}", str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=limit)
        except asyncio.TimeoutError as e:
            raise RenderBackendError(
                f"lilypond timed out after {limit}s compiling {source_path.name}"
            ) from e
        finally:
            # Timeout or cancellation of the awaiting task
            if process.returncode is None:
                await _kill(process)

        result = CompileResult(
            source_path=source_path,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            returncode=process.returncode if process.returncode is not None else -1,
        )
        if result.returncode != 0:
            logger.debug("lilypond exited with %d: %s", result.returncode, result.stderr)
            raise RenderBackendError(
                f"lilypond returned error code {result.returncode} for {source_path.name}",
                result.stderr,
            )

        result.output_paths = self._outputs(stem, fmt)
        if not result.output_paths:
            raise RenderBackendError(
                f"lilypond produced no {fmt} file for {source_path.name}",
                result.stderr,
            )
        logger.debug("Compiled %s to %s", source_path.name, [p.name for p in result.output_paths])
        return result

    def _outputs(self, stem: str, fmt: str) -> list[Path]:
        single = self.output_dir / f"{stem}.{fmt}"
        if single.exists():
            return [single]
        # Multi-page PNG/SVG output is written as <stem>-page1.<fmt>, ...
        pattern = re.compile(rf"{re.escape(stem)}-page(\d+)\.{re.escape(fmt)}")
        pages: list[tuple[int, Path]] = []
        for path in self.output_dir.glob(f"{stem}-page*.{fmt}"):
            match = pattern.fullmatch(path.name)
            if match:
                pages.append((int(match.group(1)), path))
        return [path for _, path in sorted(pages)]


async def _kill(process: asyncio.subprocess.Process) -> None:
    logger.debug("Killing lilypond process %d", process.pid)
    with contextlib.suppress(ProcessLookupError):
        process.kill()
    await process.wait()
