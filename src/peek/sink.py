"""Rendering and writing finished runs."""

import json
import logging
import sys
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TextIO

from peek.errors import NotImplementedFormatError, OutputError, SinkError
from peek.models import Run

logger = logging.getLogger(__name__)


class OutputFormat(Enum):
    """Output formats accepted on the command line."""

    JSON = "json"
    CSV = "csv"


class OutputTarget(Enum):
    """Where the rendered run goes."""

    STDOUT = "stdout"
    FILE = "file"


def default_output_path(fmt: OutputFormat, cwd: Path | None = None) -> Path:
    """peek.<format> in the current working directory."""
    return (cwd or Path.cwd()) / f"peek.{fmt.value}"


def render_json(run: Run) -> str:
    """Render the run as a compact JSON array of sample records."""
    return json.dumps(run.records(), separators=(",", ":"))


def render_csv(run: Run) -> str:
    raise NotImplementedFormatError("csv output is not implemented yet")


RENDERERS: dict[OutputFormat, Callable[[Run], str]] = {
    OutputFormat.JSON: render_json,
    OutputFormat.CSV: render_csv,
}

# Accepted on the command line, rejected before any sampling starts
NOT_IMPLEMENTED_FORMATS = frozenset({OutputFormat.CSV})


class SampleSink:
    """
    Writes one finished run to stdout or a file.

    A sink consumes exactly one run. Rendering happens before anything is
    opened, so a run that can't be rendered leaves no file behind.
    """

    def __init__(
        self,
        fmt: OutputFormat = OutputFormat.JSON,
        target: OutputTarget = OutputTarget.STDOUT,
        path: Path | None = None,
        stream: TextIO | None = None,
    ) -> None:
        """
        Initialize the SampleSink.

        Args:
            fmt: Output format.
            target: stdout or file.
            path: File to write for OutputTarget.FILE. Defaults to
                default_output_path(fmt).
            stream: Stream to write for OutputTarget.STDOUT. Defaults to
                sys.stdout at emit time.

        Raises:
            NotImplementedFormatError: The format has no renderer yet.
        """
        if fmt in NOT_IMPLEMENTED_FORMATS:
            raise NotImplementedFormatError(f"{fmt.value} output is not implemented yet")
        self._fmt = fmt
        self._target = target
        self._path = path if path is not None else default_output_path(fmt)
        self._stream = stream
        self._consumed = False

    @property
    def path(self) -> Path:
        return self._path

    def emit(self, run: Run) -> None:
        """
        Render and write run.

        Raises:
            SinkError: The run is still going, or this sink was already used.
            OutputError: Writing failed.
        """
        if run.is_running:
            raise SinkError(f"run {run.run_id} is still running")
        if self._consumed:
            raise SinkError("sink already consumed a run")
        self._consumed = True

        data = RENDERERS[self._fmt](run)

        if self._target is OutputTarget.STDOUT:
            stream = self._stream or sys.stdout
            try:
                stream.write(data + "\n")
                stream.flush()
            except OSError as exc:
                raise OutputError(f"cannot write to stdout: {exc}") from exc
            return

        try:
            self._path.write_text(data, encoding="utf-8")
        except OSError as exc:
            raise OutputError(f"cannot write {self._path}: {exc}") from exc
        logger.info("wrote %d samples to %s", len(run.samples), self._path)
