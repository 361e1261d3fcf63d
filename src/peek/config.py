"""Run configuration for peek."""

import argparse
import math
import shlex
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from peek.errors import ConfigurationError
from peek.monitor import MIN_INTERVAL
from peek.sink import OutputFormat, OutputTarget, default_output_path


def split_command(command: Sequence[str]) -> tuple[str, ...]:
    """
    Normalize the command words given on the command line.

    A single word containing whitespace is split shell-style, so both
    `peek sleep 1` and `peek "sleep 1"` work.
    """
    if command and command[0] == "--":
        command = command[1:]
    if len(command) == 1 and any(ch.isspace() for ch in command[0]):
        try:
            return tuple(shlex.split(command[0]))
        except ValueError as exc:
            raise ConfigurationError(f"cannot parse command {command[0]!r}: {exc}") from exc
    return tuple(command)


@dataclass(slots=True, frozen=True)
class PeekConfig:
    """Validated settings for one peek invocation."""

    command: tuple[str, ...] = ()
    pid: int | None = None
    output: OutputTarget = OutputTarget.STDOUT
    fmt: OutputFormat = OutputFormat.JSON
    path: Path | None = None
    interval: float = MIN_INTERVAL
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.command and self.pid is not None:
            raise ConfigurationError("give either a command to run or --pid, not both")
        if not self.command and self.pid is None:
            raise ConfigurationError("nothing to monitor: give a command to run or --pid")
        if self.pid is not None and self.pid <= 0:
            raise ConfigurationError(f"invalid pid: {self.pid}")
        if not math.isfinite(self.interval) or self.interval <= 0:
            raise ConfigurationError(f"interval must be a positive number, got {self.interval}")

    @property
    def output_path(self) -> Path:
        """File written for file output."""
        return self.path if self.path is not None else default_output_path(self.fmt)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "PeekConfig":
        """
        Build a config from parsed command-line arguments.

        --path implies file output; combining it with `-o stdout` is an error.
        """
        output = args.output
        if args.path is not None:
            if output is OutputTarget.STDOUT:
                raise ConfigurationError("--path given but output is stdout")
            output = OutputTarget.FILE

        return cls(
            command=split_command(args.command or ()),
            pid=args.pid,
            output=output or OutputTarget.STDOUT,
            fmt=args.format,
            path=args.path,
            interval=args.interval,
            verbose=args.verbose,
        )
