"""peek - command-line entry point."""

import argparse
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

from peek.config import PeekConfig
from peek.errors import PeekError
from peek.interrupt import InterruptLatch, install_interrupt_handler
from peek.logging_config import setup_logger
from peek.metrics import MetricsProvider, PsutilMetricsProvider
from peek.models import Run, TerminationCause
from peek.monitor import MIN_INTERVAL, ProcessSampler
from peek.sink import OutputFormat, OutputTarget, SampleSink
from peek.target import TargetProcessController

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    """Create the peek argument parser."""
    parser = argparse.ArgumentParser(
        prog="peek",
        description="Sample the CPU, memory and disk usage of a process until it exits.",
    )
    parser.add_argument(
        "-p",
        "--pid",
        type=int,
        default=None,
        help="Attach to an already running process instead of starting one.",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=OutputTarget,
        choices=list(OutputTarget),
        default=None,
        metavar="{stdout,file}",
        help="Where to write the samples (default: stdout, or file when --path is given).",
    )
    parser.add_argument(
        "-f",
        "--format",
        type=OutputFormat,
        choices=list(OutputFormat),
        default=OutputFormat.JSON,
        metavar="{json,csv}",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=None,
        help="Output file (default: peek.<format> in the current directory).",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=MIN_INTERVAL,
        help=f"Seconds between samples, at least {MIN_INTERVAL} (default: {MIN_INTERVAL}).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr.",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Program to run and sample, with its arguments.",
    )
    return parser


def run(
    config: PeekConfig,
    provider: MetricsProvider | None = None,
    latch: InterruptLatch | None = None,
) -> Run:
    """
    Run one peek session: start or attach, sample, then write the output.

    The sink is built first so an unimplemented format fails before anything
    starts. The latch is installed before the target starts so an early
    Ctrl-C is not lost. Samples are written even when the target vanished
    mid-run. The exit waiter thread is stopped before returning.

    Raises:
        PeekError: Setup or output failed.
    """
    sink = SampleSink(config.fmt, config.output, path=config.output_path)
    provider = provider or PsutilMetricsProvider()
    controller = TargetProcessController(provider)

    own_latch = latch is None
    if latch is None:
        latch = install_interrupt_handler((signal.SIGINT, signal.SIGTERM))

    try:
        if config.pid is not None:
            target, notifier = controller.attach(config.pid)
        else:
            target, notifier = controller.spawn(config.command[0], config.command[1:])

        sampler = ProcessSampler(provider, controller, latch, interval=config.interval)
        try:
            result = sampler.run(target, notifier)
        except BaseException:
            # Don't leave a child we started running behind a crashed loop
            controller.kill(target)
            raise

        sink.emit(result)
    finally:
        controller.close()
        if own_latch:
            latch.restore()

    return result


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the peek command."""
    args = build_parser().parse_args(argv)
    setup_logger("peek", logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = PeekConfig.from_args(args)
        result = run(config)
    except PeekError as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE

    if result.cause is TerminationCause.STOPPED_BY_ERROR:
        logger.error("%s", result.error)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
