"""Sampling loop for peek."""

import logging
import time
from collections.abc import Callable

from peek.errors import NoSuchProcess, ProcessDisappeared
from peek.interrupt import InterruptLatch
from peek.metrics import MetricsProvider, ProcessMetrics
from peek.models import Run, Sample, TargetProcess, TerminationCause
from peek.target import ExitNotifier, TargetProcessController

logger = logging.getLogger(__name__)

# psutil CPU figures are meaningless when polled faster than this
MIN_INTERVAL = 0.2

# How long a failed metrics read waits for an exit status before giving up
EXIT_GRACE = 0.5


class ProcessSampler:
    """
    Samples one target process until it exits or a stop is requested.

    Runs synchronously on the calling thread. The exit notifier and the
    interrupt latch are only ever polled, so the sleep between samples is
    the loop's single suspension point.
    """

    def __init__(
        self,
        provider: MetricsProvider,
        controller: TargetProcessController,
        latch: InterruptLatch,
        interval: float = MIN_INTERVAL,
        exit_grace: float = EXIT_GRACE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the ProcessSampler.

        Args:
            provider: Source of per-process metrics.
            controller: Used to kill spawned targets on interrupt.
            latch: Interrupt latch checked once per iteration.
            interval: Seconds between samples. Clamped to MIN_INTERVAL.
            exit_grace: Seconds to wait for an exit status when the target
                vanishes between the exit check and the metrics read.
            clock: Timestamp source for samples.
        """
        self._provider = provider
        self._controller = controller
        self._latch = latch
        self._interval = max(MIN_INTERVAL, interval)
        self._exit_grace = exit_grace
        self._clock = clock

    @property
    def interval(self) -> float:
        """Get the sampling interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the sampling interval."""
        self._interval = max(MIN_INTERVAL, value)

    def run(self, target: TargetProcess, notifier: ExitNotifier) -> Run:
        """
        Sample target until a termination condition is met.

        Never raises for the target going away: that ends the run with
        STOPPED_BY_ERROR and the samples taken so far.
        """
        run = Run(pid=target.pid)
        logger.info(
            "sampling pid %d every %.0fms (run %s)",
            target.pid,
            self._interval * 1000,
            run.run_id,
        )

        try:
            self._provider.prime(target.pid)
        except NoSuchProcess:
            # The first iteration will sort out whether it exited or vanished
            pass

        try:
            while run.is_running:
                self._step(run, target, notifier)
        finally:
            self._provider.forget(target.pid)

        logger.info(
            "stopped sampling pid %d: %s after %d samples",
            target.pid,
            run.cause.value,
            len(run.samples),
        )
        return run

    def _step(self, run: Run, target: TargetProcess, notifier: ExitNotifier) -> None:
        """Run one loop iteration, stopping the run if a condition is met."""
        status = notifier.poll()
        if status is not None:
            target.exit_status = status
            run.stop(TerminationCause.STOPPED_BY_EXIT, exit_status=status)
            return

        try:
            metrics = self._provider.read(target.pid)
        except NoSuchProcess:
            # Exited between the poll above and the read?
            status = notifier.wait(self._exit_grace)
            if status is not None:
                target.exit_status = status
                run.stop(TerminationCause.STOPPED_BY_EXIT, exit_status=status)
            else:
                error = ProcessDisappeared(target.pid)
                logger.debug("%s", error)
                run.stop(TerminationCause.STOPPED_BY_ERROR, error=error)
            return

        run.append(self._make_sample(run, metrics))

        if self._latch.fired:
            logger.info("interrupted, stopping")
            self._controller.kill(target)
            target.exit_status = notifier.poll()
            run.stop(TerminationCause.STOPPED_BY_INTERRUPT, exit_status=target.exit_status)
            return

        # Wakes early on interrupt; the next iteration still takes its sample
        self._latch.wait(timeout=self._interval)

    def _make_sample(self, run: Run, metrics: ProcessMetrics) -> Sample:
        return Sample(
            run_id=run.run_id,
            sequence=run.next_sequence,
            pid=run.pid,
            name=metrics.name,
            cpu_percent=metrics.cpu_percent / self._provider.cpu_count,
            memory_rss=metrics.memory_rss,
            memory_vms=metrics.memory_vms,
            disk_read_bytes=metrics.disk_read_bytes,
            disk_write_bytes=metrics.disk_write_bytes,
            timestamp=self._clock(),
        )
