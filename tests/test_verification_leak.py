"""Verification Test: Resource Leak Check.

Repeated runs must not leave threads, child processes or memory behind:
every waiter thread finishes once its target is reaped, and spawned
targets never linger as zombies.
"""

import gc
import os
import sys
import threading
import time

import psutil

from peek.interrupt import InterruptLatch
from peek.metrics import PsutilMetricsProvider
from peek.models import TerminationCause
from peek.monitor import ProcessSampler
from peek.target import TargetProcessController


def get_current_memory_mb() -> float:
    """Get current process memory usage in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


def waiter_threads(name: str = "TargetWaiter") -> list[threading.Thread]:
    return [t for t in threading.enumerate() if t.name == name]


def run_short_target(provider: PsutilMetricsProvider, latch: InterruptLatch | None = None):
    controller = TargetProcessController(provider)
    target, notifier = controller.spawn(sys.executable, ["-c", "import time; time.sleep(0.3)"])
    sampler = ProcessSampler(provider, controller, latch or InterruptLatch())
    try:
        return sampler.run(target, notifier)
    finally:
        controller.close()


class TestResourceLeakCheck:
    """Resource leak verification suite tests."""

    def test_no_waiter_threads_left(self):
        """Waiter threads finish once their spawned targets are reaped."""
        provider = PsutilMetricsProvider()

        for _ in range(10):
            run = run_short_target(provider)
            assert run.cause is TerminationCause.STOPPED_BY_EXIT

        # The last waiter may still be returning from deliver()
        deadline = time.monotonic() + 5.0
        while waiter_threads() and time.monotonic() < deadline:
            time.sleep(0.05)
        assert waiter_threads() == []

    def test_no_zombie_children(self):
        """Exited and killed targets are all reaped."""
        provider = PsutilMetricsProvider()

        for _ in range(5):
            run_short_target(provider)

        for _ in range(5):
            latch = InterruptLatch()
            latch.fire()
            run = run_short_target(provider, latch)
            assert run.cause is TerminationCause.STOPPED_BY_INTERRUPT

        zombies = []
        for child in psutil.Process().children():
            try:
                if child.status() == psutil.STATUS_ZOMBIE:
                    zombies.append(child.pid)
            except psutil.NoSuchProcess:
                continue
        assert zombies == []

    def test_memory_stability_short(self):
        """Many short runs should not grow RSS noticeably."""
        gc.collect()
        provider = PsutilMetricsProvider()
        initial_memory = get_current_memory_mb()

        for _ in range(20):
            run = run_short_target(provider)
            assert run.samples or run.cause is TerminationCause.STOPPED_BY_EXIT

        gc.collect()
        memory_delta = get_current_memory_mb() - initial_memory

        # Allow small increase due to Python runtime variations
        max_delta_mb = 5.0
        assert memory_delta < max_delta_mb, (
            f"Memory increased by {memory_delta:.2f}MB over 20 runs, expected < {max_delta_mb}MB"
        )

    def test_provider_forgets_dead_processes(self):
        """Provider drops its process handles when a run ends."""
        provider = PsutilMetricsProvider()

        for _ in range(5):
            run_short_target(provider)

        assert provider._processes == {}

    def test_no_watcher_threads_left_after_interrupt(self):
        """An attached target outlives the run, but its watcher thread does not."""
        provider = PsutilMetricsProvider()

        for _ in range(3):
            controller = TargetProcessController(provider)
            target, notifier = controller.attach(os.getppid())
            latch = InterruptLatch()
            latch.fire()
            sampler = ProcessSampler(provider, controller, latch)

            try:
                run = sampler.run(target, notifier)
            finally:
                controller.close()

            assert run.cause is TerminationCause.STOPPED_BY_INTERRUPT

        assert psutil.pid_exists(os.getppid())
        assert waiter_threads("TargetWatcher") == []
