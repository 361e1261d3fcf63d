"""Shared fakes for peek tests."""

import logging
from collections.abc import Callable

import pytest

from peek.errors import NoSuchProcess
from peek.interrupt import InterruptLatch
from peek.metrics import MetricsProvider, ProcessMetrics
from peek.models import ExitStatus, TargetProcess
from peek.target import ExitNotifier, TargetProcessController


class FakeProvider(MetricsProvider):
    """
    Scripted metrics provider.

    Reports `reads` successful reads, then NoSuchProcess. on_read is called
    with the 0-based read index before each read, so tests can fire the
    latch or deliver an exit status at a precise point.
    """

    def __init__(
        self,
        reads: int | None = None,
        cpu_count: int = 4,
        on_read: Callable[[int], None] | None = None,
        alive: bool = True,
    ) -> None:
        self.reads = reads
        self.read_count = 0
        self.primed: list[int] = []
        self._cpu_count = cpu_count
        self._on_read = on_read
        self._alive = alive

    @property
    def cpu_count(self) -> int:
        return self._cpu_count

    def exists(self, pid: int) -> bool:
        return self._alive

    def prime(self, pid: int) -> None:
        self.primed.append(pid)

    def read(self, pid: int) -> ProcessMetrics:
        index = self.read_count
        self.read_count += 1
        if self._on_read is not None:
            self._on_read(index)
        if self.reads is not None and index >= self.reads:
            raise NoSuchProcess(pid)
        return ProcessMetrics(
            pid=pid,
            name="fake",
            cpu_percent=40.0,
            memory_rss=1024 * (index + 1),
            memory_vms=4096 * (index + 1),
            disk_read_bytes=100 * index,
            disk_write_bytes=10 * index,
        )


class InstantLatch(InterruptLatch):
    """Latch whose wait() never sleeps, so loop tests run fast."""

    def wait(self, timeout: float | None = None) -> bool:
        return self.fired


class RecordingController(TargetProcessController):
    """Controller that records kills and reports the target as killed."""

    def __init__(self, provider: MetricsProvider, notifier: ExitNotifier) -> None:
        super().__init__(provider)
        self.killed: list[int] = []
        self._fake_notifier = notifier

    def kill(self, target: TargetProcess) -> None:
        if not target.owned:
            return
        self.killed.append(target.pid)
        self._fake_notifier.deliver(ExitStatus(-9))


@pytest.fixture
def latch() -> InstantLatch:
    return InstantLatch()


@pytest.fixture
def notifier() -> ExitNotifier:
    return ExitNotifier()


@pytest.fixture
def owned_target() -> TargetProcess:
    return TargetProcess(pid=4242, owned=True, command=("/bin/fake",))


@pytest.fixture
def attached_target() -> TargetProcess:
    return TargetProcess(pid=4242, owned=False)


@pytest.fixture(autouse=True)
def reset_peek_logger():
    """main() binds a handler to the current stderr; drop it after each test."""
    yield
    logger = logging.getLogger("peek")
    logger.handlers.clear()
    logger.propagate = True
