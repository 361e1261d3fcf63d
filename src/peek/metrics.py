"""Per-process metrics for peek, backed by psutil."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import psutil

from peek.errors import NoSuchProcess

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class ProcessMetrics:
    """Raw figures for one process at one point in time."""

    pid: int
    name: str
    cpu_percent: float  # 0.0 - 100.0 * core_count, not normalized
    memory_rss: int  # Bytes
    memory_vms: int  # Bytes
    disk_read_bytes: int  # Cumulative
    disk_write_bytes: int  # Cumulative


class MetricsProvider:
    """
    What the sampling loop needs from a metrics source.

    Implementations raise peek's NoSuchProcess from read() once the process
    is gone. Everything else that can't be read degrades to a default.
    """

    @property
    def cpu_count(self) -> int:
        """Number of logical CPUs used to normalize CPU percentages."""
        raise NotImplementedError

    def exists(self, pid: int) -> bool:
        raise NotImplementedError

    def prime(self, pid: int) -> None:
        """Start CPU accounting for pid so the first read is meaningful."""

    def read(self, pid: int) -> ProcessMetrics:
        raise NotImplementedError

    def forget(self, pid: int) -> None:
        """Drop any state kept for pid once sampling is over."""


def _or_default(getter: Callable[[], T], default: T) -> T:
    """Call getter, falling back to default when psutil is denied access."""
    try:
        return getter()
    except psutil.AccessDenied:
        return default


class PsutilMetricsProvider(MetricsProvider):
    """
    Metrics provider that reads process figures with psutil.

    psutil.Process handles are cached per pid because cpu_percent() measures
    the delta since the previous call on the same handle.
    """

    def __init__(self) -> None:
        """Initialize the provider and look up the logical CPU count."""
        self._cpu_count = psutil.cpu_count(logical=True) or 1
        self._processes: dict[int, psutil.Process] = {}

    @property
    def cpu_count(self) -> int:
        return self._cpu_count

    def exists(self, pid: int) -> bool:
        if pid <= 0 or not psutil.pid_exists(pid):
            return False
        try:
            return self._process(pid).status() != psutil.STATUS_ZOMBIE
        except (NoSuchProcess, psutil.NoSuchProcess):
            return False
        except psutil.AccessDenied:
            # Exists, we just can't look at it
            return True

    def prime(self, pid: int) -> None:
        try:
            # First call returns 0.0 and sets the baseline
            _or_default(lambda: self._process(pid).cpu_percent(interval=None), 0.0)
        except psutil.NoSuchProcess:
            self._processes.pop(pid, None)
            raise NoSuchProcess(pid) from None

    def read(self, pid: int) -> ProcessMetrics:
        """
        Read the current figures for pid.

        Uses the oneshot() context manager so the /proc files are read once.
        Zombies count as gone: they hold no resources and will never run again.

        Raises:
            NoSuchProcess: The process no longer exists or is a zombie.
        """
        proc = self._process(pid)
        try:
            with proc.oneshot():
                if _or_default(proc.status, psutil.STATUS_RUNNING) == psutil.STATUS_ZOMBIE:
                    raise psutil.ZombieProcess(pid)

                name = _or_default(proc.name, "") or ""
                cpu_percent = _or_default(lambda: proc.cpu_percent(interval=None), 0.0)

                mem_info = _or_default(proc.memory_info, None)
                memory_rss = mem_info.rss if mem_info else 0
                memory_vms = mem_info.vms if mem_info else 0

                # io_counters() is missing on macOS
                io = None
                if hasattr(proc, "io_counters"):
                    io = _or_default(proc.io_counters, None)
                disk_read = io.read_bytes if io else 0
                disk_write = io.write_bytes if io else 0
        except psutil.NoSuchProcess:
            # Also covers ZombieProcess
            logger.debug("process %d is gone", pid)
            self._processes.pop(pid, None)
            raise NoSuchProcess(pid) from None

        return ProcessMetrics(
            pid=pid,
            name=name,
            cpu_percent=cpu_percent or 0.0,
            memory_rss=memory_rss,
            memory_vms=memory_vms,
            disk_read_bytes=disk_read,
            disk_write_bytes=disk_write,
        )

    def forget(self, pid: int) -> None:
        self._processes.pop(pid, None)

    def _process(self, pid: int) -> psutil.Process:
        proc = self._processes.get(pid)
        if proc is None:
            try:
                proc = psutil.Process(pid)
            except psutil.NoSuchProcess:
                raise NoSuchProcess(pid) from None
            self._processes[pid] = proc
        return proc
